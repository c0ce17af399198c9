"""Stderr logging for webpilot runs, gated by WEBPILOT_VERBOSE"""

import os
import sys
from typing import Any, Dict, Optional

# Global verbose flag (initialized from environment)
_verbose = os.environ.get("WEBPILOT_VERBOSE", "").lower() in ("1", "true", "yes")

# Longest payload value shown by log_event()
EVENT_VALUE_LIMIT = 80


def set_verbose(enabled: bool):
    """Enable or disable verbose logging"""
    global _verbose
    _verbose = enabled


def is_verbose() -> bool:
    return _verbose


def truncate(text: Optional[str], limit: int) -> Optional[str]:
    """Cut text to `limit` characters, marking the cut with '...'."""
    if text is None or len(text) <= limit:
        return text
    return text[:limit] + "..."


def log(tag: str, message: str = "", force: bool = False):
    """
    Print a log message if verbose mode is enabled.

    Args:
        tag: Component tag (e.g., "LLM", "Executor", "Navigator")
        message: Log message; empty prints a bare separator line
        force: Print even if verbose is disabled (for errors/warnings)
    """
    if not (_verbose or force):
        return
    if not message:
        print(tag, file=sys.stderr, flush=True)
        return
    print(f"[{tag}] {message}", file=sys.stderr, flush=True)


def format_payload(payload: Dict[str, Any], limit: int = EVENT_VALUE_LIMIT) -> str:
    """Render a wire payload as `type key=value ...` on one line."""
    parts = [str(payload.get("type", "?"))]
    for key, value in payload.items():
        if key == "type":
            continue
        if isinstance(value, list):
            value = f"[{len(value)} items]"
        elif isinstance(value, str):
            value = repr(truncate(value, limit))
        parts.append(f"{key}={value}")
    return " ".join(parts)


def log_event(tag: str, event, force: bool = False):
    """Log an executor event from its to_dict() wire form."""
    if not (_verbose or force):
        return
    log(tag, format_payload(event.to_dict()), force=force)


def progress(tag: str, current: float, total: float, extra: str = "", unit: str = "s"):
    """
    Print progress indicator (only in verbose mode).

    Used for streaming chat (elapsed seconds against the read timeout) and
    model loading (percent).
    """
    if not _verbose:
        return
    bar_width = 20
    ratio = min(current / total, 1.0) if total else 1.0
    filled = int(bar_width * ratio)
    bar = "█" * filled + "░" * (bar_width - filled)
    msg = f"{bar} {int(current)}{unit}/{int(total)}{unit}"
    if extra:
        msg += f" {extra}"
    print(f"\r[{tag}] {msg}", end="", file=sys.stderr, flush=True)


def progress_done(tag: str, message: str = ""):
    """Overwrite the progress line with a completion message."""
    if not _verbose:
        return
    print(f"\r[{tag}] {message:<60}", file=sys.stderr, flush=True)
