"""Configuration constants and executor settings"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

# ============================================================================
# Model configuration
# ============================================================================

# Local OpenAI-compatible server (Ollama, llama.cpp server, vLLM, ...)
DEFAULT_BASE_URL = "http://localhost:11434/v1"
DEFAULT_API_KEY = "local"

# Qwen 2.5 1.5B is a good balance of capability and size for on-device use
DEFAULT_MODEL = "qwen2.5:1.5b-instruct"

# Ordered by size (smaller to larger)
AVAILABLE_MODELS = [
    {"id": "llama3.2:1b", "name": "Llama 3.2 1B (Fastest)", "size": "1.3 GB"},
    {"id": "qwen2.5:1.5b-instruct", "name": "Qwen 2.5 1.5B (Recommended)", "size": "1.0 GB"},
    {"id": "phi3.5:3.8b", "name": "Phi 3.5 Mini 3.8B (Best)", "size": "2.2 GB"},
]

# Tried in order when the requested model fails to load
FALLBACK_MODELS = [
    "phi3.5:3.8b",
    "llama3.2:1b",
]

# ============================================================================
# Agent configuration
# ============================================================================

MAX_STEPS = 15
MAX_REPLANS = 2
FAILURE_THRESHOLD = 3  # Consecutive failed actions before a forced re-plan

AGENT_TEMPERATURE = 0.3
AGENT_MAX_TOKENS = 2048

# Longest data/error excerpt carried by a STEP_RESULT event
MAX_RESULT_EXCERPT = 500

# ============================================================================
# Page observation configuration
# ============================================================================

INTERACTIVE_SELECTORS = [
    "a[href]",
    "button",
    "input",
    "textarea",
    "select",
    "[role='button']",
    "[role='link']",
    "[onclick]",
    "[tabindex]:not([tabindex='-1'])",
]

MAX_INTERACTIVE_ELEMENTS = 30
MAX_PAGE_TEXT_LENGTH = 3000

# ============================================================================
# Timing configuration
# ============================================================================

POST_NAVIGATION_DELAY = 0.5  # seconds
TYPING_DELAY_MS = 30
DEFAULT_WAIT_TIMEOUT_MS = 3000
PAGE_LOAD_TIMEOUT_MS = 30000


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class ExecutorConfig:
    """Tunable limits for a single task run."""
    model_id: str = DEFAULT_MODEL
    fallback_models: List[str] = field(default_factory=lambda: list(FALLBACK_MODELS))
    max_steps: int = MAX_STEPS
    max_replans: int = MAX_REPLANS
    failure_threshold: int = FAILURE_THRESHOLD
    temperature: float = AGENT_TEMPERATURE
    max_tokens: int = AGENT_MAX_TOKENS

    def __post_init__(self):
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be >= 1, got {self.max_steps}")
        if self.max_replans < 0:
            raise ValueError(f"max_replans must be >= 0, got {self.max_replans}")
        if self.failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {self.failure_threshold}")
        if self.max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {self.max_tokens}")

    @classmethod
    def from_env(cls, model_id: Optional[str] = None) -> "ExecutorConfig":
        """
        Build config from WEBPILOT_* environment variables.

        Args:
            model_id: Explicit model override (takes priority over WEBPILOT_MODEL)
        """
        return cls(
            model_id=model_id or os.environ.get("WEBPILOT_MODEL") or DEFAULT_MODEL,
            max_steps=_env_int("WEBPILOT_MAX_STEPS", MAX_STEPS),
            max_replans=_env_int("WEBPILOT_MAX_REPLANS", MAX_REPLANS),
            failure_threshold=_env_int("WEBPILOT_FAILURE_THRESHOLD", FAILURE_THRESHOLD),
        )
