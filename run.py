#!/usr/bin/env python3
"""
webpilot - Run a natural-language web task with a local language model

Usage:
    python run.py --task "Find the current weather in Paris" [options]

Examples:
    # Start on a specific page
    python run.py --task "Search for playwright docs" --start-url https://duckduckgo.com

    # Different model and tighter limits
    python run.py --task "..." --model llama3.2:1b --max-steps 10 --max-replans 1

    # List the recommended models
    python run.py --list-models

Environment:
    WEBPILOT_BASE_URL   OpenAI-compatible server (default: local Ollama)
    WEBPILOT_API_KEY    API key (local servers accept any value)
    WEBPILOT_MODEL, WEBPILOT_MAX_STEPS, WEBPILOT_MAX_REPLANS,
    WEBPILOT_FAILURE_THRESHOLD, WEBPILOT_VERBOSE
    A .env file in the working directory is loaded on startup.
"""

import argparse
import asyncio
import dataclasses
import json
import os
import signal
import sys
import time

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from webpilot.core.browser import BrowserEngine
from webpilot.core.config import AVAILABLE_MODELS, DEFAULT_API_KEY, DEFAULT_BASE_URL, ExecutorConfig
from webpilot.core.errors import TaskError
from webpilot.core.events import EventType, ExecutorEvent
from webpilot.core.executor import Executor
from webpilot.utils.llm_client import InferenceService
from webpilot.utils.logger import log, progress, progress_done, set_verbose


def print_event(event: ExecutorEvent):
    """Render executor events as they arrive"""
    if event.type == EventType.INIT_PROGRESS:
        progress("Model", event.progress * 100, 100, unit="%")
        return
    if event.type == EventType.INIT_COMPLETE:
        progress_done("Model", "Model ready")
        print("Model ready")
    elif event.type == EventType.INIT_START:
        print("Loading model...")
    elif event.type == EventType.PLAN_START:
        print("Planning...")
    elif event.type == EventType.PLAN_COMPLETE:
        print("Plan:")
        for i, step in enumerate(event.plan, start=1):
            print(f"  {i}. {step}")
    elif event.type == EventType.STEP_START:
        print(f"\nStep {event.step_number}")
    elif event.type == EventType.STEP_ACTION:
        params = ", ".join(f"{k}={v!r}" for k, v in event.params.items())
        print(f"  Action: {event.action}({params})")
    elif event.type == EventType.STEP_RESULT:
        status = "OK" if event.success else "FAILED"
        print(f"  Result: {status}" + (f" - {event.data[:120]}" if event.data else ""))
    elif event.type == EventType.REPLAN:
        print(f"\nRe-planning: {event.reason}")
    elif event.type == EventType.TASK_COMPLETE:
        print(f"\nTask complete: {event.result}")
    elif event.type == EventType.TASK_FAILED:
        print(f"\nTask failed: {event.error}")


async def run_task(
    task: str,
    model: str,
    base_url: str,
    api_key: str,
    config: ExecutorConfig,
    start_url: str = None,
    timeout: int = 600,
    headless: bool = True,
    quiet: bool = False,
) -> dict:
    """
    Run one task in a fresh browser.

    Returns:
        Dict with result or error, the event log and timing info
    """
    start_time = time.time()
    events = []

    browser = BrowserEngine(headless=headless)
    await browser.start()

    try:
        bridge = await browser.new_bridge()

        try:
            if start_url:
                start = await bridge.perform_action("navigate", {"url": start_url})
                if not start.success:
                    log("Run", f"Could not open start page: {start.error}", force=True)

            inference = InferenceService(
                base_url=base_url,
                api_key=api_key,
                default_model=model,
                fallback_models=config.fallback_models,
            )
            executor = Executor(inference, bridge, config=config)
            executor.on_event(lambda event: events.append(event.to_dict()))
            if not quiet:
                executor.on_event(print_event)

            # Ctrl-C asks the executor to stop at the next step boundary
            loop = asyncio.get_running_loop()
            try:
                loop.add_signal_handler(signal.SIGINT, executor.cancel)
            except (NotImplementedError, RuntimeError):
                pass

            result, error = None, None
            try:
                result = await asyncio.wait_for(executor.execute_task(task, model), timeout=timeout)
            except asyncio.TimeoutError:
                error = f"Timeout after {timeout}s"
                log("Run", error, force=True)
            except TaskError as e:
                error = str(e)
            finally:
                try:
                    loop.remove_signal_handler(signal.SIGINT)
                except (NotImplementedError, RuntimeError):
                    pass

            return {
                "task": task,
                "model": inference.state.current_model or model,
                "success": error is None,
                "result": result,
                "error": error,
                "final_url": bridge.page.url,
                "steps": sum(1 for e in events if e["type"] == EventType.STEP_START.value),
                "time_taken": time.time() - start_time,
                "events": events,
            }

        finally:
            await bridge.close()

    finally:
        await browser.stop()


async def main():
    parser = argparse.ArgumentParser(
        description="webpilot - Natural-language web tasks driven by a local language model"
    )
    parser.add_argument(
        "--task", "-t",
        type=str,
        help="Task for the agent, in plain language",
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="Show recommended models and exit",
    )

    # Model options
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model id (default: WEBPILOT_MODEL or the recommended model)",
    )
    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help=f"OpenAI-compatible API base URL (default: WEBPILOT_BASE_URL or {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--api-key",
        type=str,
        default=None,
        help="API key (default: from WEBPILOT_API_KEY env var)",
    )

    # Execution options
    parser.add_argument(
        "--start-url",
        type=str,
        default=None,
        help="Page to open before the task starts",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Maximum browser steps (default: 15)",
    )
    parser.add_argument(
        "--max-replans",
        type=int,
        default=None,
        help="Maximum re-planning attempts (default: 2)",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=600,
        help="Timeout in seconds (default: 600)",
    )
    parser.add_argument(
        "--headful",
        action="store_true",
        help="Show the browser window",
    )

    # Output options
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show verbose output",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output result as JSON (includes the event log)",
    )

    args = parser.parse_args()

    if args.list_models:
        for model in AVAILABLE_MODELS:
            print(f"{model['id']:<28} {model['name']:<32} {model['size']}")
        return 0

    if not args.task:
        parser.error("--task is required")

    if args.verbose:
        set_verbose(True)

    overrides = {}
    if args.max_steps is not None:
        overrides["max_steps"] = args.max_steps
    if args.max_replans is not None:
        overrides["max_replans"] = args.max_replans
    try:
        config = dataclasses.replace(ExecutorConfig.from_env(model_id=args.model), **overrides)
    except ValueError as e:
        print(f"Error: {e}")
        return 2

    base_url = args.base_url or os.getenv("WEBPILOT_BASE_URL") or DEFAULT_BASE_URL
    api_key = args.api_key or os.getenv("WEBPILOT_API_KEY") or DEFAULT_API_KEY

    if not args.json:
        print("Running task...")
        print(f"  Model: {config.model_id}")
        print(f"  Task: {args.task}")
        print("-" * 50)

    try:
        result = await run_task(
            task=args.task,
            model=config.model_id,
            base_url=base_url,
            api_key=api_key,
            config=config,
            start_url=args.start_url,
            timeout=args.timeout,
            headless=not args.headful,
            quiet=args.json,
        )
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130

    if args.json:
        print(json.dumps(result, indent=2, ensure_ascii=False))
    else:
        print()
        print("=" * 50)
        print("RESULT")
        print("=" * 50)
        print(f"Task: {result['task']}")
        print(f"Model: {result['model']}")
        print(f"Success: {result['success']}")
        if result["success"]:
            print(f"Result: {result['result']}")
        else:
            print(f"Error: {result['error']}")
        print(f"Final URL: {result['final_url']}")
        print(f"Steps: {result['steps']}")
        print(f"Time: {result['time_taken']:.2f}s")

    return 0 if result["success"] else 1


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
