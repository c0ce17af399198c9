"""Planner: turns a task into a multi-step strategy"""

from typing import Dict, List, Optional

from .config import AGENT_MAX_TOKENS, AGENT_TEMPERATURE
from .errors import PlanningError, PlanValidationError
from .models import HistoryEntry, Plan, RunContext
from .response_parser import ResponseParseError, parse_plan
from ..utils.logger import log

PLANNER_SYSTEM_PROMPT = """You are the planning module of a web browsing agent.
Break the user's task into a short sequence of high-level steps that a
separate navigator can carry out in a web browser one action at a time.

The navigator can: navigate to a URL, click an element, type into an input,
extract text, scroll, and wait.

Respond with a single JSON object in exactly this shape:
{
  "current_state": {
    "analysis": "what the task requires",
    "memory": ["key facts to remember during execution"]
  },
  "plan": {
    "thought": "strategic reasoning",
    "steps": ["step 1", "step 2"],
    "success_criteria": "how to tell the task is complete"
  }
}

Rules:
- "steps" must contain between 1 and 8 short, concrete steps.
- Start from the page the browser is on; include navigating to a site if needed.
- Output ONLY the JSON object, no markdown and no extra text."""

PLAN_PROMPT_TEMPLATE = """## Task
{task}

Create a plan for this task."""

REPLAN_PROMPT_TEMPLATE = """## Task
{task}

## Previous Plan (did not work)
{previous_steps}

## What Went Wrong
{reason}

## Actions Taken So Far
{history}

Create a NEW plan that avoids the approach that failed. Reuse what the
actions above already achieved instead of starting over."""


def format_history(history: List[HistoryEntry], limit: int) -> str:
    """Render the most recent history entries, one line each."""
    recent = history[-limit:] if history else []
    if not recent:
        return "(no actions yet)"
    offset = len(history) - len(recent)
    lines = []
    for i, entry in enumerate(recent, start=offset + 1):
        params = ", ".join(f"{k}={v!r}" for k, v in entry.action.parameters.items())
        if entry.result.success:
            outcome = "OK"
            if entry.result.data:
                outcome += f": {entry.result.data[:150]}"
        else:
            outcome = f"FAILED: {(entry.result.error or 'unknown error')[:150]}"
        lines.append(f"{i}. {entry.action.action_type.value}({params}) -> {outcome}")
    return "\n".join(lines)


class Planner:
    """
    Strategic planner backed by the inference service.

    Holds no state across calls except the last raw response, kept for
    diagnostics until reset().
    """

    def __init__(
        self,
        llm,
        temperature: float = AGENT_TEMPERATURE,
        max_tokens: int = AGENT_MAX_TOKENS,
        max_history_entries: int = 10,
    ):
        """
        Initialize planner.

        Args:
            llm: Inference service exposing `async chat(messages, ...) -> str`
            temperature: Sampling temperature
            max_tokens: Completion token limit
            max_history_entries: History entries shown when re-planning
        """
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._max_history_entries = max_history_entries
        self._last_response: Optional[str] = None

    @property
    def last_response(self) -> Optional[str]:
        return self._last_response

    async def create_plan(self, task: str) -> Plan:
        """
        Create an initial plan for a task.

        Raises:
            PlanningError: inference failed
            PlanValidationError: output unparsable or not plan-shaped
        """
        user_prompt = PLAN_PROMPT_TEMPLATE.format(task=task)
        plan = await self._request_plan(user_prompt)
        log("Planner", f"Plan created with {len(plan.steps)} steps")
        return plan

    async def replan(self, context: RunContext, reason: str) -> Plan:
        """
        Create a replacement plan after the current one got stuck.

        Args:
            context: Run context (task, current plan, accumulated history)
            reason: Why the previous plan is being abandoned

        Raises:
            PlanningError: inference failed
            PlanValidationError: output unparsable or not plan-shaped
        """
        if context.plan and context.plan.steps:
            previous_steps = "\n".join(f"{i}. {s}" for i, s in enumerate(context.plan.steps, start=1))
        else:
            previous_steps = "(none)"

        user_prompt = REPLAN_PROMPT_TEMPLATE.format(
            task=context.task,
            previous_steps=previous_steps,
            reason=reason,
            history=format_history(context.history, self._max_history_entries),
        )
        plan = await self._request_plan(user_prompt)
        log("Planner", f"Re-planned ({reason[:80]}) with {len(plan.steps)} steps")
        return plan

    async def _request_plan(self, user_prompt: str) -> Plan:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": PLANNER_SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]
        try:
            raw = await self._llm.chat(
                messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except Exception as e:
            raise PlanningError(f"Inference failed: {e}") from e

        self._last_response = raw
        try:
            return parse_plan(raw)
        except ResponseParseError as e:
            log("Planner", f"Invalid plan output: {raw[:200]!r}", force=True)
            raise PlanValidationError(f"Invalid plan: {e}", raw_response=raw) from e

    def reset(self):
        """Discard the buffered raw response"""
        self._last_response = None
