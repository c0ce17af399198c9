"""Navigator: picks the next concrete browser action"""

from typing import Dict, List

from .config import AGENT_MAX_TOKENS, AGENT_TEMPERATURE
from .errors import NavigationError
from .models import Action, PageState, RunContext
from .planner import format_history
from .response_parser import ResponseParseError, parse_navigator_output
from ..utils.logger import log

NAVIGATOR_SYSTEM_PROMPT = """You are the navigation module of a web browsing agent.
You see the current page and a plan, and you choose exactly ONE next action.

## Available Actions

1. **navigate** - Go to a URL
   {"action_type": "navigate", "parameters": {"url": "https://example.com"}}

2. **click** - Click an element by CSS selector (use selectors from the element list)
   {"action_type": "click", "parameters": {"selector": "#submit"}}

3. **type** - Type text into an input field
   {"action_type": "type", "parameters": {"selector": "input[name='q']", "text": "query", "press_enter": "true"}}

4. **extract** - Read the text of an element (or the whole page)
   {"action_type": "extract", "parameters": {"selector": "main"}}

5. **scroll** - Scroll the page
   {"action_type": "scroll", "parameters": {"direction": "down", "amount": "500"}}

6. **wait** - Wait for an element or a number of seconds
   {"action_type": "wait", "parameters": {"seconds": "2"}}

7. **done** - The task is complete; put the answer or summary in "result"
   {"action_type": "done", "parameters": {"result": "what was accomplished"}}

8. **fail** - The plan cannot work from here; explain in "reason"
   {"action_type": "fail", "parameters": {"reason": "why"}}

## Response Format

Respond with a single JSON object in exactly this shape:
{
  "current_state": {
    "page_summary": "what is on the current page",
    "relevant_elements": ["important elements for the task"],
    "progress": "progress toward the goal"
  },
  "action": {
    "thought": "reasoning for this action",
    "action_type": "<one of the actions above>",
    "parameters": {"name": "value"}
  }
}

Rules:
- All parameter values are strings.
- Use "done" as soon as the success criteria are met.
- Output ONLY the JSON object, no markdown and no extra text."""

STEP_PROMPT_TEMPLATE = """## Task
{task}

## Plan
{plan_steps}

Success criteria: {success_criteria}
{memory}
## Actions Taken So Far
{history}
{notes}
## Current Page
URL: {url}
Title: {title}

### Interactive Elements
{elements}

### Page Text
{page_text}

What is the next action? Output ONLY the JSON object."""


def format_elements(page_state: PageState) -> str:
    if not page_state.interactive_elements:
        return "(none)"
    lines = []
    for el in page_state.interactive_elements:
        tag = f"{el.tag} type={el.type}" if el.type else el.tag
        parts = [f"[{el.index}]", f"<{tag}>"]
        if el.text:
            parts.append(repr(el.text))
        parts.extend(
            f'{k}="{v}"' for k, v in el.attributes.items()
            if k in ("name", "placeholder", "href", "aria-label")
        )
        parts.append(f"selector: {el.selector}")
        lines.append(" ".join(parts))
    return "\n".join(lines)


class Navigator:
    """
    Tactical navigator backed by the inference service.

    Keeps short-term notes (its own recent progress remarks) between calls
    within one plan; reset() clears them so a new plan starts fresh.
    """

    def __init__(
        self,
        llm,
        temperature: float = AGENT_TEMPERATURE,
        max_tokens: int = AGENT_MAX_TOKENS,
        max_history_entries: int = 8,
        max_notes: int = 3,
    ):
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._max_history_entries = max_history_entries
        self._max_notes = max_notes
        self._notes: List[str] = []

    @property
    def notes(self) -> List[str]:
        return list(self._notes)

    def build_step_prompt(self, context: RunContext, page_state: PageState) -> str:
        plan = context.plan
        if plan is not None:
            plan_steps = "\n".join(f"{i}. {s}" for i, s in enumerate(plan.steps, start=1))
            success_criteria = plan.success_criteria or "(not specified)"
            memory = "\nRemember:\n" + "\n".join(f"- {m}" for m in plan.memory) + "\n" if plan.memory else ""
        else:
            plan_steps, success_criteria, memory = "(no plan)", "(not specified)", ""

        notes = ""
        if self._notes:
            notes = "\n## Your Recent Notes\n" + "\n".join(f"- {n}" for n in self._notes) + "\n"

        return STEP_PROMPT_TEMPLATE.format(
            task=context.task,
            plan_steps=plan_steps,
            success_criteria=success_criteria,
            memory=memory,
            history=format_history(context.history, self._max_history_entries),
            notes=notes,
            url=page_state.url,
            title=page_state.title,
            elements=format_elements(page_state),
            page_text=page_state.page_text or "(empty)",
        )

    async def get_next_action(self, context: RunContext, page_state: PageState) -> Action:
        """
        Decide the single next action for the current page.

        Raises:
            NavigationError: inference failed or output was invalid
        """
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": NAVIGATOR_SYSTEM_PROMPT},
            {"role": "user", "content": self.build_step_prompt(context, page_state)},
        ]
        try:
            raw = await self._llm.chat(
                messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except Exception as e:
            raise NavigationError(f"Inference failed: {e}") from e

        try:
            action, state = parse_navigator_output(raw)
        except ResponseParseError as e:
            log("Navigator", f"PARSE FAILED: {raw[:200]!r}", force=True)
            raise NavigationError(f"Invalid navigator output: {e}", raw_response=raw) from e

        note = state.progress or action.thought
        if note:
            self._notes.append(note[:200])
            del self._notes[:-self._max_notes]

        log("Navigator", f"Action: {action.action_type.value} {action.parameters}")
        return action

    def reset(self):
        """Forget short-term notes"""
        self._notes = []
