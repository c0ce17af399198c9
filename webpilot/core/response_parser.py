"""JSON extraction and strict schema validation for planner/navigator output"""

import json
import re
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from .models import Action, ActionType, Plan


class ResponseParseError(ValueError):
    """Raised when model output has no JSON object or fails schema validation"""


# ============================================================================
# Output schemas
# ============================================================================


class _OutputModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# Strict* types reject instead of coercing (e.g. 300 is not a str)
class PlannerState(_OutputModel):
    analysis: StrictStr = ""
    memory: List[StrictStr] = Field(default_factory=list)


class PlanSection(_OutputModel):
    thought: StrictStr = ""
    steps: List[StrictStr] = Field(min_length=1)
    success_criteria: StrictStr = ""


class PlannerOutput(_OutputModel):
    current_state: PlannerState = Field(default_factory=PlannerState)
    plan: PlanSection


class NavigatorState(_OutputModel):
    page_summary: StrictStr = ""
    relevant_elements: List[StrictStr] = Field(default_factory=list)
    progress: StrictStr = ""


class NavigatorAction(_OutputModel):
    thought: StrictStr = ""
    action_type: Literal[
        "navigate", "click", "type", "extract", "scroll", "wait", "done", "fail"
    ]
    parameters: Dict[StrictStr, StrictStr] = Field(default_factory=dict)


class NavigatorOutput(_OutputModel):
    current_state: NavigatorState = Field(default_factory=NavigatorState)
    action: NavigatorAction


# ============================================================================
# JSON extraction
# ============================================================================


def _try_parse_as_dict(text: str) -> Optional[dict]:
    """Try to parse text as JSON dict, return None if not a dict."""
    try:
        result = json.loads(text)
        return result if isinstance(result, dict) else None
    except json.JSONDecodeError:
        return None


def _find_json_candidates(text: str) -> Tuple[List[str], Optional[str]]:
    """
    Find all potential JSON objects in text by matching braces.

    Returns:
        Tuple of (complete_candidates, truncated_json)
        - complete_candidates: List of complete {...} strings
        - truncated_json: Partial JSON if text ends with unclosed braces, else None
    """
    candidates = []
    depth = 0
    start = None

    for i, char in enumerate(text):
        if char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start is not None:
                candidates.append(text[start:i + 1])
                start = None

    truncated = None
    if start is not None and depth > 0:
        truncated = text[start:] + "}" * depth

    return candidates, truncated


def extract_json_object(text: str) -> Optional[dict]:
    """
    Extract the JSON object a model response carries.

    Strategies (in order):
    1. Whole response is a JSON object
    2. Markdown code block (```json ... ```)
    3. Largest complete {...} candidate found by brace matching
    4. Truncated JSON repaired by closing missing braces

    Only the JSON text is recovered here; the shape is never repaired.
    """
    if not text:
        return None

    parsed = _try_parse_as_dict(text.strip())
    if parsed is not None:
        return parsed

    code_block_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    if code_block_match:
        parsed = _try_parse_as_dict(code_block_match.group(1))
        if parsed is not None:
            return parsed

    candidates, truncated = _find_json_candidates(text)

    for candidate in sorted(candidates, key=len, reverse=True):
        parsed = _try_parse_as_dict(candidate)
        if parsed is not None:
            return parsed

    if truncated:
        return _try_parse_as_dict(truncated)

    return None


def _format_validation_error(e: ValidationError) -> str:
    problems = []
    for err in e.errors()[:3]:
        location = ".".join(str(part) for part in err["loc"]) or "<root>"
        problems.append(f"{location}: {err['msg']}")
    return "; ".join(problems)


def _validate(raw: str, schema):
    data = extract_json_object(raw)
    if data is None:
        raise ResponseParseError("response does not contain a JSON object")
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise ResponseParseError(f"response does not match schema ({_format_validation_error(e)})") from e


# ============================================================================
# Public parsers
# ============================================================================


def parse_plan(raw: str) -> Plan:
    """
    Parse planner output into a Plan.

    Raises:
        ResponseParseError: no JSON object, wrong shape, missing or empty steps
    """
    output = _validate(raw, PlannerOutput)
    return Plan(
        analysis=output.current_state.analysis,
        memory=list(output.current_state.memory),
        thought=output.plan.thought,
        steps=list(output.plan.steps),
        success_criteria=output.plan.success_criteria,
    )


def parse_navigator_output(raw: str) -> Tuple[Action, NavigatorState]:
    """
    Parse navigator output into the chosen Action and the model's page notes.

    Raises:
        ResponseParseError: no JSON object, wrong shape, unknown action_type,
            non-string parameters
    """
    output = _validate(raw, NavigatorOutput)
    action = Action(
        action_type=ActionType(output.action.action_type),
        parameters=dict(output.action.parameters),
        thought=output.action.thought,
    )
    return action, output.current_state
