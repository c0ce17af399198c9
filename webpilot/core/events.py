"""Executor events delivered to subscribers (UI, CLI, tests)"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple


class EventType(str, Enum):
    INIT_START = "INIT_START"
    INIT_PROGRESS = "INIT_PROGRESS"
    INIT_COMPLETE = "INIT_COMPLETE"
    PLAN_START = "PLAN_START"
    PLAN_COMPLETE = "PLAN_COMPLETE"
    STEP_START = "STEP_START"
    STEP_ACTION = "STEP_ACTION"
    STEP_RESULT = "STEP_RESULT"
    REPLAN = "REPLAN"
    TASK_COMPLETE = "TASK_COMPLETE"
    TASK_FAILED = "TASK_FAILED"


TERMINAL_EVENT_TYPES = frozenset({EventType.TASK_COMPLETE, EventType.TASK_FAILED})


@dataclass(frozen=True)
class ExecutorEvent:
    """
    Base event. Subclasses set `type` and declare their payload fields.

    Field metadata:
        wire: payload key when it differs from the attribute name
        optional: omit the key from to_dict() when the value is None
    """
    type: ClassVar[EventType]

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def to_dict(self) -> Dict[str, Any]:
        """Wire form: {"type": ..., <payload fields>}"""
        payload: Dict[str, Any] = {"type": self.type.value}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None and f.metadata.get("optional"):
                continue
            if isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, dict):
                value = dict(value)
            payload[f.metadata.get("wire", f.name)] = value
        return payload


@dataclass(frozen=True)
class InitStart(ExecutorEvent):
    type: ClassVar[EventType] = EventType.INIT_START


@dataclass(frozen=True)
class InitProgress(ExecutorEvent):
    type: ClassVar[EventType] = EventType.INIT_PROGRESS
    progress: float


@dataclass(frozen=True)
class InitComplete(ExecutorEvent):
    type: ClassVar[EventType] = EventType.INIT_COMPLETE


@dataclass(frozen=True)
class PlanStart(ExecutorEvent):
    type: ClassVar[EventType] = EventType.PLAN_START


@dataclass(frozen=True)
class PlanComplete(ExecutorEvent):
    type: ClassVar[EventType] = EventType.PLAN_COMPLETE
    plan: Tuple[str, ...]


@dataclass(frozen=True)
class StepStart(ExecutorEvent):
    type: ClassVar[EventType] = EventType.STEP_START
    step_number: int = field(metadata={"wire": "stepNumber"})


@dataclass(frozen=True)
class StepAction(ExecutorEvent):
    type: ClassVar[EventType] = EventType.STEP_ACTION
    action: str
    params: Dict[str, str]


@dataclass(frozen=True)
class StepResult(ExecutorEvent):
    type: ClassVar[EventType] = EventType.STEP_RESULT
    success: bool
    data: Optional[str] = field(default=None, metadata={"optional": True})


@dataclass(frozen=True)
class Replan(ExecutorEvent):
    type: ClassVar[EventType] = EventType.REPLAN
    reason: str


@dataclass(frozen=True)
class TaskComplete(ExecutorEvent):
    type: ClassVar[EventType] = EventType.TASK_COMPLETE
    result: str


@dataclass(frozen=True)
class TaskFailed(ExecutorEvent):
    type: ClassVar[EventType] = EventType.TASK_FAILED
    error: str


# Type for event listener: (event: ExecutorEvent) -> None
EventListener = Callable[[ExecutorEvent], Any]
