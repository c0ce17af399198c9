"""Data models for webpilot task runs"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ActionType(str, Enum):
    """Browser operations the navigator may choose"""
    NAVIGATE = "navigate"  # Go to URL
    CLICK = "click"        # Click element by selector
    TYPE = "type"          # Type text into input
    EXTRACT = "extract"    # Extract text content
    SCROLL = "scroll"      # Scroll page
    WAIT = "wait"          # Wait for element/time
    DONE = "done"          # Task complete
    FAIL = "fail"          # Task failed

    @property
    def is_terminal(self) -> bool:
        return self in (ActionType.DONE, ActionType.FAIL)


@dataclass
class Plan:
    """Strategic breakdown of a task produced by the planner"""
    analysis: str
    memory: List[str]
    thought: str
    steps: List[str]
    success_criteria: str

    @classmethod
    def fallback(cls) -> "Plan":
        """Minimal plan used when the planner's plan has no steps."""
        return cls(
            analysis="Task analysis",
            memory=[],
            thought="Executing task directly",
            steps=["Analyze the current page", "Complete the requested task"],
            success_criteria="Task completed successfully",
        )


@dataclass
class Action:
    """One concrete browser operation chosen by the navigator"""
    action_type: ActionType
    parameters: Dict[str, str] = field(default_factory=dict)
    thought: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.action_type.is_terminal


@dataclass
class ActionResult:
    """Outcome of performing one action through the page bridge"""
    success: bool
    data: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[str] = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)


@dataclass
class HistoryEntry:
    """A single completed loop iteration"""
    action: Action
    result: ActionResult
    timestamp: float = field(default_factory=time.time)


@dataclass
class InteractiveElement:
    """An interactive element on the page"""
    index: int
    tag: str
    text: str
    selector: str
    type: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)


@dataclass
class PageState:
    """Snapshot of the current page, re-read every iteration"""
    url: str
    title: str
    interactive_elements: List[InteractiveElement] = field(default_factory=list)
    page_text: str = ""


@dataclass
class RunContext:
    """Mutable per-run aggregate owned by the executor"""
    task: str
    plan: Optional[Plan] = None
    history: List[HistoryEntry] = field(default_factory=list)
