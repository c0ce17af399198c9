"""webpilot - Natural-language web tasks driven by a local language model"""

__version__ = "0.1.0"

# Core components
from .core.models import (
    Action,
    ActionResult,
    ActionType,
    HistoryEntry,
    InteractiveElement,
    PageState,
    Plan,
    RunContext,
)
from .core.events import EventType, ExecutorEvent
from .core.errors import (
    ActionExecutionError,
    CancellationRequested,
    ExecutorBusyError,
    InitializationError,
    NavigationError,
    PageReadError,
    PlanningError,
    PlanValidationError,
    StepBudgetExceeded,
    TaskError,
)
from .core.config import ExecutorConfig
from .core.planner import Planner
from .core.navigator import Navigator
from .core.executor import Executor, ExecutorState
from .core.browser import BrowserEngine, PageBridge, PlaywrightPageBridge
from .utils.llm_client import InferenceError, InferenceService

__all__ = [
    "__version__",
    # Models
    "Action",
    "ActionResult",
    "ActionType",
    "HistoryEntry",
    "InteractiveElement",
    "PageState",
    "Plan",
    "RunContext",
    # Events
    "EventType",
    "ExecutorEvent",
    # Errors
    "TaskError",
    "InitializationError",
    "PlanningError",
    "PlanValidationError",
    "NavigationError",
    "ActionExecutionError",
    "PageReadError",
    "CancellationRequested",
    "StepBudgetExceeded",
    "ExecutorBusyError",
    # Orchestration
    "ExecutorConfig",
    "Executor",
    "ExecutorState",
    "Planner",
    "Navigator",
    # Collaborators
    "BrowserEngine",
    "PageBridge",
    "PlaywrightPageBridge",
    "InferenceError",
    "InferenceService",
]
