"""Error taxonomy for task runs"""


class TaskError(Exception):
    """Base class for every error a task run can end with or recover from."""


class InitializationError(TaskError):
    """
    Raised when the inference service fails to load every candidate model.

    Fatal: aborts the run before planning starts.
    """


class PlanningError(TaskError):
    """Raised when the planner cannot produce a plan (inference failure)."""


class PlanValidationError(PlanningError):
    """
    Raised when planner output is unparsable or does not match the plan schema.

    At initial planning the executor recovers from this once by substituting
    the fallback plan. During re-planning it is fatal.
    """

    def __init__(self, message: str, raw_response: str = None):
        super().__init__(message)
        self.raw_response = raw_response


class NavigationError(TaskError):
    """
    Raised when the navigator cannot decide the next action, or when the
    model gives up with a `fail` action after the re-plan budget is spent.
    """

    def __init__(self, message: str, raw_response: str = None):
        super().__init__(message)
        self.raw_response = raw_response


class ActionExecutionError(TaskError):
    """Raised inside a page bridge when an action cannot be performed.

    Never escapes the bridge: it is converted into a failed ActionResult.
    """


class PageReadError(TaskError):
    """Raised by a page bridge when the page state cannot be read.

    The executor degrades to a synthetic page state instead of failing.
    """


class CancellationRequested(TaskError):
    """Raised at a loop boundary after cancel() was requested."""


class StepBudgetExceeded(TaskError):
    """Raised when the step ceiling is hit without a terminal action."""


class ExecutorBusyError(RuntimeError):
    """Raised when execute_task() is called while another run is active."""
