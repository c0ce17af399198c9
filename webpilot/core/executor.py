"""Executor: drives one task through model init, planning and the action loop"""

import asyncio
from enum import Enum
from typing import Callable, List, Optional

from .browser import PageBridge, is_restricted_url
from .config import MAX_RESULT_EXCERPT, ExecutorConfig
from .errors import (
    CancellationRequested,
    ExecutorBusyError,
    InitializationError,
    NavigationError,
    PlanningError,
    PlanValidationError,
    StepBudgetExceeded,
)
from .events import (
    EventListener,
    ExecutorEvent,
    InitComplete,
    InitProgress,
    InitStart,
    PlanComplete,
    PlanStart,
    Replan,
    StepAction,
    StepResult,
    StepStart,
    TaskComplete,
    TaskFailed,
)
from .models import Action, ActionResult, ActionType, HistoryEntry, PageState, Plan, RunContext
from .navigator import Navigator
from .planner import Planner
from ..utils.logger import log, log_event, truncate

RESTRICTED_PAGE_HINT = (
    'RESTRICTED PAGE: Cannot interact with this page. Use "navigate" action to go to '
    "a website first (e.g., navigate to https://google.com)."
)
UNAVAILABLE_PAGE_HINT = "Page content not available. Try navigating to a different page."

CANCELLED_MESSAGE = "Task cancelled by user"
DEFAULT_SUCCESS_MESSAGE = "Task completed successfully"
DEFAULT_FAILURE_REASON = "Unknown failure"
STREAK_REPLAN_REASON = "Multiple consecutive failures"


class ExecutorState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    PLANNING = "planning"
    EXECUTING = "executing"
    COMPLETE = "complete"
    FAILED = "failed"


class Executor:
    """
    Orchestrates planner, navigator and page bridge for one task at a time.

    Recoverable problems (page read failures, failed actions, navigator
    errors within the re-plan budget) are absorbed in the loop and only show
    up as events. Anything fatal ends the run with exactly one TASK_FAILED
    event and is raised from execute_task().
    """

    def __init__(
        self,
        inference,
        page_bridge: PageBridge,
        planner: Optional[Planner] = None,
        navigator: Optional[Navigator] = None,
        config: Optional[ExecutorConfig] = None,
    ):
        """
        Initialize executor.

        Args:
            inference: Inference service (initialize / on_progress / chat)
            page_bridge: Reads page state and performs actions
            planner: Strategic planner (default: built on `inference`)
            navigator: Tactical navigator (default: built on `inference`)
            config: Step, re-plan and failure-streak limits
        """
        self._config = config or ExecutorConfig()
        self._inference = inference
        self._bridge = page_bridge
        self._planner = planner or Planner(
            inference,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
        )
        self._navigator = navigator or Navigator(
            inference,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
        )

        self._listeners: List[EventListener] = []
        self._context: Optional[RunContext] = None
        self._state = ExecutorState.IDLE
        self._is_running = False
        self._cancel_requested = False
        self._replans = 0
        self._consecutive_failures = 0

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    @property
    def state(self) -> ExecutorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def context(self) -> Optional[RunContext]:
        return self._context

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute_task(self, task: str, model_id: Optional[str] = None) -> str:
        """
        Run a task until the navigator reports done, or the run fails.

        Args:
            task: Natural language task description
            model_id: Model to load (default: config.model_id)

        Returns:
            Final result string

        Raises:
            ExecutorBusyError: a run is already active (no events emitted)
            InitializationError, PlanningError, NavigationError,
            CancellationRequested, StepBudgetExceeded: the run failed
        """
        if self._is_running:
            raise ExecutorBusyError("Executor is already running a task")
        if not task or not task.strip():
            raise ValueError("Task must be a non-empty string")

        self._is_running = True
        self._cancel_requested = False
        self._replans = 0
        self._consecutive_failures = 0

        try:
            result = await self._run(task.strip(), model_id)
            self._state = ExecutorState.COMPLETE
            log("Executor", f"Completed: {result}")
            self._emit(TaskComplete(result=result))
            return result

        except asyncio.CancelledError:
            self._state = ExecutorState.FAILED
            log("Executor", "Run coroutine cancelled", force=True)
            self._emit(TaskFailed(error=CANCELLED_MESSAGE))
            raise

        except Exception as e:
            self._state = ExecutorState.FAILED
            log("Executor", f"Task failed: {type(e).__name__}: {e}", force=True)
            self._emit(TaskFailed(error=str(e) or type(e).__name__))
            raise

        finally:
            self._is_running = False
            self.reset()

    def cancel(self):
        """
        Request cooperative cancellation.

        Observed at the next loop-iteration boundary; an inference or page
        call already in flight is allowed to finish first.
        """
        if not self._is_running:
            log("Executor", "cancel() ignored: no task running")
            return
        log("Executor", "Cancellation requested", force=True)
        self._cancel_requested = True

    def on_event(self, listener: EventListener) -> Callable[[], None]:
        """Subscribe to executor events. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reset(self):
        """Drop the run context and reset both sub-agents"""
        self._planner.reset()
        self._navigator.reset()
        self._context = None

    # ------------------------------------------------------------------
    # Run phases
    # ------------------------------------------------------------------

    async def _run(self, task: str, model_id: Optional[str]) -> str:
        await self._initialize_model(model_id or self._config.model_id)
        self._context = RunContext(task=task)
        await self._create_plan()
        return await self._execution_loop()

    async def _initialize_model(self, model_id: str):
        self._state = ExecutorState.INITIALIZING
        self._emit(InitStart())

        unsubscribe = self._inference.on_progress(
            lambda value: self._emit(InitProgress(progress=value))
        )
        try:
            await self._inference.initialize(model_id)
        except Exception as e:
            raise InitializationError(f"Model initialization failed: {e}") from e
        finally:
            unsubscribe()

        self._emit(InitComplete())

    async def _create_plan(self):
        self._state = ExecutorState.PLANNING
        self._emit(PlanStart())

        try:
            plan = await self._planner.create_plan(self._context.task)
        except PlanValidationError as e:
            log("Executor", f"Plan rejected ({e}), using fallback plan", force=True)
            plan = Plan.fallback()
        except Exception as e:
            raise PlanningError(f"Planning failed: {e}") from e

        self._context.plan = self._accept_plan(plan)
        log("Executor", f"Plan created: {self._context.plan.steps}")
        self._emit(PlanComplete(plan=tuple(self._context.plan.steps)))

    async def _execution_loop(self) -> str:
        self._state = ExecutorState.EXECUTING
        context = self._context
        max_steps = self._config.max_steps
        step_number = 0
        announced = 0  # Highest step number already sent as STEP_START

        while step_number < max_steps:
            self._check_cancelled()

            step_number += 1
            if step_number > announced:
                announced = step_number
                log("")  # Blank line between steps
                log("Executor", f"Step {step_number}/{max_steps}")
                self._emit(StepStart(step_number=step_number))
            else:
                log("Executor", f"Retrying step {step_number} with the new plan")

            page_state = await self._read_page_state()

            try:
                action = await self._navigator.get_next_action(context, page_state)
            except Exception as e:
                reason = f"Navigator error: {e}"
                log("Executor", reason, force=True)
                if not self._can_replan():
                    raise NavigationError(reason) from e
                await self._replan(reason)
                step_number -= 1  # A re-plan does not consume a step
                continue

            self._check_cancelled()

            self._emit(StepAction(action=action.action_type.value, params=dict(action.parameters)))
            log("Executor", f"Step {step_number}: {action.action_type.value} {action.parameters}")

            if action.is_terminal:
                if action.action_type == ActionType.DONE:
                    return action.parameters.get("result") or DEFAULT_SUCCESS_MESSAGE

                reason = action.parameters.get("reason") or DEFAULT_FAILURE_REASON
                log("Executor", f"Navigator gave up: {reason}", force=True)
                if not self._can_replan():
                    raise NavigationError(reason)
                await self._replan(reason)
                step_number -= 1
                continue

            result = await self._perform(action)
            self._emit(StepResult(
                success=result.success,
                data=truncate(result.data if result.success else result.error, MAX_RESULT_EXCERPT),
            ))
            log("Executor", f"Action result: {'OK' if result.success else 'FAILED'} {truncate(result.data or result.error, 120)}")
            context.history.append(HistoryEntry(action=action, result=result))

            if result.success:
                self._consecutive_failures = 0
                continue

            self._consecutive_failures += 1
            if self._consecutive_failures >= self._config.failure_threshold and self._can_replan():
                await self._replan(result.error or STREAK_REPLAN_REASON)
            # Otherwise let the navigator adapt on its own

        raise StepBudgetExceeded(f"Maximum steps ({max_steps}) exceeded without completing task")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_cancelled(self):
        if self._cancel_requested:
            raise CancellationRequested(CANCELLED_MESSAGE)

    def _can_replan(self) -> bool:
        return self._replans < self._config.max_replans

    async def _replan(self, reason: str):
        """Swap in a new plan; history is kept, the failure streak restarts."""
        self._replans += 1
        log("Executor", f"Re-planning ({self._replans}/{self._config.max_replans}): {reason}", force=True)
        self._emit(Replan(reason=reason))
        self._navigator.reset()

        self._state = ExecutorState.PLANNING
        try:
            plan = await self._planner.replan(self._context, reason)
        except Exception as e:
            raise PlanningError(f"Re-planning failed: {e}") from e

        self._context.plan = self._accept_plan(plan)
        self._consecutive_failures = 0
        self._state = ExecutorState.EXECUTING
        self._emit(PlanComplete(plan=tuple(self._context.plan.steps)))

    @staticmethod
    def _accept_plan(plan: Optional[Plan]) -> Plan:
        if plan is None or not plan.steps:
            log("Executor", "Plan missing steps, using fallback", force=True)
            return Plan.fallback()
        return plan

    async def _read_page_state(self) -> PageState:
        try:
            return await self._bridge.read_page_state()
        except Exception as e:
            log("Executor", f"Failed to read page state: {e}", force=True)
            return await self._degraded_page_state()

    async def _degraded_page_state(self) -> PageState:
        url, title = "unknown", "Unknown page"
        try:
            url, title = await self._bridge.current_location()
        except Exception as e:
            log("Executor", f"Tab location unavailable: {e}")
        url = url or "unknown"

        hint = RESTRICTED_PAGE_HINT if is_restricted_url(url) else UNAVAILABLE_PAGE_HINT
        return PageState(url=url, title=title or "Unknown page", interactive_elements=[], page_text=hint)

    async def _perform(self, action: Action) -> ActionResult:
        try:
            return await self._bridge.perform_action(action.action_type.value, dict(action.parameters))
        except Exception as e:
            return ActionResult.failure(str(e) or type(e).__name__)

    def _emit(self, event: ExecutorEvent):
        log_event("Executor", event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                log("Executor", f"Event listener error: {type(e).__name__}: {e}", force=True)
