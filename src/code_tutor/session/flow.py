"""Problem-solving session flow driven by platform events."""

import contextlib
from collections.abc import Callable, Iterator

import structlog

from code_tutor.models.session import (
    FlowSnapshot,
    FlowState,
    FlowStep,
    Notification,
    NotificationVariant,
    Screenshot,
    View,
)
from code_tutor.models.solution import DebugSolution, EducationalSolution, ProblemStatement
from code_tutor.session.store import (
    DEBUG_SOLUTION,
    PROBLEM_STATEMENT,
    SCREENSHOTS,
    SESSION_KEYS,
    SOLUTION,
    SessionStore,
    StoreEvent,
)

logger = structlog.get_logger()

StateCallback = Callable[["SessionFlow"], None]
NotificationCallback = Callable[[Notification], None]


class SessionFlow:
    """State machine for one problem-solving session.

    Steps run extracting -> user_explanation -> generating_solution ->
    solution_ready. Artifacts land in the session store and the flow advances
    from store notifications, but only out of the step each artifact belongs
    to: an extraction result only moves ``extracting`` on, a solution only
    moves ``generating_solution`` on. While the user's explanation is pending
    no store event can move the flow (observers are still told the cached
    artifacts changed); submitting or skipping is the only way out. Debug is layered on top of ``solution_ready`` whenever a debug
    artifact is cached.

    Args:
        store: Session cache; a fresh one is created when omitted.
    """

    def __init__(self, store: SessionStore | None = None):
        self.store = store or SessionStore()
        self._step = FlowStep.EXTRACTING
        self._view = View.QUEUE
        self._has_submitted_explanation = False
        self._explanation_text = ""
        self._problem_id = ""
        self.debug_processing = False
        self._quiet = False
        self._state_callbacks: list[StateCallback] = []
        self._notification_callbacks: list[NotificationCallback] = []
        self._unsubscribe = self.store.subscribe(self._on_store_event)

    # -- observers ---------------------------------------------------------

    def on_state_change(self, callback: StateCallback) -> None:
        self._state_callbacks.append(callback)

    def on_notification(self, callback: NotificationCallback) -> None:
        self._notification_callbacks.append(callback)

    def close(self) -> None:
        self._unsubscribe()

    # -- read side ---------------------------------------------------------

    @property
    def step(self) -> FlowStep:
        return self._step

    @property
    def state(self) -> FlowState:
        if self._step == FlowStep.SOLUTION_READY and DEBUG_SOLUTION in self.store:
            return FlowState.DEBUG
        return FlowState(self._step.value)

    @property
    def view(self) -> View:
        if self.state == FlowState.DEBUG:
            return View.DEBUG
        return self._view

    @property
    def awaiting_explanation(self) -> bool:
        return self._step == FlowStep.USER_EXPLANATION and not self._has_submitted_explanation

    @property
    def problem_id(self) -> str:
        return self._problem_id

    @property
    def explanation_text(self) -> str:
        return self._explanation_text

    @property
    def problem(self) -> ProblemStatement | None:
        return self.store.get(PROBLEM_STATEMENT)

    @property
    def solution(self) -> EducationalSolution | None:
        return self.store.get(SOLUTION)

    @property
    def debug_solution(self) -> DebugSolution | None:
        return self.store.get(DEBUG_SOLUTION)

    def snapshot(self) -> FlowSnapshot:
        return FlowSnapshot(
            state=self.state,
            view=self.view,
            debug_processing=self.debug_processing,
            problem_id=self._problem_id,
            problem=self.problem,
            solution=self.solution,
            debug_solution=self.debug_solution,
            screenshots=self.store.get(SCREENSHOTS, []),
        )

    # -- platform events ---------------------------------------------------

    def on_screenshot_taken(self, screenshots: list[Screenshot]) -> None:
        self.store.set(SCREENSHOTS, screenshots)

    def on_reset(self) -> None:
        """Discard the session: artifacts, explanation and screenshots."""
        with self._quiet_batch():
            self.store.remove(*SESSION_KEYS)
            self._step = FlowStep.EXTRACTING
            self._view = View.QUEUE
            self._has_submitted_explanation = False
            self._explanation_text = ""
            self._problem_id = ""
            self.debug_processing = False
        logger.info("session_reset")
        self._state_changed()

    def on_solution_start(self) -> None:
        with self._quiet_batch():
            self.store.remove(SOLUTION)
            self._step = FlowStep.EXTRACTING
            self._view = View.SOLUTIONS
            self._has_submitted_explanation = False
        self._state_changed()

    def on_problem_extracted(self, problem: ProblemStatement) -> None:
        self.store.set(PROBLEM_STATEMENT, problem)

    def on_solution_success(self, solution: EducationalSolution | None) -> None:
        if solution is None:
            logger.warning("empty_solution_received")
            return
        self.store.set(SOLUTION, solution)

    def on_solution_error(self, message: str) -> None:
        """Keep the last good solution visible; fall back to the queue without one."""
        logger.warning("solution_generation_failed", error=message)
        self._notify("Processing Failed", message, NotificationVariant.ERROR)
        if SOLUTION in self.store:
            return
        self._step = FlowStep.EXTRACTING
        self._view = View.QUEUE
        self._has_submitted_explanation = False
        self._state_changed()

    def on_debug_start(self) -> None:
        self.debug_processing = True
        self._state_changed()

    def on_debug_success(self, debug_solution: DebugSolution) -> None:
        self.debug_processing = False
        self.store.set(DEBUG_SOLUTION, debug_solution)

    def on_debug_error(self, message: str) -> None:
        logger.warning("debug_generation_failed", error=message)
        self.debug_processing = False
        self._notify(
            "Processing Failed",
            "There was an error debugging your code.",
            NotificationVariant.ERROR,
        )
        self._state_changed()

    def on_no_screenshots(self) -> None:
        self._notify(
            "No Screenshots",
            "There are no extra screenshots to process.",
            NotificationVariant.NEUTRAL,
        )

    # -- user actions ------------------------------------------------------

    def submit_explanation(self, text: str, problem_id: str) -> bool:
        return self._complete_explanation(True, text, problem_id)

    def skip_explanation(self, problem_id: str) -> bool:
        return self._complete_explanation(False, "", problem_id)

    def _complete_explanation(self, submitted: bool, text: str, problem_id: str) -> bool:
        if not self.awaiting_explanation:
            logger.warning("explanation_ignored", step=self._step.value)
            return False

        self._has_submitted_explanation = True
        self._explanation_text = text
        self._problem_id = problem_id
        self._step = FlowStep.GENERATING_SOLUTION
        if SOLUTION in self.store:
            self._step = FlowStep.SOLUTION_READY
        logger.info("explanation_completed", submitted=submitted, problem_id=problem_id)

        if submitted:
            self._notify(
                "Explanation submitted",
                "Generating a personalized solution for you...",
                NotificationVariant.SUCCESS,
            )
        else:
            self._notify(
                "Skipping explanation",
                "Please try to provide your own solution next time, it helps your learning!",
                NotificationVariant.NEUTRAL,
            )
        self._state_changed()
        return True

    # -- internals ---------------------------------------------------------

    @contextlib.contextmanager
    def _quiet_batch(self) -> Iterator[None]:
        """Apply store changes as one batch whose event the flow itself ignores."""
        self._quiet = True
        try:
            with self.store.batch():
                yield
        finally:
            self._quiet = False

    def _on_store_event(self, event: StoreEvent) -> None:
        if self._quiet:
            return

        # Only submitting or skipping leaves the explanation step
        if not self.awaiting_explanation:
            self._advance(event)
        self._state_changed()

    def _advance(self, event: StoreEvent) -> None:
        if (
            PROBLEM_STATEMENT in event.keys
            and PROBLEM_STATEMENT in self.store
            and self._step == FlowStep.EXTRACTING
        ):
            self._step = FlowStep.USER_EXPLANATION
            self._view = View.SOLUTIONS
        if (
            SOLUTION in event.keys
            and SOLUTION in self.store
            and self._step == FlowStep.GENERATING_SOLUTION
        ):
            self._step = FlowStep.SOLUTION_READY

    def _state_changed(self) -> None:
        logger.debug("flow_state", state=self.state.value, view=self.view.value)
        for callback in self._state_callbacks:
            callback(self)

    def _notify(self, title: str, message: str, variant: NotificationVariant) -> None:
        notification = Notification(title=title, message=message, variant=variant)
        for callback in self._notification_callbacks:
            callback(notification)
