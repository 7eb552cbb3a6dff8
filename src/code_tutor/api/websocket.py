"""Platform WebSocket handler - connects shell events to the session flow."""

import time
from typing import Any

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from code_tutor.analysis.feedback import ExplanationReviewer
from code_tutor.config import Settings
from code_tutor.learning.classify import extract_problem_attributes
from code_tutor.learning.reveal import RevealTracker
from code_tutor.models.profile import AuthUser
from code_tutor.models.reveal import RevealKey, SectionType
from code_tutor.models.session import FlowState, Notification, NotificationVariant, Screenshot
from code_tutor.models.solution import DebugSolution, EducationalSolution, ProblemStatement
from code_tutor.session.flow import SessionFlow
from code_tutor.storage.problems import save_problem_to_history, save_user_explanation
from code_tutor.storage.profiles import get_user_profile
from code_tutor.storage.tables import Database, StorageError, get_database

logger = structlog.get_logger()

MIN_EXPLANATION_LENGTH = 5


def temporary_problem_id() -> str:
    """Stand-in id used when the problem could not be saved."""
    return f"temp-{int(time.time() * 1000)}"


class SessionManager:
    """Owns one connection's session flow and reveal ladders.

    Flow callbacks fire synchronously; their output is queued and sent after
    each inbound message is handled.

    Args:
        settings: Application settings.
        websocket: Connection to the desktop shell.
        db: Database for persistence.
        user: Signed-in user, if already known.
        reviewer: Reviewer for submitted explanations.
    """

    def __init__(
        self,
        settings: Settings,
        websocket: WebSocket,
        db: Database,
        user: AuthUser | None = None,
        reviewer: ExplanationReviewer | None = None,
    ):
        self.settings = settings
        self.websocket = websocket
        self.db = db
        self.user = user
        self.reviewer = reviewer or ExplanationReviewer(
            api_key=settings.openai_api_key, model=settings.feedback_model
        )
        self.flow = SessionFlow()
        self.reveals = RevealTracker(
            db, user, notify=self._queue_notification, window_days=settings.progress_window_days
        )
        self._outbox: list[dict[str, Any]] = []
        self._state_dirty = False
        self.flow.on_state_change(self._mark_state_dirty)
        self.flow.on_notification(self._queue_notification)

    def _mark_state_dirty(self, flow: SessionFlow) -> None:
        self._state_dirty = True

    def _queue_notification(self, notification: Notification) -> None:
        self._outbox.append({"type": "notification", **notification.model_dump(mode="json")})

    def _notify(self, title: str, message: str, variant: NotificationVariant) -> None:
        self._queue_notification(Notification(title=title, message=message, variant=variant))

    async def handle(self, data: dict[str, Any]) -> None:
        """Dispatch one inbound message."""
        msg_type = data.get("type", "")
        try:
            await self._dispatch(msg_type, data)
        except ValidationError as e:
            logger.warning("invalid_message", type=msg_type, errors=e.error_count())
            self._notify("Invalid Message", f"Could not read '{msg_type}' payload.",
                         NotificationVariant.ERROR)

    async def _dispatch(self, msg_type: str, data: dict[str, Any]) -> None:
        flow = self.flow
        if msg_type == "authenticate":
            await self._authenticate(data.get("user_id"))
        elif msg_type == "screenshot_taken":
            flow.on_screenshot_taken(
                [Screenshot.model_validate(s) for s in data.get("screenshots", [])]
            )
        elif msg_type == "reset":
            flow.on_reset()
            self.reveals.reset()
        elif msg_type == "solution_start":
            flow.on_solution_start()
        elif msg_type == "problem_extracted":
            flow.on_problem_extracted(ProblemStatement.model_validate(data.get("data")))
        elif msg_type == "solution_success":
            payload = data.get("data")
            flow.on_solution_success(
                EducationalSolution.model_validate(payload) if payload else None
            )
        elif msg_type == "solution_error":
            flow.on_solution_error(data.get("error", "Failed to generate solution."))
        elif msg_type == "debug_start":
            flow.on_debug_start()
        elif msg_type == "debug_success":
            flow.on_debug_success(DebugSolution.model_validate(data.get("data")))
        elif msg_type == "debug_error":
            flow.on_debug_error(data.get("error", ""))
        elif msg_type == "no_screenshots":
            flow.on_no_screenshots()
        elif msg_type == "submit_explanation":
            await self._complete_explanation(data.get("text", ""), skipped=False)
        elif msg_type == "skip_explanation":
            await self._complete_explanation("", skipped=True)
        elif msg_type in ("reveal_more", "mark_satisfied"):
            await self._reveal(msg_type, data)
        elif msg_type == "get_state":
            self._state_dirty = True
        else:
            logger.warning("unknown_message", type=msg_type)

    async def _authenticate(self, user_id: str | None) -> None:
        previous = self.user.id if self.user else None
        if previous is not None and previous != user_id:
            # Session state and reveal ladders belong to the signed-in user
            logger.info("session_user_changed")
            self.flow.on_reset()
            self.reveals.reset()
            structlog.contextvars.unbind_contextvars("user_id")

        if not user_id:
            self.user = None
            self.reveals.user = None
            return
        self.user = AuthUser(id=user_id)
        self.reveals.user = self.user
        structlog.contextvars.bind_contextvars(user_id=user_id)
        try:
            await get_user_profile(self.db, user_id, self.settings.daily_hint_credits)
        except StorageError:
            logger.exception("profile_load_failed", user_id=user_id)
            self._notify("Error", "Failed to load user profile", NotificationVariant.ERROR)

    async def _complete_explanation(self, text: str, skipped: bool) -> None:
        flow = self.flow
        if not flow.awaiting_explanation:
            logger.warning("explanation_out_of_turn", step=flow.step.value)
            return
        if not skipped and len(text.strip()) < MIN_EXPLANATION_LENGTH:
            self._notify(
                "Explanation too short",
                "Tell us a little more about your approach, or skip for now.",
                NotificationVariant.NEUTRAL,
            )
            return

        problem_id = await self._save_explanation(text, skipped)
        if skipped:
            flow.skip_explanation(problem_id)
        else:
            flow.submit_explanation(text, problem_id)
        await self.reveals.restore(problem_id)

    async def _save_explanation(self, text: str, skipped: bool) -> str:
        """Persist the problem and explanation; a temporary id when that is impossible."""
        if self.user is None or self.flow.problem is None:
            return temporary_problem_id()

        statement = self.flow.problem.problem_statement
        attributes = extract_problem_attributes(statement)
        try:
            problem = await save_problem_to_history(
                self.db,
                self.user.id,
                problem_title=attributes.title,
                problem_category=attributes.category,
                problem_difficulty=attributes.difficulty,
            )
            feedback = None if skipped else await self.reviewer.review(statement, text)
            await save_user_explanation(
                self.db, self.user.id, problem.id, text, skipped, ai_feedback=feedback
            )
        except StorageError:
            logger.exception("explanation_save_failed")
            self._notify("Sync Failed", "Your explanation could not be saved.",
                         NotificationVariant.ERROR)
            return temporary_problem_id()
        return problem.id

    async def _reveal(self, msg_type: str, data: dict[str, Any]) -> None:
        if self.flow.state not in (FlowState.SOLUTION_READY, FlowState.DEBUG):
            self._notify("No Solution Yet", "Hints unlock once the solution is ready.",
                         NotificationVariant.NEUTRAL)
            return
        key = RevealKey.model_validate({
            "problem_id": self.flow.problem_id,
            "section_type": data.get("section_type", SectionType.CODE),
            "section_index": data.get("section_index", 0),
        })
        if msg_type == "reveal_more":
            result = await self.reveals.reveal_more(key)
        else:
            result = await self.reveals.mark_satisfied(key)

        if not result.success:
            self._notify("Error", result.error or "Failed to reveal hint", NotificationVariant.ERROR)
            return

        solution = self.flow.solution
        content = solution.section_content(key.section_type) if solution else ""
        self._outbox.append({
            "type": "reveal_state",
            "section_type": key.section_type.value,
            "section_index": key.section_index,
            "reveal_level": result.reveal_level,
            "satisfied_at_level": result.satisfied_at_level,
            "visible_content": self.reveals.visible_content(key, content),
        })

    async def flush(self) -> None:
        """Send queued state and notifications to the shell."""
        if self._state_dirty:
            self._state_dirty = False
            snapshot = self.flow.snapshot().model_dump(mode="json")
            self._outbox.insert(0, {"type": "session_state", **snapshot})
        messages, self._outbox = self._outbox, []
        for message in messages:
            await self._send(message)

    async def _send(self, data: dict) -> None:
        try:
            await self.websocket.send_json(data)
        except Exception:
            logger.warning("shell_send_failed")

    def close(self) -> None:
        self.flow.close()


async def handle_platform_websocket(
    websocket: WebSocket, settings: Settings, db: Database | None = None
) -> None:
    """Handle a desktop shell WebSocket connection."""
    await websocket.accept()
    manager = SessionManager(settings, websocket, db or get_database())

    try:
        while True:
            data = await websocket.receive_json()
            await manager.handle(data)
            await manager.flush()

    except WebSocketDisconnect:
        logger.info("shell_disconnected")
    except Exception:
        logger.exception("websocket_handler_error")
    finally:
        manager.close()
        structlog.contextvars.clear_contextvars()
