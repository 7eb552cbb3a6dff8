"""Graded reveal ladder for solution sections."""

import math
from collections.abc import Callable

import structlog

from code_tutor.learning.analytics import DEFAULT_PROGRESS_WINDOW_DAYS, update_progress_from_reveal
from code_tutor.models.profile import AuthUser
from code_tutor.models.reveal import (
    MAX_REVEAL_LEVEL,
    REVEAL_PERCENTAGES,
    RevealKey,
    RevealResult,
)
from code_tutor.models.session import Notification, NotificationVariant
from code_tutor.storage.profiles import record_problem_solved
from code_tutor.storage.reveals import get_user_reveals, track_code_reveal
from code_tutor.storage.tables import Database, StorageError

logger = structlog.get_logger()

NOT_AUTHENTICATED = "User not authenticated"


def next_level(level: int) -> int:
    """One step up the ladder, saturating at full reveal."""
    return min(level + 1, MAX_REVEAL_LEVEL)


def visible_line_count(level: int, total_lines: int) -> int:
    return math.ceil(REVEAL_PERCENTAGES[level] * total_lines / 100)


def reveal_prefix(content: str, level: int) -> str:
    """Leading lines of ``content`` visible at ``level``."""
    lines = content.splitlines()
    return "\n".join(lines[: visible_line_count(level, len(lines))])


class _LadderState:
    def __init__(self, level: int = 0, satisfied_at: int | None = None):
        self.level = level
        self.satisfied_at = satisfied_at


class RevealTracker:
    """Reveal levels for one user's session, persisted after every change.

    Levels are kept in memory and are the source of truth for the UI. Each
    change is written through to storage and triggers a progress recompute;
    when that write fails the change is kept and a notification is emitted.

    Args:
        db: Database to persist reveals to.
        user: Signed-in user, or None (all actions are then rejected).
        notify: Callable receiving user-facing notifications.
        window_days: Trailing window for the progress recompute.
    """

    def __init__(
        self,
        db: Database,
        user: AuthUser | None,
        notify: Callable[[Notification], None] | None = None,
        window_days: int = DEFAULT_PROGRESS_WINDOW_DAYS,
    ):
        self.db = db
        self.user = user
        self.window_days = window_days
        self._notify = notify
        self._ladders: dict[RevealKey, _LadderState] = {}

    def level(self, key: RevealKey) -> int:
        state = self._ladders.get(key)
        return state.level if state else 0

    def satisfied_at(self, key: RevealKey) -> int | None:
        state = self._ladders.get(key)
        return state.satisfied_at if state else None

    def visible_content(self, key: RevealKey, content: str) -> str:
        return reveal_prefix(content, self.level(key))

    def reset(self) -> None:
        self._ladders.clear()

    async def restore(self, problem_id: str) -> None:
        """Load stored levels for a problem so a resumed session continues where it left off."""
        if self.user is None:
            return
        try:
            reveals = await get_user_reveals(self.db, self.user.id, problem_ids={problem_id})
        except StorageError:
            logger.exception("code_reveal_restore_failed", problem_id=problem_id)
            return
        for reveal in reveals:
            self._ladders[reveal.key] = _LadderState(reveal.reveal_level, reveal.satisfied_at_level)

    async def reveal_more(self, key: RevealKey) -> RevealResult:
        """Raise the key's level by exactly one step."""
        if self.user is None:
            return RevealResult(success=False, error=NOT_AUTHENTICATED)

        state = self._ladders.setdefault(key, _LadderState())
        if state.level >= MAX_REVEAL_LEVEL:
            return RevealResult(
                success=True, reveal_level=state.level, satisfied_at_level=state.satisfied_at
            )

        state.level = next_level(state.level)
        logger.info(
            "section_revealed",
            problem_id=key.problem_id,
            section=f"{key.section_type}:{key.section_index}",
            level=state.level,
        )
        await self._persist(key, state)
        return RevealResult(
            success=True,
            reveal_level=state.level,
            satisfied_at_level=state.satisfied_at,
            changed=True,
        )

    async def mark_satisfied(self, key: RevealKey) -> RevealResult:
        """Record the current level as the point of understanding, once."""
        if self.user is None:
            return RevealResult(success=False, error=NOT_AUTHENTICATED)

        state = self._ladders.setdefault(key, _LadderState())
        if state.satisfied_at is not None:
            return RevealResult(
                success=True, reveal_level=state.level, satisfied_at_level=state.satisfied_at
            )

        first_for_problem = not any(
            other.satisfied_at is not None
            for other_key, other in self._ladders.items()
            if other_key.problem_id == key.problem_id
        )
        state.satisfied_at = state.level
        logger.info(
            "section_understood",
            problem_id=key.problem_id,
            section=f"{key.section_type}:{key.section_index}",
            level=state.level,
        )
        await self._persist(key, state, solved=first_for_problem)
        return RevealResult(
            success=True,
            reveal_level=state.level,
            satisfied_at_level=state.satisfied_at,
            changed=True,
        )

    async def _persist(self, key: RevealKey, state: _LadderState, solved: bool = False) -> None:
        try:
            await track_code_reveal(
                self.db,
                self.user.id,
                key.problem_id,
                key.section_type,
                key.section_index,
                state.level,
                state.satisfied_at,
            )
            await update_progress_from_reveal(
                self.db,
                self.user.id,
                key.problem_id,
                reveal_level=state.level,
                satisfied_at_level=state.satisfied_at,
                window_days=self.window_days,
            )
            if solved:
                await record_problem_solved(self.db, self.user.id)
        except StorageError:
            logger.exception("code_reveal_persist_failed", problem_id=key.problem_id)
            if self._notify:
                self._notify(Notification(
                    title="Sync Failed",
                    message="Your reveal progress could not be saved.",
                    variant=NotificationVariant.ERROR,
                ))
