"""Code reveal and hint usage persistence."""

import asyncio
from collections.abc import Collection
from datetime import datetime

import structlog

from code_tutor.models.reveal import CodeReveal, HintUsage, SectionType
from code_tutor.storage.tables import Database, Row

logger = structlog.get_logger()


def _same_key(
    row: Row, user_id: str, problem_id: str, section_type: SectionType, section_index: int
) -> bool:
    return (
        row["user_id"] == user_id
        and row["problem_id"] == problem_id
        and row["section_type"] == section_type
        and row["section_index"] == section_index
    )


def merge_reveal(
    existing: CodeReveal, reveal_level: int, satisfied_at_level: int | None, now: datetime
) -> CodeReveal:
    """Fold a new observation into a stored reveal.

    The level only moves up and the first recorded satisfaction level sticks.
    """
    level = max(existing.reveal_level, reveal_level)
    satisfied = existing.satisfied_at_level
    if satisfied is None:
        satisfied = satisfied_at_level
    if level == existing.reveal_level and satisfied == existing.satisfied_at_level:
        return existing
    return existing.model_copy(
        update={"reveal_level": level, "satisfied_at_level": satisfied, "updated_at": now}
    )


async def track_code_reveal(
    db: Database,
    user_id: str,
    problem_id: str,
    section_type: SectionType,
    section_index: int,
    reveal_level: int,
    satisfied_at_level: int | None,
    now: datetime | None = None,
) -> CodeReveal:
    """Insert or update the reveal row for one section key."""
    now = now or datetime.now()

    def _upsert(rows: list[Row]) -> CodeReveal:
        for i, row in enumerate(rows):
            if _same_key(row, user_id, problem_id, section_type, section_index):
                merged = merge_reveal(CodeReveal(**row), reveal_level, satisfied_at_level, now)
                rows[i] = merged.model_dump(mode="json")
                return merged
        created = CodeReveal(
            user_id=user_id,
            problem_id=problem_id,
            section_type=section_type,
            section_index=section_index,
            reveal_level=reveal_level,
            satisfied_at_level=satisfied_at_level,
            created_at=now,
            updated_at=now,
        )
        rows.append(created.model_dump(mode="json"))
        return created

    reveal = await asyncio.to_thread(db.code_reveals.modify, _upsert)
    logger.debug(
        "code_reveal_tracked",
        user_id=user_id,
        problem_id=problem_id,
        section=f"{section_type}:{section_index}",
        level=reveal.reveal_level,
        satisfied_at=reveal.satisfied_at_level,
    )
    return reveal


async def get_code_reveal(
    db: Database,
    user_id: str,
    problem_id: str,
    section_type: SectionType,
    section_index: int,
) -> CodeReveal | None:
    rows = await asyncio.to_thread(
        db.code_reveals.select,
        lambda r: _same_key(r, user_id, problem_id, section_type, section_index),
    )
    return CodeReveal(**rows[0]) if rows else None


async def get_user_reveals(
    db: Database,
    user_id: str,
    since: datetime | None = None,
    problem_ids: Collection[str] | None = None,
) -> list[CodeReveal]:
    """A user's reveals, oldest first, filtered by creation time and problem."""
    rows = await asyncio.to_thread(db.code_reveals.select, lambda r: r["user_id"] == user_id)
    reveals = [CodeReveal(**row) for row in rows]
    if since is not None:
        reveals = [r for r in reveals if r.created_at >= since]
    if problem_ids is not None:
        reveals = [r for r in reveals if r.problem_id in problem_ids]
    reveals.sort(key=lambda r: r.created_at)
    return reveals


async def record_hint_usage(
    db: Database,
    user_id: str,
    problem_id: str,
    hint_type: SectionType,
    section_index: int,
) -> HintUsage:
    usage = HintUsage(
        user_id=user_id,
        problem_id=problem_id,
        hint_type=hint_type,
        section_index=section_index,
    )
    await asyncio.to_thread(db.hint_usage.insert, usage.model_dump(mode="json"))
    return usage


async def get_hint_usage(db: Database, user_id: str) -> list[HintUsage]:
    rows = await asyncio.to_thread(db.hint_usage.select, lambda r: r["user_id"] == user_id)
    return [HintUsage(**row) for row in rows]
