"""Learning progress persistence, keyed by (user, category)."""

import asyncio
from datetime import datetime

from code_tutor.models.progress import LearningProgress
from code_tutor.storage.tables import Database, Row


async def get_learning_progress(
    db: Database, user_id: str, category: str
) -> LearningProgress | None:
    rows = await asyncio.to_thread(
        db.learning_progress.select,
        lambda r: r["user_id"] == user_id and r["category"] == category,
    )
    return LearningProgress(**rows[0]) if rows else None


async def get_user_learning_progress(db: Database, user_id: str) -> list[LearningProgress]:
    rows = await asyncio.to_thread(db.learning_progress.select, lambda r: r["user_id"] == user_id)
    return [LearningProgress(**row) for row in rows]


async def upsert_learning_progress(
    db: Database,
    user_id: str,
    category: str,
    problems_attempted: int,
    problems_solved: int,
    avg_reveal_level: float,
    improvement_rate: float,
    now: datetime | None = None,
) -> LearningProgress:
    """Replace the computed fields of a category row, creating it if needed."""
    now = now or datetime.now()
    fields = {
        "problems_attempted": problems_attempted,
        "problems_solved": problems_solved,
        "avg_reveal_level": avg_reveal_level,
        "improvement_rate": improvement_rate,
        "updated_at": now,
    }

    def _upsert(rows: list[Row]) -> LearningProgress:
        for i, row in enumerate(rows):
            if row["user_id"] == user_id and row["category"] == category:
                progress = LearningProgress(**{**row, **fields})
                rows[i] = progress.model_dump(mode="json")
                return progress
        progress = LearningProgress(user_id=user_id, category=category, created_at=now, **fields)
        rows.append(progress.model_dump(mode="json"))
        return progress

    return await asyncio.to_thread(db.learning_progress.modify, _upsert)
