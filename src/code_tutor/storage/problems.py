"""Problem history and user explanation persistence."""

import asyncio

import structlog

from code_tutor.models.problem import Difficulty, ProblemHistory, UserExplanation
from code_tutor.storage.tables import Database

logger = structlog.get_logger()


async def save_problem_to_history(
    db: Database,
    user_id: str,
    problem_title: str,
    problem_category: str,
    problem_difficulty: Difficulty | str,
    problem_url: str | None = None,
    screenshot_paths: list[str] | None = None,
) -> ProblemHistory:
    problem = ProblemHistory(
        user_id=user_id,
        problem_title=problem_title,
        problem_category=problem_category,
        problem_difficulty=problem_difficulty,
        problem_url=problem_url,
        screenshot_paths=screenshot_paths or [],
    )
    await asyncio.to_thread(db.problem_history.insert, problem.model_dump(mode="json"))
    logger.info(
        "problem_saved",
        user_id=user_id,
        problem_id=problem.id,
        category=problem.problem_category,
    )
    return problem


async def get_problem(db: Database, problem_id: str) -> ProblemHistory | None:
    rows = await asyncio.to_thread(db.problem_history.select, lambda r: r["id"] == problem_id)
    return ProblemHistory(**rows[0]) if rows else None


async def get_user_problems(
    db: Database, user_id: str, category: str | None = None
) -> list[ProblemHistory]:
    """All of a user's problems, optionally restricted to one category."""

    def _match(row: dict) -> bool:
        if row["user_id"] != user_id:
            return False
        return category is None or row["problem_category"] == category

    rows = await asyncio.to_thread(db.problem_history.select, _match)
    return [ProblemHistory(**row) for row in rows]


async def get_user_recent_problems(
    db: Database, user_id: str, limit: int = 10
) -> list[ProblemHistory]:
    """Most recent problems first."""
    problems = await get_user_problems(db, user_id)
    problems.sort(key=lambda p: p.created_at, reverse=True)
    return problems[:limit]


async def save_user_explanation(
    db: Database,
    user_id: str,
    problem_id: str,
    explanation: str,
    is_skipped: bool,
    ai_feedback: str | None = None,
) -> UserExplanation:
    """Store the user's explanation (or skip) with its heuristic scores."""
    record = UserExplanation.from_text(
        user_id, problem_id, explanation, is_skipped, ai_feedback=ai_feedback
    )
    await asyncio.to_thread(db.user_explanations.insert, record.model_dump(mode="json"))
    logger.info(
        "explanation_saved",
        user_id=user_id,
        problem_id=problem_id,
        skipped=is_skipped,
        understanding_score=record.understanding_score,
    )
    return record


async def get_user_explanation(
    db: Database, user_id: str, problem_id: str
) -> UserExplanation | None:
    rows = await asyncio.to_thread(
        db.user_explanations.select,
        lambda r: r["user_id"] == user_id and r["problem_id"] == problem_id,
    )
    return UserExplanation(**rows[0]) if rows else None
