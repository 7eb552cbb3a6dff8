"""REST API routes for profile, problem history and learning analytics."""

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from code_tutor.config import get_settings
from code_tutor.learning.analytics import compute_recommendations, compute_trend
from code_tutor.learning.credits import use_hint_credit
from code_tutor.models.problem import Difficulty, ProblemHistory
from code_tutor.models.profile import AuthUser, UserProfile
from code_tutor.models.progress import LearningProgress, Recommendation, Timeframe, TrendBucket
from code_tutor.models.reveal import CreditResult, SectionType
from code_tutor.storage.problems import get_user_recent_problems, save_problem_to_history
from code_tutor.storage.profiles import get_user_profile, toggle_show_solutions_by_default
from code_tutor.storage.progress import get_user_learning_progress
from code_tutor.storage.tables import StorageError, get_database

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


class ProblemCreate(BaseModel):
    problem_title: str
    problem_category: str
    problem_difficulty: Difficulty = Difficulty.MEDIUM
    problem_url: str | None = None
    screenshot_paths: list[str] = Field(default_factory=list)


class HintRequest(BaseModel):
    problem_id: str
    hint_type: SectionType
    section_index: int = 0


def get_current_user(x_user_id: str | None = Header(default=None)) -> AuthUser:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return AuthUser(id=x_user_id)


def _storage_unavailable(error: StorageError) -> HTTPException:
    logger.error("storage_unavailable", error=str(error))
    return HTTPException(status_code=503, detail="Storage unavailable")


@router.get("/profile")
async def read_profile(user: AuthUser = Depends(get_current_user)) -> UserProfile:
    """Current profile; created on first access."""
    settings = get_settings()
    try:
        return await get_user_profile(get_database(), user.id, settings.daily_hint_credits)
    except StorageError as e:
        raise _storage_unavailable(e) from e


@router.post("/profile/show-solutions")
async def toggle_show_solutions(user: AuthUser = Depends(get_current_user)) -> UserProfile:
    try:
        return await toggle_show_solutions_by_default(get_database(), user.id)
    except StorageError as e:
        raise _storage_unavailable(e) from e


@router.get("/problems")
async def list_recent_problems(
    limit: int = 10, user: AuthUser = Depends(get_current_user)
) -> list[ProblemHistory]:
    if limit < 1:
        raise HTTPException(status_code=400, detail="limit must be positive")
    try:
        return await get_user_recent_problems(get_database(), user.id, limit)
    except StorageError as e:
        raise _storage_unavailable(e) from e


@router.post("/problems")
async def create_problem(
    body: ProblemCreate, user: AuthUser = Depends(get_current_user)
) -> ProblemHistory:
    try:
        return await save_problem_to_history(
            get_database(),
            user.id,
            problem_title=body.problem_title,
            problem_category=body.problem_category,
            problem_difficulty=body.problem_difficulty,
            problem_url=body.problem_url,
            screenshot_paths=body.screenshot_paths,
        )
    except StorageError as e:
        raise _storage_unavailable(e) from e


@router.post("/hints")
async def unlock_hint(body: HintRequest, user: AuthUser = Depends(get_current_user)) -> CreditResult:
    """Spend a flat hint credit on one section."""
    settings = get_settings()
    return await use_hint_credit(
        get_database(),
        user,
        body.problem_id,
        body.hint_type,
        body.section_index,
        daily_credits=settings.daily_hint_credits,
    )


@router.get("/progress")
async def list_progress(user: AuthUser = Depends(get_current_user)) -> list[LearningProgress]:
    try:
        return await get_user_learning_progress(get_database(), user.id)
    except StorageError as e:
        raise _storage_unavailable(e) from e


@router.get("/progress/trend")
async def learning_trend(
    timeframe: Timeframe = Timeframe.MONTH, user: AuthUser = Depends(get_current_user)
) -> list[TrendBucket]:
    try:
        return await compute_trend(get_database(), user.id, timeframe)
    except StorageError as e:
        raise _storage_unavailable(e) from e


@router.get("/progress/recommendations")
async def recommended_categories(
    user: AuthUser = Depends(get_current_user),
) -> list[Recommendation]:
    try:
        return await compute_recommendations(get_database(), user.id)
    except StorageError as e:
        raise _storage_unavailable(e) from e


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
