"""Flat hint credits: one credit unlocks one section outright.

This is the simpler, older unlock policy. The graded ladder in
``code_tutor.learning.reveal`` is the default; this path only backs the
``/api/hints`` endpoint.
"""

import structlog

from code_tutor.models.profile import DEFAULT_DAILY_HINT_CREDITS, AuthUser
from code_tutor.models.reveal import CreditResult, SectionType
from code_tutor.storage.profiles import get_user_profile, update_user_profile
from code_tutor.storage.reveals import record_hint_usage
from code_tutor.storage.tables import Database, StorageError

logger = structlog.get_logger()


async def use_hint_credit(
    db: Database,
    user: AuthUser | None,
    problem_id: str,
    hint_type: SectionType,
    section_index: int,
    daily_credits: int = DEFAULT_DAILY_HINT_CREDITS,
) -> CreditResult:
    """Spend one credit on a section unlock.

    The credit decrement and the usage record are separate writes; if the
    usage record fails the credit stays spent.
    """
    if user is None:
        return CreditResult(success=False, error="User not authenticated")

    try:
        profile = await get_user_profile(db, user.id, daily_credits)
    except StorageError:
        logger.exception("hint_credit_profile_failed", user_id=user.id)
        return CreditResult(success=False, error="User profile not found")

    if profile.hint_credits_remaining <= 0:
        return CreditResult(
            success=False,
            credits_remaining=0,
            error="No hint credits remaining today",
        )

    try:
        updated = await update_user_profile(
            db, user.id, hint_credits_remaining=profile.hint_credits_remaining - 1
        )
    except StorageError:
        logger.exception("hint_credit_update_failed", user_id=user.id)
        return CreditResult(success=False, error="Failed to update hint credits")

    try:
        await record_hint_usage(db, user.id, problem_id, hint_type, section_index)
    except StorageError:
        logger.exception("hint_usage_record_failed", user_id=user.id, problem_id=problem_id)

    logger.info(
        "hint_credit_used",
        user_id=user.id,
        problem_id=problem_id,
        hint_type=str(hint_type),
        credits_remaining=updated.hint_credits_remaining,
    )
    return CreditResult(success=True, credits_remaining=updated.hint_credits_remaining)
