"""User profile persistence: creation, daily credit reset, preferences, streaks."""

import asyncio
from datetime import date, datetime, timedelta

import structlog

from code_tutor.models.profile import DEFAULT_DAILY_HINT_CREDITS, UserProfile
from code_tutor.storage.tables import Database, Row

logger = structlog.get_logger()

CREDIT_RESET_INTERVAL = timedelta(days=1)


class ProfileNotFoundError(LookupError):
    """No profile row exists for the user."""


async def init_user_profile(
    db: Database,
    user_id: str,
    daily_credits: int = DEFAULT_DAILY_HINT_CREDITS,
    now: datetime | None = None,
) -> UserProfile:
    """Create the profile for a first sign-in. Returns the existing one if present."""
    now = now or datetime.now()
    profile = UserProfile(
        id=user_id,
        created_at=now,
        updated_at=now,
        hint_credits_remaining=daily_credits,
        last_credit_reset=now,
    )

    def _insert(rows: list[Row]) -> UserProfile:
        for row in rows:
            if row["id"] == user_id:
                return UserProfile(**row)
        rows.append(profile.model_dump(mode="json"))
        return profile

    created = await asyncio.to_thread(db.user_profiles.modify, _insert)
    if created is profile:
        logger.info("user_profile_created", user_id=user_id)
    return created


async def get_user_profile(
    db: Database,
    user_id: str,
    daily_credits: int = DEFAULT_DAILY_HINT_CREDITS,
    now: datetime | None = None,
) -> UserProfile:
    """Load a profile, creating it when missing and resetting stale credits."""
    now = now or datetime.now()
    rows = await asyncio.to_thread(db.user_profiles.select, lambda r: r["id"] == user_id)
    if not rows:
        return await init_user_profile(db, user_id, daily_credits, now)

    profile = UserProfile(**rows[0])
    if now - profile.last_credit_reset >= CREDIT_RESET_INTERVAL:
        return await reset_daily_credits(db, user_id, daily_credits, now)
    return profile


async def update_user_profile(
    db: Database,
    user_id: str,
    now: datetime | None = None,
    **changes,
) -> UserProfile:
    """Apply field changes to an existing profile."""
    now = now or datetime.now()

    def _update(rows: list[Row]) -> UserProfile:
        for i, row in enumerate(rows):
            if row["id"] == user_id:
                profile = UserProfile(**{**row, **changes, "updated_at": now})
                rows[i] = profile.model_dump(mode="json")
                return profile
        raise ProfileNotFoundError(user_id)

    return await asyncio.to_thread(db.user_profiles.modify, _update)


async def reset_daily_credits(
    db: Database,
    user_id: str,
    daily_credits: int = DEFAULT_DAILY_HINT_CREDITS,
    now: datetime | None = None,
) -> UserProfile:
    now = now or datetime.now()
    profile = await update_user_profile(
        db, user_id, now=now, hint_credits_remaining=daily_credits, last_credit_reset=now
    )
    logger.info("hint_credits_reset", user_id=user_id, credits=daily_credits)
    return profile


async def toggle_show_solutions_by_default(db: Database, user_id: str) -> UserProfile:
    profile = await get_user_profile(db, user_id)
    return await update_user_profile(
        db, user_id, show_solutions_by_default=not profile.show_solutions_by_default
    )


def next_streak(profile: UserProfile, today: date) -> int:
    """Streak length after solving a problem on ``today``."""
    if profile.last_solved_on == today:
        return max(profile.streak_days, 1)
    if profile.last_solved_on == today - timedelta(days=1):
        return profile.streak_days + 1
    return 1


async def record_problem_solved(
    db: Database, user_id: str, today: date | None = None
) -> UserProfile:
    """Count a solved problem and extend (or restart) the daily streak."""
    today = today or date.today()
    profile = await get_user_profile(db, user_id)
    return await update_user_profile(
        db,
        user_id,
        problems_solved=profile.problems_solved + 1,
        streak_days=next_streak(profile, today),
        last_solved_on=today,
    )
