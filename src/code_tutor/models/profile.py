"""User profile model for hint credits, streaks and preferences."""

from datetime import date, datetime

from pydantic import BaseModel, Field

DEFAULT_DAILY_HINT_CREDITS = 20


class AuthUser(BaseModel):
    """The signed-in user a request or session acts on behalf of."""

    id: str
    email: str | None = None


class UserProfile(BaseModel):
    id: str
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    hint_credits_remaining: int = DEFAULT_DAILY_HINT_CREDITS
    last_credit_reset: datetime = Field(default_factory=datetime.now)
    problems_solved: int = 0
    streak_days: int = 0
    show_solutions_by_default: bool = False
    last_solved_on: date | None = None
