"""Learning progress and analytics output models."""

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from code_tutor.models.reveal import MAX_REVEAL_LEVEL

NEEDS_HELP_THRESHOLD = 3.0

NEEDS_HELP_REASON = "You typically need more help with this category"
GOOD_PROGRESS_REASON = "You're making good progress in this category"


class Timeframe(StrEnum):
    """Trailing window for learning trends."""

    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class LearningProgress(BaseModel):
    """Per-category rollup, recomputed from the trailing reveal window."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    category: str
    problems_attempted: int = 0
    problems_solved: int = 0
    avg_reveal_level: float = float(MAX_REVEAL_LEVEL)  # lower is better
    improvement_rate: float = 0.0
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class CategoryTrend(BaseModel):
    category: str
    problems_count: int
    avg_reveal_level: float


class TrendBucket(BaseModel):
    """One week or month of reveal activity."""

    period: str  # "2026-W07" or "2026-02"
    problems_count: int
    avg_reveal_level: float
    categories: list[CategoryTrend] = Field(default_factory=list)


class Recommendation(BaseModel):
    category: str
    avg_reveal_level: float
    problems_attempted: int
    problems_solved: int
    focus_reason: str

    @staticmethod
    def reason_for(avg_reveal_level: float) -> str:
        """Focus reason for a category's average reveal level."""
        if avg_reveal_level > NEEDS_HELP_THRESHOLD:
            return NEEDS_HELP_REASON
        return GOOD_PROGRESS_REASON
