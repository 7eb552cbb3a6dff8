"""Code reveal and hint usage models."""

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

MAX_REVEAL_LEVEL = 5

# Share of a section's lines visible at each reveal level.
REVEAL_PERCENTAGES: dict[int, int] = {0: 0, 1: 20, 2: 40, 3: 60, 4: 80, 5: 100}


class SectionType(StrEnum):
    """Solution sections that can be progressively revealed."""

    CODE = "code"
    APPROACH = "approach"
    COMPLEXITY = "complexity"
    PSEUDOCODE = "pseudocode"


class RevealKey(BaseModel):
    """Identifies one reveal ladder within a user's session."""

    model_config = ConfigDict(frozen=True)

    problem_id: str
    section_type: SectionType
    section_index: int = 0


class CodeReveal(BaseModel):
    """Persisted reveal progress for one (user, problem, section) key."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    problem_id: str
    section_type: SectionType
    section_index: int = 0
    reveal_level: int = Field(default=0, ge=0, le=MAX_REVEAL_LEVEL)
    satisfied_at_level: int | None = Field(default=None, ge=0, le=MAX_REVEAL_LEVEL)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def effective_level(self) -> int:
        """Level the user actually needed: satisfaction level if recorded."""
        if self.satisfied_at_level is not None:
            return self.satisfied_at_level
        return self.reveal_level

    @property
    def key(self) -> RevealKey:
        return RevealKey(
            problem_id=self.problem_id,
            section_type=self.section_type,
            section_index=self.section_index,
        )


class HintUsage(BaseModel):
    """A single flat-credit section unlock."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    problem_id: str
    created_at: datetime = Field(default_factory=datetime.now)
    hint_type: SectionType
    section_index: int = 0


class RevealResult(BaseModel):
    """Outcome of a reveal ladder action."""

    success: bool
    reveal_level: int | None = None
    satisfied_at_level: int | None = None
    changed: bool = False
    error: str | None = None


class CreditResult(BaseModel):
    """Outcome of a flat hint-credit unlock."""

    success: bool
    credits_remaining: int | None = None
    error: str | None = None
