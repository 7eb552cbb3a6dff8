"""Problem history and user explanation models."""

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

OTHER_CATEGORY = "Other"

# Detection order matters: the first name found in a statement wins.
DSA_CATEGORIES: list[str] = [
    "Array",
    "String",
    "Hash Table",
    "Dynamic Programming",
    "Math",
    "Sorting",
    "Greedy",
    "Depth-First Search",
    "Binary Search",
    "Breadth-First Search",
    "Tree",
    "Matrix",
    "Graph",
    "Bit Manipulation",
    "Heap",
    "Stack",
    "Linked List",
    "Recursion",
    "Two Pointers",
    "Sliding Window",
    "Backtracking",
    "Design",
    "Divide and Conquer",
]

DEFAULT_AI_FEEDBACK = "Your explanation shows good understanding of the problem."


def _new_id() -> str:
    return str(uuid.uuid4())


class Difficulty(StrEnum):
    """Problem difficulty as shown on coding platforms."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class ProblemHistory(BaseModel):
    """One problem-solving session, created once and never modified."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    created_at: datetime = Field(default_factory=datetime.now)
    problem_title: str
    problem_category: str = OTHER_CATEGORY
    problem_difficulty: Difficulty = Difficulty.MEDIUM
    problem_url: str | None = None
    screenshot_paths: list[str] = Field(default_factory=list)

    @field_validator("problem_category")
    @classmethod
    def _known_category(cls, value: str) -> str:
        return value if value in DSA_CATEGORIES else OTHER_CATEGORY


class UserExplanation(BaseModel):
    """The user's own take on a problem, submitted or skipped before the solution."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    problem_id: str
    created_at: datetime = Field(default_factory=datetime.now)
    explanation_text: str = ""
    understanding_score: float = 0.0  # 0-100
    approach_score: float = 0.0  # 0-100
    ai_feedback: str = ""
    is_skipped: bool = False

    @classmethod
    def from_text(
        cls,
        user_id: str,
        problem_id: str,
        text: str,
        is_skipped: bool,
        ai_feedback: str | None = None,
    ) -> "UserExplanation":
        """Build an explanation scored with the length heuristic.

        Skipped or blank explanations score zero and carry no feedback.
        """
        if is_skipped or not text.strip():
            return cls(
                user_id=user_id,
                problem_id=problem_id,
                explanation_text=text,
                is_skipped=is_skipped,
            )
        return cls(
            user_id=user_id,
            problem_id=problem_id,
            explanation_text=text,
            understanding_score=min(100.0, len(text) / 5),
            approach_score=min(100.0, len(text) / 8),
            ai_feedback=ai_feedback or DEFAULT_AI_FEEDBACK,
            is_skipped=False,
        )
