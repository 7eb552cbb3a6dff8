"""Keyword heuristics that label an extracted problem for analytics."""

from pydantic import BaseModel

from code_tutor.models.problem import DSA_CATEGORIES, OTHER_CATEGORY, Difficulty

MAX_TITLE_LENGTH = 100
UNNAMED_PROBLEM = "Unnamed Problem"

DIFFICULTY_KEYWORDS: dict[Difficulty, list[str]] = {
    Difficulty.EASY: ["easy", "simple", "straightforward", "beginner"],
    Difficulty.MEDIUM: ["medium", "moderate", "intermediate"],
    Difficulty.HARD: ["hard", "difficult", "challenging", "complex", "advanced"],
}


class ProblemAttributes(BaseModel):
    title: str
    category: str
    difficulty: Difficulty


def detect_difficulty(text: str) -> Difficulty:
    lowered = text.lower()
    for difficulty, keywords in DIFFICULTY_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return difficulty
    return Difficulty.MEDIUM


def detect_category(text: str) -> str:
    lowered = text.lower()
    for category in DSA_CATEGORIES:
        if category.lower() in lowered:
            return category
    return OTHER_CATEGORY


def extract_title(text: str) -> str:
    """First sentence of the statement, truncated."""
    first_sentence = text.split(".")[0].strip()
    return first_sentence[:MAX_TITLE_LENGTH] or UNNAMED_PROBLEM


def extract_problem_attributes(statement: str) -> ProblemAttributes:
    """Derive title, category and difficulty from a problem statement.

    Args:
        statement: Free-text problem statement from extraction.

    Returns:
        ProblemAttributes with the first matching category (or "Other") and
        the first matching difficulty (or Medium).
    """
    return ProblemAttributes(
        title=extract_title(statement),
        category=detect_category(statement),
        difficulty=detect_difficulty(statement),
    )
