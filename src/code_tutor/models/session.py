"""Session flow data models."""

from enum import StrEnum

from pydantic import BaseModel, Field

from code_tutor.models.solution import DebugSolution, EducationalSolution, ProblemStatement


class FlowStep(StrEnum):
    """Main problem-solving flow."""

    EXTRACTING = "extracting"
    USER_EXPLANATION = "user_explanation"
    GENERATING_SOLUTION = "generating_solution"
    SOLUTION_READY = "solution_ready"


class FlowState(StrEnum):
    """Reported state: the flow step, or debug layered over solution_ready."""

    EXTRACTING = "extracting"
    USER_EXPLANATION = "user_explanation"
    GENERATING_SOLUTION = "generating_solution"
    SOLUTION_READY = "solution_ready"
    DEBUG = "debug"


class View(StrEnum):
    """Page the desktop shell shows."""

    QUEUE = "queue"
    SOLUTIONS = "solutions"
    DEBUG = "debug"


class NotificationVariant(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    NEUTRAL = "neutral"


class Notification(BaseModel):
    """Transient toast shown to the user."""

    title: str
    message: str
    variant: NotificationVariant = NotificationVariant.NEUTRAL


class Screenshot(BaseModel):
    path: str
    preview: str | None = None


class FlowSnapshot(BaseModel):
    """Everything the renderer needs to draw the current session."""

    state: FlowState
    view: View
    debug_processing: bool = False
    problem_id: str = ""
    problem: ProblemStatement | None = None
    solution: EducationalSolution | None = None
    debug_solution: DebugSolution | None = None
    screenshots: list[Screenshot] = Field(default_factory=list)
