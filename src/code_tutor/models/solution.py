"""Artifacts produced by the extraction and solution pipeline."""

from pydantic import BaseModel, ConfigDict, Field

from code_tutor.models.reveal import SectionType


class ProblemStatement(BaseModel):
    """Problem extraction result."""

    model_config = ConfigDict(extra="allow")

    problem_statement: str


class Complexity(BaseModel):
    time: str = ""
    space: str = ""


class EducationalSolution(BaseModel):
    """Structured, sectioned explanation of a solved problem."""

    model_config = ConfigDict(extra="allow")

    problem_restatement: str = ""
    inputs_outputs_constraints: str = ""
    edge_cases: str = ""
    pattern_recognition: str = ""
    approaches: str = ""
    pseudocode: str = ""
    code: str = ""
    complexity: Complexity = Field(default_factory=Complexity)
    walkthrough: str = ""
    visual_aid: str = ""
    further_practice: str = ""

    def section_content(self, section_type: SectionType) -> str:
        """Text behind a revealable section."""
        if section_type == SectionType.CODE:
            return self.code
        if section_type == SectionType.APPROACH:
            return self.approaches
        if section_type == SectionType.PSEUDOCODE:
            return self.pseudocode
        return f"Time: {self.complexity.time}\nSpace: {self.complexity.space}"


class DebugSolution(BaseModel):
    """Debug pass over the user's own code."""

    model_config = ConfigDict(extra="allow")

    issues_identified: str = ""
    specific_improvements: str = ""
    educational_concepts: str = ""
    optimizations: str = ""
    explanation: str = ""
    key_learning: str = ""
    code: str = ""
    debug_analysis: str = ""
