"""LLM feedback on the user's own explanation of a problem."""

import json

import structlog
from openai import AsyncOpenAI

from code_tutor.models.problem import DEFAULT_AI_FEEDBACK

logger = structlog.get_logger()

REVIEW_PROMPT = """\
You are a patient algorithms tutor. A student is about to see the solution to a \
coding problem, but first explained in their own words how they would solve it.

Problem:
{problem}

Give short, encouraging feedback (2-3 sentences) on the student's approach: \
what they got right, and one concrete thing to think about. Do not reveal \
the full solution.

Respond with a JSON object:
{{"feedback": "<feedback>"}}
"""


class ExplanationReviewer:
    """Reviews a submitted explanation against the problem statement.

    Without an API key every review returns the default feedback message.

    Args:
        api_key: OpenAI API key, or None to disable LLM review.
        model: Model to use for feedback.
    """

    def __init__(self, api_key: str | None, model: str = "gpt-4o-mini"):
        self.client = AsyncOpenAI(api_key=api_key) if api_key else None
        self.model = model

    async def review(self, problem_statement: str, explanation: str) -> str:
        """Feedback text for ``explanation``; empty for a blank explanation."""
        if not explanation.strip():
            return ""
        if self.client is None:
            return DEFAULT_AI_FEEDBACK

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": REVIEW_PROMPT.format(problem=problem_statement)},
                    {"role": "user", "content": f"My approach:\n{explanation}"},
                ],
                temperature=0.5,
                response_format={"type": "json_object"},
            )
            result = json.loads(response.choices[0].message.content)
            logger.info("explanation_reviewed")
            return result.get("feedback") or DEFAULT_AI_FEEDBACK

        except Exception:
            logger.exception("explanation_review_failed")
            return DEFAULT_AI_FEEDBACK
