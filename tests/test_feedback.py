"""Tests for LLM explanation review."""

import json
from unittest.mock import AsyncMock, MagicMock

from code_tutor.analysis.feedback import ExplanationReviewer
from code_tutor.models.problem import DEFAULT_AI_FEEDBACK


def _completion(content: str) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


async def test_no_api_key_returns_default():
    reviewer = ExplanationReviewer(api_key=None)
    assert reviewer.client is None
    assert await reviewer.review("Two Sum", "Use a hash map.") == DEFAULT_AI_FEEDBACK


async def test_blank_explanation_has_no_feedback():
    reviewer = ExplanationReviewer(api_key=None)
    assert await reviewer.review("Two Sum", "   ") == ""


async def test_feedback_from_model():
    reviewer = ExplanationReviewer(api_key="test-key")
    reviewer.client = MagicMock()
    reviewer.client.chat.completions.create = AsyncMock(
        return_value=_completion(json.dumps({"feedback": "Good use of complements."}))
    )

    feedback = await reviewer.review("Two Sum", "Use a hash map of complements.")

    assert feedback == "Good use of complements."
    kwargs = reviewer.client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert "Two Sum" in kwargs["messages"][0]["content"]


async def test_malformed_response_falls_back():
    reviewer = ExplanationReviewer(api_key="test-key")
    reviewer.client = MagicMock()
    reviewer.client.chat.completions.create = AsyncMock(return_value=_completion("not json"))
    assert await reviewer.review("Two Sum", "Use a hash map.") == DEFAULT_AI_FEEDBACK


async def test_api_error_falls_back():
    reviewer = ExplanationReviewer(api_key="test-key")
    reviewer.client = MagicMock()
    reviewer.client.chat.completions.create = AsyncMock(side_effect=RuntimeError("timeout"))
    assert await reviewer.review("Two Sum", "Use a hash map.") == DEFAULT_AI_FEEDBACK
