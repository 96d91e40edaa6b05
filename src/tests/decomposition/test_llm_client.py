"""Tests for the LLM-backed decomposition client."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from microwin.decomposition.base import (
    DecompositionContractViolation,
    DecompositionEmpty,
    DecompositionUnavailable,
)
from microwin.decomposition.llm_client import LLMDecompositionClient
from microwin.llm.base import BaseLLM, APIError, RateLimitError
from microwin.models.task_models import UserProfile


def _steps_json(count: int = 5, key: str = "steps") -> str:
    return json.dumps(
        {
            key: [
                {"task_description": f"Step {i}", "estimated_minutes": 2}
                for i in range(count)
            ]
        }
    )


@pytest.fixture
def mock_llm():
    """Create mock LLM provider."""
    llm = MagicMock(spec=BaseLLM)
    llm.agenerate = AsyncMock(return_value=_steps_json())
    llm.close = AsyncMock()
    return llm


@pytest.fixture
def client(mock_llm):
    """Create client around the mock provider."""
    return LLMDecompositionClient(mock_llm, temperature=0.2, max_tokens=512)


@pytest.mark.asyncio
class TestLLMDecompositionClient:
    """Test suite for LLMDecompositionClient."""

    async def test_decompose_task(self, client, mock_llm):
        """Parses task_description / estimated_minutes entries."""
        result = await client.decompose_task("Clean the kitchen")

        assert [p.description for p in result] == [f"Step {i}" for i in range(5)]
        assert all(p.estimated_minutes == 2 for p in result)

        kwargs = mock_llm.agenerate.call_args.kwargs
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 512
        assert "Clean the kitchen" in kwargs["messages"][1]["content"]

    async def test_profile_in_system_prompt(self, client, mock_llm, profile):
        """Profile preferences are given to the model."""
        await client.decompose_task("Clean the kitchen", profile)

        system = mock_llm.agenerate.call_args.kwargs["messages"][0]["content"]
        assert "High" in system
        assert "loud music" in system
        assert "gentle reminders" in system

    async def test_empty_profile_not_in_prompt(self, client, mock_llm):
        """An empty profile adds nothing."""
        await client.decompose_task("Clean the kitchen", UserProfile())

        system = mock_llm.agenerate.call_args.kwargs["messages"][0]["content"]
        assert "User profile" not in system

    async def test_decompose_step_camel_case_keys(self, client, mock_llm):
        """Accepts the camelCase entry spelling too."""
        mock_llm.agenerate.return_value = json.dumps(
            {
                "subSteps": [
                    {"description": "Grab the broom", "estimatedMinutes": 1},
                    {"description": "Sweep", "estimatedMinutes": 3.5},
                    {"description": "Empty dustpan", "estimatedMinutes": 0.5},
                ]
            }
        )

        result = await client.decompose_step("Sweep the floor", 5)

        assert [p.estimated_minutes for p in result] == [1, 3.5, 0.5]
        assert "5" in mock_llm.agenerate.call_args.kwargs["messages"][1]["content"]

    async def test_json_in_markdown_fence(self, client, mock_llm):
        """JSON wrapped in a code fence is extracted."""
        mock_llm.agenerate.return_value = f"Here you go:\n```json\n{_steps_json(6)}\n```"
        result = await client.decompose_task("Clean the kitchen")
        assert len(result) == 6

    async def test_json_with_surrounding_text(self, client, mock_llm):
        """JSON surrounded by prose is extracted."""
        mock_llm.agenerate.return_value = f"Sure! {_steps_json(7)} Good luck."
        result = await client.decompose_task("Clean the kitchen")
        assert len(result) == 7

    async def test_not_json(self, client, mock_llm):
        """Prose without JSON breaks the contract."""
        mock_llm.agenerate.return_value = "I cannot help with that."
        with pytest.raises(DecompositionContractViolation):
            await client.decompose_task("Clean the kitchen")

    async def test_missing_key_is_empty(self, client, mock_llm):
        """A response without the list counts as empty."""
        mock_llm.agenerate.return_value = json.dumps({"other": []})
        with pytest.raises(DecompositionEmpty):
            await client.decompose_task("Clean the kitchen")

    async def test_empty_list(self, client, mock_llm):
        """An empty list is reported as empty."""
        mock_llm.agenerate.return_value = json.dumps({"steps": []})
        with pytest.raises(DecompositionEmpty):
            await client.decompose_task("Clean the kitchen")

    async def test_malformed_entry(self, client, mock_llm):
        """Entries without a usable estimate break the contract."""
        mock_llm.agenerate.return_value = json.dumps(
            {"steps": [{"task_description": "Step", "estimated_minutes": "soon"}] * 5}
        )
        with pytest.raises(DecompositionContractViolation):
            await client.decompose_task("Clean the kitchen")

    async def test_sum_mismatch_rejected(self, client, mock_llm):
        """Sub-steps from the model are held to the parent budget."""
        mock_llm.agenerate.return_value = _steps_json(3, key="subSteps")
        with pytest.raises(DecompositionContractViolation):
            await client.decompose_step("Sweep the floor", 5)

    @pytest.mark.parametrize(
        "error",
        [APIError("boom"), RateLimitError("slow down"), ValueError("too long")],
    )
    async def test_provider_errors_are_unavailable(self, client, mock_llm, error):
        """Provider failures become DecompositionUnavailable."""
        mock_llm.agenerate.side_effect = error
        with pytest.raises(DecompositionUnavailable):
            await client.decompose_task("Clean the kitchen")

    async def test_close_closes_provider(self, client, mock_llm):
        """Closing the client closes the provider."""
        await client.close()
        mock_llm.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_nan_in_model_answer_rejected(client, mock_llm):
    """JSON NaN literals parse as floats but fail the contract."""
    mock_llm.agenerate.return_value = (
        '{"subSteps": ['
        '{"task_description": "Spray", "estimated_minutes": NaN}, '
        '{"task_description": "Scrub", "estimated_minutes": 3}, '
        '{"task_description": "Dry", "estimated_minutes": 3}]}'
    )
    with pytest.raises(DecompositionContractViolation):
        await client.decompose_step("Wipe the stove", 9)
