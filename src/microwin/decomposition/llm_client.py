"""Decomposition client backed by a generative LLM provider."""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .base import (
    BaseDecompositionClient,
    DecompositionContractViolation,
    DecompositionEmpty,
    DecompositionUnavailable,
    SUB_STEP_COUNT,
)
from ..llm.base import BaseLLM, APIError, RateLimitError
from ..models.task_models import StepProposal, UserProfile


logger = logging.getLogger(__name__)

COACH_ROLE = (
    "You are an executive function coach helping someone who struggles with "
    "task initiation and distraction. You turn overwhelming work into small, "
    "concrete, physical actions. Always answer with a single JSON object."
)


class LLMDecompositionClient(BaseDecompositionClient):
    """
    Decomposition client that prompts an LLM and parses its JSON answer.

    PATTERN: Prompt -> JSON extraction -> pydantic validation
    GOTCHA: Models wrap JSON in markdown fences or prose; extraction tolerates both
    """

    def __init__(
        self,
        llm: BaseLLM,
        temperature: float = 0.4,
        max_tokens: Optional[int] = None,
        min_steps: int = 5,
        max_steps: int = 7,
    ):
        """
        Initialize LLM decomposition client.

        Args:
            llm: Generative provider
            temperature: Sampling temperature
            max_tokens: Response token limit (provider default if None)
            min_steps: Fewest steps accepted for an initial decomposition
            max_steps: Most steps accepted for an initial decomposition
        """
        super().__init__(min_steps=min_steps, max_steps=max_steps)
        self.llm = llm
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def close(self) -> None:
        """Close the underlying provider."""
        await self.llm.close()

    async def _generate_steps(
        self,
        description: str,
        profile: Optional[UserProfile] = None,
    ) -> List[StepProposal]:
        prompt = (
            f"Break this task into {self.min_steps}-{self.max_steps} actionable "
            f"micro-win steps, each with a realistic time estimate in minutes.\n\n"
            f"Task: {description}\n\n"
            "Constraints:\n"
            "- Add a 20-30% buffer to standard estimates to allow for distractions "
            "and task switching.\n"
            "- If a step takes less than 1 minute, estimate it as 1.\n"
            '- Respond with JSON: {"steps": [{"task_description": string, '
            '"estimated_minutes": number}]}'
        )
        response = await self._ask(self._build_messages(prompt, profile))
        return self._parse_proposals(response, "steps")

    async def _generate_sub_steps(
        self,
        description: str,
        parent_estimated_minutes: float,
        profile: Optional[UserProfile] = None,
    ) -> List[StepProposal]:
        prompt = (
            f'The user is stuck on this step: "{description}". '
            f"It was estimated to take {parent_estimated_minutes:g} minutes.\n\n"
            f"Break it into exactly {SUB_STEP_COUNT} smaller, concrete, physical "
            "actions.\n\n"
            f"The estimated_minutes of the {SUB_STEP_COUNT} sub-steps MUST sum to "
            f"exactly {parent_estimated_minutes:g}. Decimals such as 1.5 are "
            "allowed. Divide the time according to the effort of each action.\n"
            '- Respond with JSON: {"subSteps": [{"task_description": string, '
            '"estimated_minutes": number}]}'
        )
        response = await self._ask(self._build_messages(prompt, profile))
        return self._parse_proposals(response, "subSteps")

    def _build_messages(
        self,
        prompt: str,
        profile: Optional[UserProfile],
    ) -> List[Dict[str, str]]:
        system = COACH_ROLE
        if profile is not None and not profile.is_empty():
            system += (
                "\n\nUser profile:\n"
                f"- Preferred step granularity: {profile.granularity_preference or 'Normal'}\n"
                f"- Triggers to avoid: {profile.triggers_to_avoid or 'none given'}\n"
                f"- Preferred support: {profile.support_style or 'none given'}"
            )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]

    async def _ask(self, messages: List[Dict[str, str]]) -> str:
        try:
            return await self.llm.agenerate(
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except (APIError, RateLimitError) as e:
            self.logger.error(f"Generative service call failed: {e}")
            raise DecompositionUnavailable(str(e)) from e
        except ValueError as e:
            # Request rejected before sending (context window)
            self.logger.error(f"Request rejected: {e}")
            raise DecompositionUnavailable(str(e)) from e

    def _parse_proposals(self, response: str, key: str) -> List[StepProposal]:
        """
        Convert a raw response into proposals.

        Args:
            response: Raw model output
            key: JSON key holding the entry list

        Returns:
            Proposals in model order (not yet contract-checked)

        Raises:
            DecompositionEmpty: Entry list missing or empty
            DecompositionContractViolation: Output is not the expected JSON shape
        """
        data = self._extract_json_from_response(response)

        entries = data.get(key)
        if entries is None:
            raise DecompositionEmpty(f"Response has no '{key}' list")
        if not isinstance(entries, list):
            raise DecompositionContractViolation(f"'{key}' is not a list")
        if not entries:
            raise DecompositionEmpty(f"Response '{key}' list is empty")

        try:
            return [self._to_proposal(entry) for entry in entries]
        except (ValidationError, TypeError, AttributeError) as e:
            self.logger.error(f"Malformed entry in '{key}': {e}")
            raise DecompositionContractViolation(f"Malformed entry in '{key}'") from e

    @staticmethod
    def _to_proposal(entry: Any) -> StepProposal:
        return StepProposal(
            description=entry.get("task_description", entry.get("description", "")),
            estimated_minutes=entry.get(
                "estimated_minutes", entry.get("estimatedMinutes")
            ),
        )

    def _extract_json_from_response(self, response: str) -> Dict[str, Any]:
        """
        Extract a JSON object from LLM output, handling markdown and extra text.

        Raises:
            DecompositionContractViolation: If no JSON object can be found
        """
        try:
            data = json.loads(response)
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

        json_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", response, re.DOTALL)
        if json_match:
            try:
                return json.loads(json_match.group(1))
            except json.JSONDecodeError:
                pass

        json_match = re.search(r"\{.*\}", response, re.DOTALL)
        if json_match:
            try:
                return json.loads(json_match.group(0))
            except json.JSONDecodeError:
                pass

        self.logger.error(f"Could not extract JSON from response: {response[:500]}")
        raise DecompositionContractViolation("Response is not a JSON object")
