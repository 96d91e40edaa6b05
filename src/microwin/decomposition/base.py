"""Decomposition client abstraction and its response contract."""

import logging
import math
from abc import ABC, abstractmethod
from typing import List, Optional
from ..models.task_models import StepProposal, UserProfile


logger = logging.getLogger(__name__)

SUB_STEP_COUNT = 3
SUM_TOLERANCE = 1e-6


class BaseDecompositionClient(ABC):
    """
    Abstract base class for decomposition clients.

    Subclasses talk to a generative service and return raw proposals from
    _generate_steps() / _generate_sub_steps(). The public methods validate
    every response so no backend can hand the orchestrator a list that breaks
    the count or time-conservation rules.

    Clients never retry; that decision belongs to the caller.
    """

    def __init__(self, min_steps: int = 5, max_steps: int = 7):
        """
        Initialize decomposition client.

        Args:
            min_steps: Fewest steps accepted for an initial decomposition
            max_steps: Most steps accepted for an initial decomposition
        """
        self.min_steps = min_steps
        self.max_steps = max_steps
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    @abstractmethod
    async def _generate_steps(
        self,
        description: str,
        profile: Optional[UserProfile] = None,
    ) -> List[StepProposal]:
        """
        Ask the service for an initial step list.

        Raises:
            DecompositionUnavailable: When the service cannot be reached
            DecompositionContractViolation: When the answer cannot be parsed
        """
        pass

    @abstractmethod
    async def _generate_sub_steps(
        self,
        description: str,
        parent_estimated_minutes: float,
        profile: Optional[UserProfile] = None,
    ) -> List[StepProposal]:
        """
        Ask the service to break one step into sub-steps.

        Raises:
            DecompositionUnavailable: When the service cannot be reached
            DecompositionContractViolation: When the answer cannot be parsed
        """
        pass

    async def close(self) -> None:
        """Release client resources."""
        pass

    async def decompose_task(
        self,
        description: str,
        profile: Optional[UserProfile] = None,
    ) -> List[StepProposal]:
        """
        Decompose a task into an ordered list of steps.

        Args:
            description: Task text, passed through verbatim
            profile: Optional user preferences

        Returns:
            Validated step proposals

        Raises:
            DecompositionEmpty: Service returned no steps
            DecompositionContractViolation: Wrong count or malformed entries
            DecompositionUnavailable: Service call failed
        """
        proposals = await self._generate_steps(description, profile)
        self.validate_steps(proposals)
        self.logger.info(
            f"Decomposed task into {len(proposals)} steps "
            f"({sum(p.estimated_minutes for p in proposals):g} min)"
        )
        return proposals

    async def decompose_step(
        self,
        description: str,
        parent_estimated_minutes: float,
        profile: Optional[UserProfile] = None,
    ) -> List[StepProposal]:
        """
        Decompose a step into exactly three sub-steps conserving its time.

        Args:
            description: Step text
            parent_estimated_minutes: Budget the sub-steps must sum to
            profile: Optional user preferences

        Returns:
            Validated sub-step proposals

        Raises:
            DecompositionEmpty: Service returned no sub-steps
            DecompositionContractViolation: Wrong count or non-conserving sum
            DecompositionUnavailable: Service call failed
        """
        proposals = await self._generate_sub_steps(
            description, parent_estimated_minutes, profile
        )
        self.validate_sub_steps(proposals, parent_estimated_minutes)
        self.logger.info(
            f"Broke step into {len(proposals)} sub-steps "
            f"({parent_estimated_minutes:g} min conserved)"
        )
        return proposals

    def validate_steps(self, proposals: List[StepProposal]) -> None:
        """
        Check an initial decomposition.

        Raises:
            DecompositionEmpty: No entries
            DecompositionContractViolation: Count outside range or bad entry
        """
        if not proposals:
            raise DecompositionEmpty("Service returned no steps")

        if not self.min_steps <= len(proposals) <= self.max_steps:
            self.logger.warning(
                f"Decomposition generated {len(proposals)} steps, "
                f"expected {self.min_steps}-{self.max_steps}"
            )
            raise DecompositionContractViolation(
                f"Expected {self.min_steps}-{self.max_steps} steps, "
                f"got {len(proposals)}"
            )

        self._validate_entries(proposals)

    def validate_sub_steps(
        self,
        proposals: List[StepProposal],
        parent_estimated_minutes: float,
    ) -> None:
        """
        Check a further decomposition against the time-conservation rule.

        Raises:
            DecompositionEmpty: No entries
            DecompositionContractViolation: Count != 3, bad entry or sum mismatch
        """
        if not proposals:
            raise DecompositionEmpty("Service returned no sub-steps")

        if len(proposals) != SUB_STEP_COUNT:
            raise DecompositionContractViolation(
                f"Expected exactly {SUB_STEP_COUNT} sub-steps, got {len(proposals)}"
            )

        self._validate_entries(proposals)

        total = sum(p.estimated_minutes for p in proposals)
        # A NaN total or budget fails this check
        if not abs(total - parent_estimated_minutes) <= SUM_TOLERANCE:
            self.logger.warning(
                f"Sub-step minutes sum to {total:g}, "
                f"parent budget is {parent_estimated_minutes:g}"
            )
            raise DecompositionContractViolation(
                f"Sub-step estimates sum to {total:g} instead of "
                f"{parent_estimated_minutes:g}"
            )

    def _validate_entries(self, proposals: List[StepProposal]) -> None:
        for index, proposal in enumerate(proposals, start=1):
            if not proposal.description.strip():
                raise DecompositionContractViolation(
                    f"Entry {index} has an empty description"
                )
            if not math.isfinite(proposal.estimated_minutes):
                raise DecompositionContractViolation(
                    f"Entry {index} has non-finite estimate "
                    f"{proposal.estimated_minutes}"
                )
            if proposal.estimated_minutes <= 0:
                raise DecompositionContractViolation(
                    f"Entry {index} has non-positive estimate "
                    f"{proposal.estimated_minutes:g}"
                )


class DecompositionError(Exception):
    """Base class for decomposition failures."""

    pass


class DecompositionEmpty(DecompositionError):
    """Raised when the service returns zero entries."""

    pass


class DecompositionContractViolation(DecompositionError):
    """Raised when a response breaks the count or time-conservation contract."""

    pass


class DecompositionUnavailable(DecompositionError):
    """Raised when the service call cannot complete."""

    pass
