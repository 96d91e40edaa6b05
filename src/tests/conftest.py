"""Shared fixtures for microwin tests."""

import asyncio
from typing import List, Optional

import pytest

from microwin.decomposition.base import BaseDecompositionClient
from microwin.models.task_models import StepProposal, SubStep, Step, Task, UserProfile


def proposals(*pairs) -> List[StepProposal]:
    """Build proposals from (description, minutes) pairs."""
    return [StepProposal(description=d, estimated_minutes=m) for d, m in pairs]


KITCHEN_STEPS = proposals(
    ("Clear the counters", 4),
    ("Load the dishwasher", 6),
    ("Wipe the stove", 9),
    ("Sweep the floor", 5),
    ("Take out the trash", 2),
    ("Put the towels in the wash", 3),
)


class FakeDecompositionClient(BaseDecompositionClient):
    """Decomposition client returning canned proposals through the real contract checks."""

    def __init__(self):
        super().__init__()
        self.steps: List[StepProposal] = list(KITCHEN_STEPS)
        self.sub_steps: Optional[List[StepProposal]] = None
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[tuple] = []

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def _generate_steps(self, description, profile=None):
        self.calls.append(("task", description, profile))
        await self._wait()
        return self.steps

    async def _generate_sub_steps(self, description, parent_estimated_minutes, profile=None):
        self.calls.append(("step", description, parent_estimated_minutes))
        await self._wait()
        if self.sub_steps is not None:
            return self.sub_steps
        third = parent_estimated_minutes / 3
        return proposals(
            (f"{description}: part 1", third),
            (f"{description}: part 2", third),
            (f"{description}: part 3", parent_estimated_minutes - 2 * third),
        )


@pytest.fixture
def fake_client():
    """Decomposition client with canned answers."""
    return FakeDecompositionClient()


@pytest.fixture
def sample_task():
    """Task with one plain step, one step with sub-steps and one finished step."""
    return Task(
        id="task-1",
        main_task="Clean the kitchen",
        created_at=1700000000000,
        steps=[
            Step(id="s1", text="Clear the counters", estimated_minutes=4),
            Step(
                id="s2",
                text="Wipe the stove",
                estimated_minutes=9,
                sub_steps=[
                    SubStep(id="s2a", text="Spray cleaner", estimated_minutes=3),
                    SubStep(id="s2b", text="Scrub burners", estimated_minutes=4),
                    SubStep(id="s2c", text="Dry surface", estimated_minutes=2),
                ],
            ),
            Step(id="s3", text="Take out the trash", estimated_minutes=2, completed=True),
        ],
    )


@pytest.fixture
def profile():
    """User profile with every preference filled in."""
    return UserProfile(
        granularity_preference="High",
        triggers_to_avoid="loud music",
        support_style="gentle reminders",
    )
