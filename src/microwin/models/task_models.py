"""Data models for the task / step / sub-step hierarchy."""

import time
from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import uuid4


def new_id() -> str:
    """Generate a fresh node identifier."""
    return str(uuid4())


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class SubStep(BaseModel):
    """Leaf node of the task tree."""

    id: str = Field(default_factory=new_id, description="Unique sub-step ID")
    text: str = Field(description="Sub-step description")
    estimated_minutes: Optional[float] = Field(
        default=None, alias="estimatedMinutes", description="Estimated minutes"
    )
    completed: bool = Field(default=False)

    class Config:
        """Pydantic configuration."""

        frozen = True
        populate_by_name = True


class Step(BaseModel):
    """First-level actionable unit of a task."""

    id: str = Field(default_factory=new_id, description="Unique step ID")
    text: str = Field(description="Step description")
    estimated_minutes: Optional[float] = Field(
        default=None, alias="estimatedMinutes", description="Estimated minutes"
    )
    completed: bool = Field(default=False)
    sub_steps: List[SubStep] = Field(
        default_factory=list, alias="subSteps", description="Owned sub-steps"
    )

    class Config:
        """Pydantic configuration."""

        frozen = True
        populate_by_name = True

    @property
    def all_sub_steps_completed(self) -> bool:
        """True when every sub-step is done (vacuously true without sub-steps)."""
        return all(s.completed for s in self.sub_steps)


class Task(BaseModel):
    """
    Root of the task tree.

    Tasks are immutable values: every tree operation returns a new Task.
    Serialize with ``to_record()`` to get the persisted camelCase shape.
    """

    id: str = Field(default_factory=new_id, description="Unique task ID")
    main_task: str = Field(alias="mainTask", description="Main task description")
    steps: List[Step] = Field(default_factory=list)
    created_at: int = Field(
        default_factory=now_ms, alias="createdAt", description="Epoch milliseconds"
    )

    class Config:
        """Pydantic configuration."""

        frozen = True
        populate_by_name = True

    def to_record(self) -> dict:
        """Dump to the persisted record shape."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_record(cls, record: dict) -> "Task":
        """Load from the persisted record shape."""
        return cls.model_validate(record)


class StepProposal(BaseModel):
    """One entry returned by a decomposition request."""

    description: str = Field(description="What to do")
    estimated_minutes: float = Field(description="Estimated minutes")


class UserProfile(BaseModel):
    """Preferences that steer generation."""

    granularity_preference: str = Field(
        default="", description="How small steps should be (e.g. Normal, High)"
    )
    triggers_to_avoid: str = Field(
        default="", description="Things that derail the user"
    )
    support_style: str = Field(default="", description="Preferred kind of support")

    def is_empty(self) -> bool:
        """True when no preference has any non-blank text."""
        return not (
            self.granularity_preference.strip()
            or self.triggers_to_avoid.strip()
            or self.support_style.strip()
        )


class ProgressStats(BaseModel):
    """Completion counts over a flattened task."""

    completed_count: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)
    percent: float = Field(default=0.0, ge=0, le=100)
