"""Models for task store change notifications."""

from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum

from .task_models import Task


class StoreEventKind(str, Enum):
    """What changed in the store."""

    CURRENT_CHANGED = "current_changed"
    HISTORY_CHANGED = "history_changed"
    WRITE_FAILED = "write_failed"


class StoreEvent(BaseModel):
    """Change notification pushed to store subscribers."""

    kind: StoreEventKind
    task: Optional[Task] = Field(default=None, description="New current task")
    history: Optional[List[Task]] = Field(
        default=None, description="New history snapshot"
    )
    error: Optional[str] = Field(default=None, description="Failure description")
    remote: bool = Field(
        default=False, description="Whether the change came from another process"
    )
