"""Data models for tasks, decomposition results and storage events."""

from .task_models import (
    SubStep,
    Step,
    Task,
    StepProposal,
    UserProfile,
    ProgressStats,
)
from .llm_models import ModelProvider, ModelConfig
from .storage_models import StoreEvent, StoreEventKind
from .orchestration_models import RequestState, RequestOutcome, Notification

__all__ = [
    "SubStep",
    "Step",
    "Task",
    "StepProposal",
    "UserProfile",
    "ProgressStats",
    "ModelProvider",
    "ModelConfig",
    "StoreEvent",
    "StoreEventKind",
    "RequestState",
    "RequestOutcome",
    "Notification",
]
