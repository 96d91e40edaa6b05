"""Models for decomposition request tracking and user notifications."""

from pydantic import BaseModel, Field
from enum import Enum


class RequestState(str, Enum):
    """Lifecycle of one decomposition request target."""

    IDLE = "idle"
    REQUESTING = "requesting"
    APPLIED = "applied"
    FAILED = "failed"


class RequestOutcome(str, Enum):
    """What happened to a triggered decomposition."""

    APPLIED = "applied"
    FAILED = "failed"
    IGNORED = "ignored"  # Duplicate trigger or nothing to act on


class Notification(BaseModel):
    """User-facing failure notice."""

    action: str = Field(description="Failed action: create, breakdown, save, ...")
    message: str = Field(description="Short description")
