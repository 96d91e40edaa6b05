"""Task decomposition subsystem.

This module provides the task tree operations, the decomposition client
contract, progress aggregation and the orchestrator that ties them to a
task store.
"""

from .base import (
    BaseDecompositionClient,
    DecompositionError,
    DecompositionEmpty,
    DecompositionContractViolation,
    DecompositionUnavailable,
)
from .llm_client import LLMDecompositionClient
from .orchestrator import DecompositionOrchestrator, TASK_TARGET
from . import progress_tracker, task_tree

__all__ = [
    "BaseDecompositionClient",
    "DecompositionError",
    "DecompositionEmpty",
    "DecompositionContractViolation",
    "DecompositionUnavailable",
    "LLMDecompositionClient",
    "DecompositionOrchestrator",
    "TASK_TARGET",
    "progress_tracker",
    "task_tree",
]
