"""Abstract base class for task store backends."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional
from ..models.task_models import Task, UserProfile
from ..models.storage_models import StoreEvent, StoreEventKind


logger = logging.getLogger(__name__)

StoreListener = Callable[[StoreEvent], None]


class BaseTaskStore(ABC):
    """
    Persistence port for the current task, the archive and the user profile.

    Every backend presents the same contract: reads return the latest value
    known to this process and every write replaces whole values. Changes are
    pushed to subscribers as StoreEvents, including changes that arrive from
    other processes on shared backends.
    """

    def __init__(self):
        self._listeners: List[StoreListener] = []

    async def start(self) -> None:
        """Open connections and load initial state (no-op for local backends)."""
        pass

    async def close(self) -> None:
        """Flush pending writes and release resources."""
        pass

    @abstractmethod
    async def load_current(self) -> Optional[Task]:
        """
        Load the current task.

        Returns:
            Current task, or None when the slot is empty

        Raises:
            StoreReadFailed: Backend could not be read
        """
        pass

    @abstractmethod
    async def save_current(self, task: Task) -> None:
        """
        Replace the current task.

        Raises:
            StoreWriteFailed: Backend rejected the write
        """
        pass

    @abstractmethod
    async def clear_current(self) -> None:
        """
        Empty the current task slot.

        Raises:
            StoreWriteFailed: Backend rejected the write
        """
        pass

    @abstractmethod
    async def archive(self, task: Task) -> None:
        """
        Append a task to history.

        If the task is also the current task, the current slot is cleared
        in the same write.

        Raises:
            StoreWriteFailed: Backend rejected the write
        """
        pass

    @abstractmethod
    async def list_history(self) -> List[Task]:
        """
        List archived tasks in insertion order.

        Raises:
            StoreReadFailed: Backend could not be read
        """
        pass

    @abstractmethod
    async def delete_from_history(self, task_id: str) -> bool:
        """
        Remove an archived task.

        Returns:
            True if deleted, False if not found

        Raises:
            StoreWriteFailed: Backend rejected the write
        """
        pass

    @abstractmethod
    async def load_profile(self) -> Optional[UserProfile]:
        """
        Load the saved user profile.

        Raises:
            StoreReadFailed: Backend could not be read
        """
        pass

    @abstractmethod
    async def save_profile(self, profile: UserProfile) -> None:
        """
        Replace the saved user profile.

        Raises:
            StoreWriteFailed: Backend rejected the write
        """
        pass

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Register a change listener.

        Args:
            listener: Called with every StoreEvent

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Error in store listener: {e}")

    def _emit_current(self, task: Optional[Task], remote: bool = False) -> None:
        self._emit(
            StoreEvent(kind=StoreEventKind.CURRENT_CHANGED, task=task, remote=remote)
        )

    def _emit_history(self, history: List[Task], remote: bool = False) -> None:
        self._emit(
            StoreEvent(
                kind=StoreEventKind.HISTORY_CHANGED, history=history, remote=remote
            )
        )


class StoreError(Exception):
    """Base class for task store failures."""

    pass


class StoreReadFailed(StoreError):
    """Raised when stored state cannot be read."""

    pass


class StoreWriteFailed(StoreError):
    """Raised when a write is rejected."""

    pass
