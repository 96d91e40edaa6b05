"""In-process task store with immediate read-after-write consistency."""

import logging
from typing import List, Optional

from .base import BaseTaskStore
from ..models.task_models import Task, UserProfile

logger = logging.getLogger(__name__)


class InMemoryTaskStore(BaseTaskStore):
    """Task store held in process memory; state lasts for the process lifetime."""

    def __init__(self):
        super().__init__()
        self._current: Optional[Task] = None
        self._history: List[Task] = []
        self._profile: Optional[UserProfile] = None

    async def load_current(self) -> Optional[Task]:
        return self._current

    async def save_current(self, task: Task) -> None:
        self._current = task
        logger.debug(f"Saved current task {task.id}")
        self._emit_current(task)

    async def clear_current(self) -> None:
        self._current = None
        self._emit_current(None)

    async def archive(self, task: Task) -> None:
        self._history = [t for t in self._history if t.id != task.id] + [task]
        logger.info(f"Archived task {task.id}")
        if self._current is not None and self._current.id == task.id:
            self._current = None
            self._emit_current(None)
        self._emit_history(list(self._history))

    async def list_history(self) -> List[Task]:
        return list(self._history)

    async def delete_from_history(self, task_id: str) -> bool:
        remaining = [t for t in self._history if t.id != task_id]
        if len(remaining) == len(self._history):
            return False
        self._history = remaining
        self._emit_history(list(self._history))
        return True

    async def load_profile(self) -> Optional[UserProfile]:
        return self._profile

    async def save_profile(self, profile: UserProfile) -> None:
        self._profile = profile
