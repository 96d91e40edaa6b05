"""SQLite-backed task store for local persistence across sessions."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .base import BaseTaskStore, StoreReadFailed, StoreWriteFailed
from ..models.task_models import Task, UserProfile

logger = logging.getLogger(__name__)

CURRENT_SLOT = "current_task"
PROFILE_SLOT = "user_profile"


class SQLiteTaskStore(BaseTaskStore):
    """
    Task store using a local SQLite file.

    The current task and the profile live in a key/value table; history is
    its own table ordered by an autoincrement sequence, so insertion order
    survives restarts.
    """

    def __init__(self, db_path: str):
        """
        Initialize SQLite store.

        Args:
            db_path: Database file (":memory:" is not supported, each call reconnects)
        """
        super().__init__()
        self.db_path = Path(db_path)
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Ensure database and tables exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS slots (
                    slot TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS history (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id TEXT NOT NULL UNIQUE,
                    task_json TEXT NOT NULL
                )
            """)
            conn.commit()

    def _read_slot(self, slot: str) -> Optional[dict]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value_json FROM slots WHERE slot = ?",
                    (slot,),
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to read {slot}: {e}")
            raise StoreReadFailed(f"Could not read {slot}") from e

        if row is None:
            return None

        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt {slot} record: {e}")
            raise StoreReadFailed(f"Corrupt {slot} record") from e

    def _write_slot(self, slot: str, value: Optional[dict]) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                if value is None:
                    conn.execute("DELETE FROM slots WHERE slot = ?", (slot,))
                else:
                    conn.execute(
                        "INSERT OR REPLACE INTO slots (slot, value_json) VALUES (?, ?)",
                        (slot, json.dumps(value)),
                    )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to write {slot}: {e}")
            raise StoreWriteFailed(f"Could not write {slot}") from e

    async def load_current(self) -> Optional[Task]:
        record = self._read_slot(CURRENT_SLOT)
        if record is None:
            return None
        try:
            return Task.from_record(record)
        except ValidationError as e:
            logger.error(f"Invalid current task record: {e}")
            raise StoreReadFailed("Invalid current task record") from e

    async def save_current(self, task: Task) -> None:
        self._write_slot(CURRENT_SLOT, task.to_record())
        logger.debug(f"Saved current task {task.id}")
        self._emit_current(task)

    async def clear_current(self) -> None:
        self._write_slot(CURRENT_SLOT, None)
        self._emit_current(None)

    async def archive(self, task: Task) -> None:
        try:
            current = await self.load_current()
        except StoreReadFailed as e:
            # Unreadable slot counts as not holding this task
            logger.warning(f"Archiving without clearing unreadable current slot: {e}")
            current = None
        clears_current = current is not None and current.id == task.id

        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO history (task_id, task_json) VALUES (?, ?)",
                    (task.id, json.dumps(task.to_record())),
                )
                if clears_current:
                    conn.execute("DELETE FROM slots WHERE slot = ?", (CURRENT_SLOT,))
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to archive task {task.id}: {e}")
            raise StoreWriteFailed(f"Could not archive task {task.id}") from e

        logger.info(f"Archived task {task.id}")
        if clears_current:
            self._emit_current(None)
        await self._emit_history_snapshot()

    async def _emit_history_snapshot(self) -> None:
        """Notify listeners of the committed history; read errors are only logged."""
        try:
            history = await self.list_history()
        except StoreReadFailed as e:
            logger.warning(f"History changed but could not be re-read: {e}")
            return
        self._emit_history(history)

    async def list_history(self) -> List[Task]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT task_json FROM history ORDER BY seq ASC"
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to read history: {e}")
            raise StoreReadFailed("Could not read history") from e

        history = []
        for row in rows:
            try:
                history.append(Task.from_record(json.loads(row[0])))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Skipping corrupt history record: {e}")
        return history

    async def delete_from_history(self, task_id: str) -> bool:
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    "DELETE FROM history WHERE task_id = ?",
                    (task_id,),
                )
                conn.commit()
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Failed to delete task {task_id} from history: {e}")
            raise StoreWriteFailed(f"Could not delete task {task_id}") from e

        if deleted:
            await self._emit_history_snapshot()
        return deleted

    async def load_profile(self) -> Optional[UserProfile]:
        record = self._read_slot(PROFILE_SLOT)
        if record is None:
            return None
        try:
            return UserProfile.model_validate(record)
        except ValidationError as e:
            logger.error(f"Invalid profile record: {e}")
            raise StoreReadFailed("Invalid profile record") from e

    async def save_profile(self, profile: UserProfile) -> None:
        self._write_slot(PROFILE_SLOT, profile.model_dump(mode="json"))
