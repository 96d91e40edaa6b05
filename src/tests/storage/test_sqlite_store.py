"""Tests for the SQLite task store."""

import sqlite3

import pytest
from unittest.mock import patch

from microwin.storage.base import StoreReadFailed
from microwin.storage.sqlite import CURRENT_SLOT, SQLiteTaskStore


@pytest.fixture
def db_path(tmp_path):
    """Database file in a temp directory."""
    return str(tmp_path / "nested" / "microwin.db")


@pytest.fixture
def store(db_path):
    """Create store."""
    return SQLiteTaskStore(db_path)


@pytest.mark.asyncio
class TestSQLiteTaskStore:
    """Test suite for SQLiteTaskStore."""

    async def test_creates_parent_directory(self, db_path, store):
        """The database directory is created on demand."""
        assert (await store.load_current()) is None
        assert sqlite3.connect(db_path).execute("SELECT 1").fetchone() == (1,)

    async def test_current_survives_reopen(self, db_path, store, sample_task):
        """State persists across store instances."""
        await store.save_current(sample_task)

        reopened = SQLiteTaskStore(db_path)
        assert await reopened.load_current() == sample_task

    async def test_clear_current(self, store, sample_task):
        """Clearing removes the row."""
        await store.save_current(sample_task)
        await store.clear_current()
        assert await store.load_current() is None

    async def test_archive_clears_current(self, db_path, store, sample_task):
        """Archive and clear happen in one write."""
        await store.save_current(sample_task)

        await store.archive(sample_task)

        reopened = SQLiteTaskStore(db_path)
        assert await reopened.load_current() is None
        assert await reopened.list_history() == [sample_task]

    async def test_history_order_and_dedupe(self, store, sample_task):
        """Insertion order survives; re-archiving moves a task to the end."""
        second = sample_task.model_copy(update={"id": "task-2"})
        await store.archive(sample_task)
        await store.archive(second)
        await store.archive(sample_task)

        assert [t.id for t in await store.list_history()] == ["task-2", "task-1"]

    async def test_delete_from_history(self, store, sample_task):
        """Deleting reports whether a row was removed."""
        await store.archive(sample_task)

        assert await store.delete_from_history("task-1")
        assert not await store.delete_from_history("task-1")

    async def test_profile(self, db_path, store, profile):
        """Profile persists across instances."""
        await store.save_profile(profile)
        assert await SQLiteTaskStore(db_path).load_profile() == profile

    async def test_corrupt_current_is_read_failure(self, db_path, store):
        """Unparseable records raise StoreReadFailed."""
        with sqlite3.connect(db_path) as conn:
            conn.execute(
                "INSERT INTO slots (slot, value_json) VALUES (?, ?)",
                (CURRENT_SLOT, "{not json"),
            )

        with pytest.raises(StoreReadFailed):
            await store.load_current()

    async def test_corrupt_history_rows_skipped(self, db_path, store, sample_task):
        """A bad history row does not hide the others."""
        await store.archive(sample_task)
        with sqlite3.connect(db_path) as conn:
            conn.execute(
                "INSERT INTO history (task_id, task_json) VALUES (?, ?)",
                ("broken", '{"mainTask": 5}'),
            )

        assert await store.list_history() == [sample_task]


@pytest.mark.asyncio
async def test_archive_with_unreadable_current(db_path, store, sample_task):
    """A corrupt current record does not block archiving."""
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "INSERT INTO slots (slot, value_json) VALUES (?, ?)",
            (CURRENT_SLOT, '{"bogus": 1}'),
        )
    events = []
    store.subscribe(events.append)

    await store.archive(sample_task)

    assert await store.list_history() == [sample_task]
    assert events[-1].history == [sample_task]


@pytest.mark.asyncio
async def test_archive_commits_when_history_unreadable(db_path, store, sample_task):
    """A failed re-read after commit skips the event instead of raising."""
    events = []
    store.subscribe(events.append)

    with patch.object(
        SQLiteTaskStore, "list_history", side_effect=StoreReadFailed("locked")
    ):
        await store.archive(sample_task)

    assert events == []
    assert await SQLiteTaskStore(db_path).list_history() == [sample_task]
