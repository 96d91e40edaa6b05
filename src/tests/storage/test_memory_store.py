"""Tests for the in-memory task store."""

import pytest

from microwin.models.storage_models import StoreEventKind
from microwin.storage.memory import InMemoryTaskStore


@pytest.fixture
def store():
    """Create store."""
    return InMemoryTaskStore()


@pytest.fixture
def events(store):
    """Events emitted by the store."""
    received = []
    store.subscribe(received.append)
    return received


@pytest.mark.asyncio
class TestInMemoryTaskStore:
    """Test suite for InMemoryTaskStore."""

    async def test_current_round_trip(self, store, sample_task, events):
        """Reads see the last write immediately."""
        assert await store.load_current() is None

        await store.save_current(sample_task)

        assert await store.load_current() == sample_task
        assert events[-1].kind == StoreEventKind.CURRENT_CHANGED
        assert events[-1].task == sample_task
        assert not events[-1].remote

    async def test_clear_current(self, store, sample_task):
        """Clearing empties the slot."""
        await store.save_current(sample_task)
        await store.clear_current()
        assert await store.load_current() is None

    async def test_archive_clears_matching_current(self, store, sample_task, events):
        """Archiving the current task empties the current slot."""
        await store.save_current(sample_task)

        await store.archive(sample_task)

        assert await store.load_current() is None
        assert await store.list_history() == [sample_task]
        kinds = [e.kind for e in events]
        assert kinds[-2:] == [StoreEventKind.CURRENT_CHANGED, StoreEventKind.HISTORY_CHANGED]

    async def test_archive_keeps_other_current(self, store, sample_task):
        """Archiving another task leaves current alone."""
        other = sample_task.model_copy(update={"id": "task-2"})
        await store.save_current(other)

        await store.archive(sample_task)

        assert await store.load_current() == other

    async def test_history_order_and_dedupe(self, store, sample_task):
        """History keeps insertion order; re-archiving moves a task to the end."""
        second = sample_task.model_copy(update={"id": "task-2"})
        await store.archive(sample_task)
        await store.archive(second)
        await store.archive(sample_task)

        assert [t.id for t in await store.list_history()] == ["task-2", "task-1"]

    async def test_delete_from_history(self, store, sample_task):
        """Deleting reports whether anything was removed."""
        await store.archive(sample_task)

        assert await store.delete_from_history("task-1")
        assert not await store.delete_from_history("task-1")
        assert await store.list_history() == []

    async def test_profile(self, store, profile):
        """Profile is stored as a whole value."""
        assert await store.load_profile() is None
        await store.save_profile(profile)
        assert await store.load_profile() == profile

    async def test_unsubscribe(self, store, sample_task):
        """Unsubscribed listeners get nothing."""
        received = []
        unsubscribe = store.subscribe(received.append)
        unsubscribe()
        await store.save_current(sample_task)
        assert received == []

    async def test_listener_errors_do_not_break_writes(self, store, sample_task):
        """A failing listener does not stop the write or other listeners."""
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        store.subscribe(received.append)

        await store.save_current(sample_task)

        assert await store.load_current() == sample_task
        assert len(received) == 1
