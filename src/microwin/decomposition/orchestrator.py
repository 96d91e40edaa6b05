"""Coordinates decomposition requests, tree mutations and persistence."""

import logging
from typing import Callable, Dict, List, Optional

from .base import (
    BaseDecompositionClient,
    DecompositionError,
    DecompositionEmpty,
    DecompositionUnavailable,
)
from . import task_tree
from ..models.task_models import Task, UserProfile
from ..models.storage_models import StoreEvent, StoreEventKind
from ..models.orchestration_models import RequestState, RequestOutcome, Notification
from ..storage.base import BaseTaskStore, StoreError, StoreReadFailed, StoreWriteFailed


logger = logging.getLogger(__name__)

TASK_TARGET = "task"

Notifier = Callable[[Notification], None]


def _failure_message(action: str, error: DecompositionError) -> str:
    if isinstance(error, DecompositionUnavailable):
        return "The assistant is unreachable right now. Please try again."
    if isinstance(error, DecompositionEmpty):
        return "No steps came back. Please try again or rephrase."
    if action == "create":
        return "The steps did not fit together. Please try again."
    return "The sub-steps did not add up to this step's time. Please try again."


class DecompositionOrchestrator:
    """
    Owns the current task and drives every user-triggered change to it.

    PATTERN: One request state per target ("task" or a step id);
    a trigger on a target that is already REQUESTING is ignored
    CRITICAL: Failed decompositions never touch the current task
    GOTCHA: A breakdown is applied to the task as it is when the response
    arrives, not as it was when the request started
    """

    def __init__(
        self,
        client: Optional[BaseDecompositionClient],
        store: BaseTaskStore,
        notifier: Optional[Notifier] = None,
        save_retries: int = 1,
    ):
        """
        Initialize orchestrator.

        Args:
            client: Decomposition client (None disables generation)
            store: Task store
            notifier: Receives a Notification for every failure
            save_retries: Extra save attempts before reporting a failure
        """
        self.client = client
        self.store = store
        self.notifier = notifier
        self.save_retries = save_retries
        self.logger = logging.getLogger(__name__)

        self._current: Optional[Task] = None
        self._states: Dict[str, RequestState] = {}
        self._unsubscribe = store.subscribe(self._on_store_event)

    @property
    def current_task(self) -> Optional[Task]:
        """The task the user is working on, if any."""
        return self._current

    def request_state(self, target: str = TASK_TARGET) -> RequestState:
        """Current request state of a target."""
        return self._states.get(target, RequestState.IDLE)

    def _notify(self, action: str, message: str) -> None:
        self.logger.warning(f"{action} failed: {message}")
        if self.notifier:
            self.notifier(Notification(action=action, message=message))

    def _on_store_event(self, event: StoreEvent) -> None:
        if event.kind == StoreEventKind.WRITE_FAILED:
            self._notify("save", event.error or "Your progress could not be saved.")
        elif event.kind == StoreEventKind.CURRENT_CHANGED and event.remote:
            self.logger.debug("Current task replaced by remote update")
            self._current = event.task

    async def load(self) -> Optional[Task]:
        """
        Hydrate the current task from the store.

        Returns:
            Loaded task, or None
        """
        try:
            await self.store.start()
            self._current = await self.store.load_current()
        except StoreReadFailed as e:
            self.logger.error(f"Failed to load current task: {e}")
            self._notify("load", "Could not load your saved task.")
        return self._current

    async def _persist(self, task: Task) -> bool:
        """Save the whole task, retrying before reporting failure."""
        for attempt in range(self.save_retries + 1):
            try:
                await self.store.save_current(task)
                return True
            except StoreWriteFailed as e:
                self.logger.warning(
                    f"Save attempt {attempt + 1}/{self.save_retries + 1} failed: {e}"
                )

        self._notify("save", "Your progress could not be saved.")
        return False

    def _require_client(self) -> BaseDecompositionClient:
        if self.client is None:
            raise DecompositionUnavailable("No decomposition service configured")
        return self.client

    def _begin(self, target: str) -> bool:
        if self.request_state(target) == RequestState.REQUESTING:
            self.logger.debug(f"Ignoring duplicate request for {target}")
            return False
        self._states[target] = RequestState.REQUESTING
        return True

    def _finish(self, target: str, state: RequestState) -> None:
        # Runs on every exit path; the target goes back to IDLE
        self.logger.debug(f"Request for {target} {state.value}")
        self._states.pop(target, None)

    async def create_task(
        self,
        text: str,
        profile: Optional[UserProfile] = None,
    ) -> RequestOutcome:
        """
        Decompose a new task and make it current.

        Args:
            text: Task description
            profile: Optional user preferences

        Returns:
            Outcome of the request
        """
        if not self._begin(TASK_TARGET):
            return RequestOutcome.IGNORED

        state = RequestState.FAILED
        try:
            proposals = await self._require_client().decompose_task(text, profile)
            task = task_tree.create_task(text, proposals)
            self._current = task
            state = RequestState.APPLIED
        except DecompositionError as e:
            self.logger.error(f"Initial decomposition failed: {e}")
            self._notify("create", _failure_message("create", e))
            return RequestOutcome.FAILED
        finally:
            self._finish(TASK_TARGET, state)

        self.logger.info(f"Created task {task.id} with {len(task.steps)} steps")
        await self._persist(task)
        return RequestOutcome.APPLIED

    async def expand_step(
        self,
        step_id: str,
        profile: Optional[UserProfile] = None,
    ) -> RequestOutcome:
        """
        Break a step into three more sub-steps that conserve its time.

        Args:
            step_id: Step to break down
            profile: Optional user preferences

        Returns:
            Outcome of the request
        """
        step = task_tree.find_step(self._current, step_id) if self._current else None
        if step is None:
            self.logger.warning(f"Cannot break down unknown step {step_id}")
            return RequestOutcome.IGNORED

        if not self._begin(step_id):
            return RequestOutcome.IGNORED

        budget = task_tree.step_budget(step)
        state = RequestState.FAILED
        try:
            proposals = await self._require_client().decompose_step(
                step.text, budget, profile
            )

            latest = self._current
            if latest is None or task_tree.find_step(latest, step_id) is None:
                self.logger.warning(f"Step {step_id} is gone, discarding its breakdown")
                self._notify(
                    "breakdown", "That step was removed before its breakdown arrived."
                )
                return RequestOutcome.FAILED

            task = task_tree.append_sub_steps(
                latest, step_id, task_tree.build_sub_steps(proposals)
            )
            self._current = task
            state = RequestState.APPLIED
        except DecompositionError as e:
            self.logger.error(f"Breakdown of step {step_id} failed: {e}")
            self._notify("breakdown", _failure_message("breakdown", e))
            return RequestOutcome.FAILED
        finally:
            self._finish(step_id, state)

        await self._persist(task)
        return RequestOutcome.APPLIED

    async def _apply(self, transform: Callable[[Task], Task]) -> Optional[Task]:
        if self._current is None:
            return None
        task = transform(self._current)
        self._current = task
        await self._persist(task)
        return task

    async def toggle_step(self, step_id: str) -> Optional[Task]:
        """Flip a step and its sub-steps."""
        return await self._apply(lambda t: task_tree.toggle_step(t, step_id))

    async def toggle_sub_step(self, step_id: str, sub_step_id: str) -> Optional[Task]:
        """Flip one sub-step and recompute its parent."""
        return await self._apply(
            lambda t: task_tree.toggle_sub_step(t, step_id, sub_step_id)
        )

    async def clear_completed(self) -> Optional[Task]:
        """Remove finished steps and sub-steps."""
        return await self._apply(task_tree.clear_completed)

    async def archive(self) -> bool:
        """
        Move the current task to history and clear the current slot.

        Returns:
            True if a task was archived
        """
        task = self._current
        if task is None:
            return False

        try:
            await self.store.archive(task)
        except StoreError as e:
            self.logger.error(f"Failed to archive task {task.id}: {e}")
            self._notify("archive", "Your task could not be archived.")
            return False

        self._current = None
        self.logger.info(f"Archived task {task.id}")
        return True

    async def history(self) -> List[Task]:
        """Archived tasks, oldest first."""
        try:
            return await self.store.list_history()
        except StoreReadFailed as e:
            self.logger.error(f"Failed to load history: {e}")
            self._notify("load", "Could not load your task history.")
            return []

    async def delete_from_history(self, task_id: str) -> bool:
        """Delete one archived task."""
        try:
            return await self.store.delete_from_history(task_id)
        except StoreWriteFailed as e:
            self.logger.error(f"Failed to delete task {task_id}: {e}")
            self._notify("delete", "That task could not be deleted.")
            return False

    async def load_profile(self) -> Optional[UserProfile]:
        """Saved user profile, if any."""
        try:
            return await self.store.load_profile()
        except StoreReadFailed as e:
            self.logger.error(f"Failed to load profile: {e}")
            self._notify("load", "Could not load your profile.")
            return None

    async def save_profile(self, profile: UserProfile) -> bool:
        """Persist the user profile."""
        try:
            await self.store.save_profile(profile)
            return True
        except StoreWriteFailed as e:
            self.logger.error(f"Failed to save profile: {e}")
            self._notify("save", "Your profile could not be saved.")
            return False

    def close(self) -> None:
        """Stop listening to store changes."""
        self._unsubscribe()
