"""Pure transformations over the task tree.

Every operation takes a Task and returns a new Task; inputs are never
mutated. Unknown step or sub-step ids leave the task unchanged.
"""

import logging
from typing import Iterable, List, Optional
from ..models.task_models import SubStep, Step, Task, StepProposal


logger = logging.getLogger(__name__)

# Budget conserved when breaking down a step that has no estimate
DEFAULT_STEP_MINUTES = 3.0


def create_task(main_task: str, proposals: Iterable[StepProposal]) -> Task:
    """
    Build a fresh task from an initial decomposition.

    Args:
        main_task: The user's task description
        proposals: Validated step proposals

    Returns:
        New Task with incomplete steps and no sub-steps
    """
    steps = [
        Step(text=p.description, estimated_minutes=p.estimated_minutes)
        for p in proposals
    ]
    return Task(main_task=main_task, steps=steps)


def build_sub_steps(proposals: Iterable[StepProposal]) -> List[SubStep]:
    """Turn validated proposals into incomplete sub-steps with fresh ids."""
    return [
        SubStep(text=p.description, estimated_minutes=p.estimated_minutes)
        for p in proposals
    ]


def find_step(task: Task, step_id: str) -> Optional[Step]:
    """Look up a step by id."""
    for step in task.steps:
        if step.id == step_id:
            return step
    return None


def step_budget(step: Step) -> float:
    """Minutes a breakdown of this step must add up to."""
    if step.estimated_minutes is None:
        return DEFAULT_STEP_MINUTES
    return step.estimated_minutes


def _replace_step(task: Task, step_id: str, new_step: Step) -> Task:
    steps = [new_step if s.id == step_id else s for s in task.steps]
    return task.model_copy(update={"steps": steps})


def toggle_step(task: Task, step_id: str) -> Task:
    """
    Flip a step's completed flag and cascade it to its sub-steps.

    Args:
        task: Current task
        step_id: Step to toggle

    Returns:
        New task value
    """
    step = find_step(task, step_id)
    if step is None:
        logger.debug(f"toggle_step: step {step_id} not found")
        return task

    completed = not step.completed
    sub_steps = [s.model_copy(update={"completed": completed}) for s in step.sub_steps]
    new_step = step.model_copy(update={"completed": completed, "sub_steps": sub_steps})
    return _replace_step(task, step_id, new_step)


def toggle_sub_step(task: Task, step_id: str, sub_step_id: str) -> Task:
    """
    Flip one sub-step; the parent is complete iff all its sub-steps are.

    Args:
        task: Current task
        step_id: Parent step
        sub_step_id: Sub-step to toggle

    Returns:
        New task value
    """
    step = find_step(task, step_id)
    if step is None or not any(s.id == sub_step_id for s in step.sub_steps):
        logger.debug(f"toggle_sub_step: {step_id}/{sub_step_id} not found")
        return task

    sub_steps = [
        s.model_copy(update={"completed": not s.completed}) if s.id == sub_step_id else s
        for s in step.sub_steps
    ]
    new_step = step.model_copy(
        update={
            "sub_steps": sub_steps,
            "completed": all(s.completed for s in sub_steps),
        }
    )
    return _replace_step(task, step_id, new_step)


def append_sub_steps(task: Task, step_id: str, new_sub_steps: Iterable[SubStep]) -> Task:
    """
    Append sub-steps after the existing ones and mark the step incomplete.

    Args:
        task: Current task
        step_id: Step receiving the sub-steps
        new_sub_steps: Sub-steps to append, in order

    Returns:
        New task value
    """
    step = find_step(task, step_id)
    if step is None:
        logger.debug(f"append_sub_steps: step {step_id} not found")
        return task

    new_step = step.model_copy(
        update={
            "sub_steps": list(step.sub_steps) + list(new_sub_steps),
            "completed": False,
        }
    )
    return _replace_step(task, step_id, new_step)


def clear_completed(task: Task) -> Task:
    """Drop completed steps, and completed sub-steps of the steps that remain."""
    steps = [
        s.model_copy(update={"sub_steps": [sub for sub in s.sub_steps if not sub.completed]})
        for s in task.steps
        if not s.completed
    ]
    return task.model_copy(update={"steps": steps})
