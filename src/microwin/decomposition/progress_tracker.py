"""Progress aggregation over a task tree."""

import logging
from typing import List, Optional, Union
from ..models.task_models import SubStep, Step, Task, ProgressStats


logger = logging.getLogger(__name__)

MILESTONE_EVERY = 5

Node = Union[Step, SubStep]


def flatten(task: Task) -> List[Node]:
    """
    List every step and sub-step in document order.

    Each step is followed immediately by its own sub-steps.
    """
    nodes: List[Node] = []
    for step in task.steps:
        nodes.append(step)
        nodes.extend(step.sub_steps)
    return nodes


def completion_stats(task: Task) -> ProgressStats:
    """
    Count completed nodes over the flattened tree.

    Args:
        task: Task to summarize

    Returns:
        Completed count, total count and percent (0 for an empty task)
    """
    nodes = flatten(task)
    total = len(nodes)
    completed = sum(1 for n in nodes if n.completed)
    percent = (completed / total * 100) if total else 0.0
    return ProgressStats(completed_count=completed, total_count=total, percent=percent)


def next_actionable_step(task: Task) -> Optional[Step]:
    """First step that is incomplete or has an incomplete sub-step."""
    for step in task.steps:
        if not step.completed or not step.all_sub_steps_completed:
            return step
    return None


def is_milestone(completed_count: int) -> bool:
    """Whether this completed count deserves a celebration."""
    return completed_count > 0 and completed_count % MILESTONE_EVERY == 0


def remaining_minutes(task: Task) -> float:
    """
    Sum the estimates of outstanding work.

    A step with sub-steps is counted through its incomplete sub-steps;
    a step without sub-steps counts its own estimate. Missing estimates
    count as zero.
    """
    total = 0.0
    for step in task.steps:
        if step.sub_steps:
            total += sum(
                s.estimated_minutes or 0.0 for s in step.sub_steps if not s.completed
            )
        elif not step.completed:
            total += step.estimated_minutes or 0.0
    return total


def get_progress_summary(task: Task) -> dict:
    """
    Get progress summary for reporting.

    Args:
        task: Task to summarize

    Returns:
        Dictionary with counts, percent, remaining minutes and next step
    """
    stats = completion_stats(task)
    next_step = next_actionable_step(task)

    summary = {
        "completed": stats.completed_count,
        "total": stats.total_count,
        "percent": stats.percent,
        "remaining_minutes": remaining_minutes(task),
        "next_step": next_step.text if next_step else None,
        "milestone": is_milestone(stats.completed_count),
        "done": next_step is None and stats.total_count > 0,
    }
    logger.debug(f"Progress for task {task.id}: {summary}")
    return summary
