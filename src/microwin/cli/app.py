"""Main CLI application entry point."""

import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional, Tuple

import click
from dotenv import load_dotenv

from .config import CLIConfig, load_config
from .renderer import OutputRenderer
from ..decomposition import progress_tracker
from ..decomposition.base import BaseDecompositionClient
from ..decomposition.llm_client import LLMDecompositionClient
from ..decomposition.orchestrator import DecompositionOrchestrator
from ..llm import create_llm
from ..models.orchestration_models import RequestOutcome
from ..models.task_models import Task, UserProfile
from ..storage import create_task_store

load_dotenv()

logger = logging.getLogger(__name__)

Action = Callable[[DecompositionOrchestrator, OutputRenderer], Awaitable[bool]]


def build_client(config: CLIConfig) -> BaseDecompositionClient:
    """
    Build the LLM-backed decomposition client.

    Raises:
        click.ClickException: When the provider cannot be configured
    """
    llm_config = config.llm_config()
    try:
        llm = create_llm(llm_config)
    except ValueError as e:
        raise click.ClickException(str(e))
    return LLMDecompositionClient(
        llm,
        temperature=llm_config.temperature,
        max_tokens=llm_config.max_tokens,
    )


def resolve_ref(task: Task, ref: str) -> Tuple[str, Optional[str]]:
    """
    Turn a 1-based "3" or "3.2" reference into step / sub-step ids.

    Raises:
        click.BadParameter: Reference does not point at an existing node
    """
    parts = ref.split(".")
    try:
        indexes = [int(p) for p in parts]
    except ValueError:
        raise click.BadParameter(f"'{ref}' is not a step number like 3 or 3.2")

    if len(indexes) > 2 or not 1 <= indexes[0] <= len(task.steps):
        raise click.BadParameter(f"No step {ref}")

    step = task.steps[indexes[0] - 1]
    if len(indexes) == 1:
        return step.id, None

    if not 1 <= indexes[1] <= len(step.sub_steps):
        raise click.BadParameter(f"No sub-step {ref}")
    return step.id, step.sub_steps[indexes[1] - 1].id


async def run_with_orchestrator(
    config: CLIConfig,
    action: Action,
    with_client: bool = False,
) -> bool:
    """
    Open the store, run one action through the orchestrator, then clean up.

    Args:
        config: CLI configuration
        action: Coroutine function receiving the orchestrator and renderer
        with_client: Whether the action needs the generative service

    Returns:
        Whether the action succeeded
    """
    renderer = OutputRenderer(config)
    store_config = config.store_config()
    store = create_task_store(store_config)
    client = build_client(config) if with_client else None

    orchestrator = DecompositionOrchestrator(
        client,
        store,
        notifier=renderer.render_notification,
        save_retries=store_config.save_retries,
    )
    try:
        await orchestrator.load()
        return await action(orchestrator, renderer)
    finally:
        orchestrator.close()
        await store.close()
        if client is not None:
            await client.close()


def _run(ctx: click.Context, action: Action, with_client: bool = False) -> None:
    ok = asyncio.run(run_with_orchestrator(ctx.obj["config"], action, with_client))
    if not ok:
        sys.exit(1)


def _require_task(orchestrator: DecompositionOrchestrator) -> Task:
    task = orchestrator.current_task
    if task is None:
        raise click.ClickException("No current task. Start one with `microwin new`.")
    return task


@click.group()
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose logging",
)
@click.option(
    "--config", "config_path",
    type=click.Path(),
    help="Config file path",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: Optional[str]) -> None:
    """
    microwin - turn an overwhelming task into small, timed micro-wins.

    Start a task:
        microwin new "clean the kitchen"

    Tick off step 3, or sub-step 2 of step 3:
        microwin done 3
        microwin done 3.2

    Break step 3 into three smaller actions:
        microwin expand 3
    """
    log_level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        # Failures are shown as notifications; keep the log quiet
        logging.getLogger("microwin").setLevel(logging.CRITICAL)

    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config_path)


@main.command()
@click.argument("text", nargs=-1, required=True)
@click.pass_context
def new(ctx: click.Context, text: Tuple[str, ...]) -> None:
    """Break a new task into 5-7 micro-win steps."""
    description = " ".join(text)
    focus = ctx.obj["config"].focus_mode

    async def action(orchestrator: DecompositionOrchestrator, renderer: OutputRenderer) -> bool:
        profile = await orchestrator.load_profile()
        outcome = await orchestrator.create_task(description, profile)
        if outcome != RequestOutcome.APPLIED:
            return False
        renderer.render_task(orchestrator.current_task, focus=focus)
        return True

    _run(ctx, action, with_client=True)


@main.command()
@click.option("--focus/--all", default=None, help="Show only the next step")
@click.pass_context
def show(ctx: click.Context, focus: Optional[bool]) -> None:
    """Show the current task and progress."""
    if focus is None:
        focus = ctx.obj["config"].focus_mode

    async def action(orchestrator: DecompositionOrchestrator, renderer: OutputRenderer) -> bool:
        renderer.render_task(orchestrator.current_task, focus=focus)
        return True

    _run(ctx, action)


@main.command()
@click.argument("ref")
@click.pass_context
def done(ctx: click.Context, ref: str) -> None:
    """Toggle a step (3) or sub-step (3.2) between done and not done."""
    focus = ctx.obj["config"].focus_mode

    async def action(orchestrator: DecompositionOrchestrator, renderer: OutputRenderer) -> bool:
        task = _require_task(orchestrator)
        step_id, sub_step_id = resolve_ref(task, ref)
        before = progress_tracker.completion_stats(task).completed_count

        if sub_step_id is None:
            task = await orchestrator.toggle_step(step_id)
        else:
            task = await orchestrator.toggle_sub_step(step_id, sub_step_id)

        after = progress_tracker.completion_stats(task).completed_count
        renderer.render_task(task, focus=focus)
        if after > before and progress_tracker.is_milestone(after):
            renderer.render_milestone(after)
        return True

    _run(ctx, action)


@main.command()
@click.argument("ref")
@click.pass_context
def expand(ctx: click.Context, ref: str) -> None:
    """Break a step into three smaller actions with the same total time."""
    focus = ctx.obj["config"].focus_mode

    async def action(orchestrator: DecompositionOrchestrator, renderer: OutputRenderer) -> bool:
        task = _require_task(orchestrator)
        step_id, sub_step_id = resolve_ref(task, ref)
        if sub_step_id is not None:
            raise click.BadParameter("Only steps can be broken down, not sub-steps")

        profile = await orchestrator.load_profile()
        outcome = await orchestrator.expand_step(step_id, profile)
        if outcome != RequestOutcome.APPLIED:
            return False
        renderer.render_task(orchestrator.current_task, focus=focus)
        return True

    _run(ctx, action, with_client=True)


@main.command()
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Remove finished steps and sub-steps from the current task."""

    async def action(orchestrator: DecompositionOrchestrator, renderer: OutputRenderer) -> bool:
        _require_task(orchestrator)
        renderer.render_task(await orchestrator.clear_completed())
        return True

    _run(ctx, action)


@main.command()
@click.pass_context
def archive(ctx: click.Context) -> None:
    """Move the current task to history."""

    async def action(orchestrator: DecompositionOrchestrator, renderer: OutputRenderer) -> bool:
        task = _require_task(orchestrator)
        if not await orchestrator.archive():
            return False
        renderer.render_info(f"Archived: {task.main_task}")
        return True

    _run(ctx, action)


@main.command()
@click.pass_context
def history(ctx: click.Context) -> None:
    """List archived tasks, newest first."""

    async def action(orchestrator: DecompositionOrchestrator, renderer: OutputRenderer) -> bool:
        renderer.render_history(await orchestrator.history())
        return True

    _run(ctx, action)


@main.command()
@click.argument("task_id")
@click.pass_context
def forget(ctx: click.Context, task_id: str) -> None:
    """Delete an archived task (ID prefix from `microwin history`)."""

    async def action(orchestrator: DecompositionOrchestrator, renderer: OutputRenderer) -> bool:
        matches = [t for t in await orchestrator.history() if t.id.startswith(task_id)]
        if len(matches) != 1:
            raise click.BadParameter(
                f"'{task_id}' matches {len(matches)} archived tasks, expected 1"
            )
        if not await orchestrator.delete_from_history(matches[0].id):
            return False
        renderer.render_info(f"Deleted: {matches[0].main_task}")
        return True

    _run(ctx, action)


@main.command()
@click.option("--granularity", help="How small steps should be (Normal, High)")
@click.option("--triggers", help="Things that derail you")
@click.option("--support", help="Kind of support you prefer")
@click.pass_context
def profile(
    ctx: click.Context,
    granularity: Optional[str],
    triggers: Optional[str],
    support: Optional[str],
) -> None:
    """Show or update the preferences used when generating steps."""

    async def action(orchestrator: DecompositionOrchestrator, renderer: OutputRenderer) -> bool:
        current = await orchestrator.load_profile() or UserProfile()
        updates = {
            key: value
            for key, value in (
                ("granularity_preference", granularity),
                ("triggers_to_avoid", triggers),
                ("support_style", support),
            )
            if value is not None
        }
        if updates:
            current = current.model_copy(update=updates)
            if not await orchestrator.save_profile(current):
                return False

        renderer.render_info(f"Granularity: {current.granularity_preference or '-'}")
        renderer.render_info(f"Triggers to avoid: {current.triggers_to_avoid or '-'}")
        renderer.render_info(f"Support style: {current.support_style or '-'}")
        return True

    _run(ctx, action)


if __name__ == "__main__":
    main()
