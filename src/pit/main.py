"""CLI entrypoint for pit."""

import logging
from collections.abc import Callable

import rich_click as click

from pit import __version__
from pit.config import Settings
from pit.core.controllers import NewTaskCommand, PitCliController, TaskNameCommand, WatchCommand
from pit.core.dispatch import SUPPORTED_AGENTS
from pit.core.errors import PitError, describe_error_chain

click.rich_click.USE_MARKDOWN = True
CONTROLLER = PitCliController()


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="pit")
def pit() -> None:
    """Run coding agents in parallel, one git worktree and tmux session per task."""

    try:
        level = Settings.from_env().log_level
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@pit.command("init")
def init() -> None:
    """Create `.pit/` in the current git repository and git-ignore it."""

    _emit_lines(CONTROLLER.init)


@pit.command("new")
@click.argument("name", required=False)
@click.option("-p", "--prompt", default="", help="Initial prompt handed to the agent.")
@click.option("-d", "--description", default="", help="Free-form task description.")
@click.option("-i", "--issue", "issue_ref", default=None, help="Issue reference, e.g. ENG-123.")
@click.option("--issue-title", default="", help="Title of the referenced issue.")
@click.option(
    "-a",
    "--agent",
    default=None,
    help=f"Agent to run: {', '.join(SUPPORTED_AGENTS)}. Defaults to `agent.default`.",
)
@click.option("--base", "base_ref", default=None, help="Ref to branch from (default HEAD).")
@click.option("--run/--no-run", "launch", default=False, help="Start the agent in the background.")
def new(  # noqa: PLR0913
    name: str | None,
    prompt: str,
    description: str,
    issue_ref: str | None,
    issue_title: str,
    agent: str | None,
    base_ref: str | None,
    launch: bool,
) -> None:
    """Create a task: branch `pit/NAME`, worktree `.pit/worktrees/NAME`, idle.

    Without NAME a random adjective-noun name is generated.
    """

    _emit_lines(
        lambda: CONTROLLER.new(
            NewTaskCommand(
                name=name,
                prompt=prompt,
                description=description,
                issue_ref=issue_ref,
                issue_title=issue_title,
                agent=agent,
                base_ref=base_ref,
                launch=launch,
            ),
        ),
    )


@pit.command("list")
def list_tasks() -> None:
    """List tasks after reconciling them with live sessions."""

    _emit_lines(CONTROLLER.list_tasks)


pit.add_command(list_tasks, name="ls")


@pit.command("status")
@click.argument("name", required=False)
def status(name: str | None) -> None:
    """Show one task in detail, or task counts for the project."""

    _emit_lines(lambda: CONTROLLER.status(name))


@pit.command("run")
@click.argument("name")
def run(name: str) -> None:
    """Start or resume the task's agent in the background."""

    _emit_lines(lambda: CONTROLLER.run(TaskNameCommand(name=name)))


@pit.command("open")
@click.argument("name")
def open_task(name: str) -> None:
    """Start or resume the task's agent and attach to it (`Ctrl-] d` detaches)."""

    _emit_lines(lambda: CONTROLLER.open(TaskNameCommand(name=name)))


@pit.command("stop")
@click.argument("name")
def stop(name: str) -> None:
    """Kill the task's agent session; the task becomes idle."""

    _emit_lines(lambda: CONTROLLER.stop(TaskNameCommand(name=name)))


@pit.command("done")
@click.argument("name")
def done(name: str) -> None:
    """Mark an idle task done."""

    _emit_lines(lambda: CONTROLLER.done(TaskNameCommand(name=name)))


@pit.command("delete")
@click.argument("name")
@click.confirmation_option(prompt="Delete the task, its worktree and its branch?")
def delete(name: str) -> None:
    """Kill sessions, remove the worktree and branch, and forget the task."""

    _emit_lines(lambda: CONTROLLER.delete(TaskNameCommand(name=name)))


pit.add_command(delete, name="rm")


@pit.command("shell")
@click.argument("name")
def shell(name: str) -> None:
    """Open a shell session in the task's worktree."""

    _emit_lines(lambda: CONTROLLER.shell(TaskNameCommand(name=name)))


pit.add_command(shell, name="sh")


@pit.command("watch")
@click.argument("name")
@click.option(
    "-n",
    "--lines",
    type=click.IntRange(min=1, max=10_000),
    default=30,
    show_default=True,
    help="How many trailing pane lines to print.",
)
def watch(name: str, lines: int) -> None:
    """Print recent output of the task's agent session without attaching."""

    _emit_lines(lambda: CONTROLLER.watch(WatchCommand(name=name, lines=lines)))


@pit.command("reap")
def reap() -> None:
    """Mark running tasks whose session has exited as idle."""

    _emit_lines(CONTROLLER.reap)


def _emit_lines(produce: Callable[[], list[str]]) -> None:
    try:
        lines = produce()
    except (PitError, ValueError) as error:
        raise click.ClickException("\n".join(describe_error_chain(error))) from error
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    pit()
