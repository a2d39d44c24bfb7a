"""Controllers for pit CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from pit.config import Settings
from pit.core.models import IssueRef, Task, TaskStatus
from pit.core.repository import TaskRepository
from pit.core.services import TaskOrchestrator
from pit.core.sessions import TmuxSessionManager
from pit.core.workspace import GitClient, WorkspaceManager
from pit.project import Project, find_repo_root


@dataclass(slots=True)
class NewTaskCommand:
    """CLI inputs for task creation."""

    name: str | None
    prompt: str
    description: str
    issue_ref: str | None
    issue_title: str
    agent: str | None
    base_ref: str | None
    launch: bool


@dataclass(slots=True)
class TaskNameCommand:
    """CLI inputs for commands addressing one task."""

    name: str


@dataclass(slots=True)
class WatchCommand:
    """CLI inputs for pane capture."""

    name: str
    lines: int


class PitCliController:
    """Coordinates pit command execution against the current project."""

    def __init__(self, cwd: Path | None = None) -> None:
        self.cwd = cwd

    def init(self) -> list[str]:
        settings = self._settings()
        project = Project.init(
            settings.repo_root,
            pit_dir_name=settings.pit_dir_name,
            db_file_name=settings.db_file_name,
        )
        repository = TaskRepository(
            project.db_path,
            sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
        )
        try:
            repository.init_schema()
        finally:
            repository.close()
        return [
            f"Initialized pit in {project.pit_dir}",
            f"Task store: {project.db_path}",
        ]

    def new(self, command: NewTaskCommand) -> list[str]:
        settings = self._settings()
        issue = None
        if command.issue_ref:
            issue = IssueRef(ref=command.issue_ref, title=command.issue_title)
        with _orchestrator(settings) as orchestrator:
            task = orchestrator.create(
                command.name,
                prompt=command.prompt,
                agent=command.agent or "",
                issue=issue,
                description=command.description,
                base_ref=command.base_ref,
            )
            lines = [
                f"Created task {task.name}",
                f"  branch:   {task.branch}",
                f"  worktree: {task.worktree}",
                f"  agent:    {task.agent}",
            ]
            if command.launch:
                launched = orchestrator.launch(task.name, foreground=False)
                lines.append(
                    f"Started {launched.session_name}; attach with `pit open {task.name}`",
                )
        return lines

    def list_tasks(self) -> list[str]:
        settings = self._settings()
        with _orchestrator(settings) as orchestrator:
            tasks = orchestrator.list()
        if not tasks:
            return ["No tasks. Create one with `pit new`."]
        lines = [f"Tasks: {len(tasks)}"]
        lines.extend(f"  {_task_summary(task)}" for task in tasks)
        return lines

    def status(self, name: str | None) -> list[str]:
        settings = self._settings()
        with _orchestrator(settings) as orchestrator:
            if name is None:
                tasks = orchestrator.list()
                counts = {status: 0 for status in TaskStatus}
                for task in tasks:
                    counts[task.status] += 1
                return [
                    f"Project: {settings.repo_root}",
                    "Tasks: "
                    + " ".join(f"{status.value}={count}" for status, count in counts.items()),
                ]
            orchestrator.reap()
            task = orchestrator.get(name)
            live = bool(task.session_name) and orchestrator.sessions.exists(task.session_name)
        issue = task.issue
        return [
            f"Task: {task.name}",
            f"Status: {task.status.value}",
            f"Agent: {task.agent}",
            f"Branch: {task.branch}",
            f"Worktree: {task.worktree}",
            f"Session: {task.session_name or '-'} ({'live' if live else 'not running'})",
            f"Resume token: {task.resume_token or '-'}",
            f"Issue: {f'{issue.ref} {issue.title}'.strip() if issue else '-'}",
            f"Prompt: {task.prompt or '-'}",
            f"Created: {task.created_at.isoformat()}",
            f"Updated: {task.updated_at.isoformat()}",
        ]

    def run(self, command: TaskNameCommand) -> list[str]:
        settings = self._settings()
        with _orchestrator(settings) as orchestrator:
            result = orchestrator.launch(command.name, foreground=False)
        if result.reused_session:
            return [f"Task {command.name} is already running in {result.session_name}"]
        mode = "Resumed" if result.resumed else "Started"
        return [f"{mode} task {command.name} in {result.session_name}"]

    def open(self, command: TaskNameCommand) -> list[str]:
        settings = self._settings()
        with _orchestrator(settings) as orchestrator:
            result = orchestrator.launch(command.name, foreground=True)
        return [f"Detached from {result.session_name} (task is {result.task.status.value})"]

    def stop(self, command: TaskNameCommand) -> list[str]:
        settings = self._settings()
        with _orchestrator(settings) as orchestrator:
            task = orchestrator.stop(command.name)
        return [f"Task {task.name} is {task.status.value}"]

    def done(self, command: TaskNameCommand) -> list[str]:
        settings = self._settings()
        with _orchestrator(settings) as orchestrator:
            task = orchestrator.complete(command.name)
        return [f"Task {task.name} marked done"]

    def delete(self, command: TaskNameCommand) -> list[str]:
        settings = self._settings()
        with _orchestrator(settings) as orchestrator:
            result = orchestrator.delete(command.name)
        lines = [f"Deleted task {result.task.name}"]
        lines.extend(f"  warning: {warning}" for warning in result.warnings)
        return lines

    def shell(self, command: TaskNameCommand) -> list[str]:
        settings = self._settings()
        with _orchestrator(settings) as orchestrator:
            session_name = orchestrator.shell(command.name)
        return [f"Detached from {session_name}"]

    def watch(self, command: WatchCommand) -> list[str]:
        settings = self._settings()
        with _orchestrator(settings) as orchestrator:
            output = orchestrator.watch(command.name, command.lines)
        return output.rstrip("\n").splitlines()

    def reap(self) -> list[str]:
        settings = self._settings()
        with _orchestrator(settings) as orchestrator:
            result = orchestrator.reap()
        lines = [f"Checked {result.checked} running task(s), reaped {len(result.reaped)}"]
        lines.extend(f"  {name} -> idle" for name in result.reaped)
        return lines

    def _settings(self) -> Settings:
        repo_root = find_repo_root(self.cwd or Path.cwd())
        return Settings.from_env(repo_root=repo_root)


@contextmanager
def _orchestrator(settings: Settings) -> Iterator[TaskOrchestrator]:
    project = Project.open(
        settings.repo_root,
        pit_dir_name=settings.pit_dir_name,
        db_file_name=settings.db_file_name,
    )
    repository = TaskRepository(
        project.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    try:
        repository.init_schema()
        yield TaskOrchestrator(
            repository=repository,
            workspaces=WorkspaceManager(
                git=GitClient(project.repo_root),
                pit_dir=project.pit_dir,
                branch_prefix=settings.workspace.branch_prefix,
            ),
            sessions=TmuxSessionManager(
                socket_name=settings.sessions.socket_name,
                config_dir=settings.sessions.config_dir,
            ),
            default_agent=settings.agents.default_agent,
            shell_command=settings.sessions.shell,
        )
    finally:
        repository.close()


def _task_summary(task: Task) -> str:
    issue = f" [{task.issue_ref}]" if task.issue_ref else ""
    return (
        f"{task.name:<24} {task.status.value:<8} agent={task.agent} "
        f"branch={task.branch}{issue}"
    )
