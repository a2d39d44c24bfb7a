"""Task lifecycle orchestrator: create, launch, stop, complete, delete."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from pit.core.dispatch import build_agent_command, supports_resume
from pit.core.errors import (
    CleanupPartialFailure,
    DuplicateName,
    InvalidTransition,
    PitError,
    SessionNotFound,
    SessionSpawnFailed,
)
from pit.core.models import (
    DeleteResult,
    IssueRef,
    LaunchResult,
    ReapResult,
    Task,
    TaskCreate,
    TaskStatus,
    Workspace,
    is_allowed_transition,
)
from pit.core.names import generate_task_name, validate_task_name
from pit.core.reaper import reap
from pit.core.repository import TaskRepository
from pit.core.sessions import session_name_for, shell_session_name_for
from pit.core.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class SessionBackend(Protocol):
    """Operations the orchestrator needs from a session manager."""

    def create(self, session_name: str, working_dir: Path, command: list[str]) -> None: ...

    def launch_background(
        self,
        session_name: str,
        working_dir: Path,
        command: list[str],
    ) -> None: ...

    def attach(self, session_name: str) -> int: ...

    def list_live(self) -> set[str]: ...

    def exists(self, session_name: str) -> bool: ...

    def kill(self, session_name: str) -> bool: ...

    def capture(self, session_name: str, lines: int = 30) -> str: ...


class TaskOrchestrator:
    """Coordinates task store, workspaces and tmux sessions.

    External side effects are ordered so that a crash never leaves a row
    pointing at a workspace that does not exist: the workspace is provisioned
    before the row is inserted and torn down before the row is deleted.
    Launch is the one exception: it records ``running`` before spawning so an
    interrupted launch leaves a row the next reap pass turns back to idle.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        repository: TaskRepository,
        workspaces: WorkspaceManager,
        sessions: SessionBackend,
        default_agent: str = "claude",
        shell_command: str = "/bin/sh",
        token_factory: Callable[[], str] | None = None,
    ) -> None:
        self.repository = repository
        self.workspaces = workspaces
        self.sessions = sessions
        self.default_agent = default_agent
        self.shell_command = shell_command
        self.token_factory = token_factory or (lambda: str(uuid4()))

    def create(  # noqa: PLR0913
        self,
        name: str | None,
        *,
        prompt: str = "",
        agent: str = "",
        issue: IssueRef | None = None,
        description: str = "",
        base_ref: str | None = None,
    ) -> Task:
        """Provision a workspace, then persist an idle task bound to it."""

        if name:
            task_name = validate_task_name(name)
        else:
            task_name = generate_task_name(self.repository.list_names())
        if self.repository.get(task_name) is not None:
            raise DuplicateName(task_name)

        try:
            workspace = self.workspaces.provision(task_name, base_ref)
        except PitError as error:
            error.add_note(f"while provisioning the workspace for task {task_name!r}")
            raise

        try:
            task = self.repository.create(
                TaskCreate(
                    name=task_name,
                    branch=workspace.branch,
                    worktree=str(workspace.path),
                    prompt=prompt,
                    description=description,
                    agent=(agent or self.default_agent).strip().lower(),
                    issue=issue,
                ),
            )
        except PitError as error:
            error.add_note(f"while saving task {task_name!r}; its workspace was rolled back")
            self._unwind_workspace(workspace, error)
            raise

        logger.info("Created task %s on %s (agent=%s)", task.name, task.branch, task.agent)
        return task

    def launch(self, name: str, *, foreground: bool = True) -> LaunchResult:
        """Bind the task to a live agent session, attaching when ``foreground``.

        An already live session is reused. Otherwise the agent is resumed when
        a resume token exists, or started fresh under a new token.
        """

        task = self.repository.require(name)
        session_name = session_name_for(task.name)

        if self.sessions.exists(session_name):
            if task.status is not TaskStatus.RUNNING:
                self._check_transition(task, TaskStatus.RUNNING)
                self._bind(task, session_name, task.resume_token)
            if foreground:
                self._attach_then_reap(session_name)
            return LaunchResult(
                task=self._refresh(task),
                session_name=session_name,
                command=[],
                resumed=False,
                reused_session=True,
            )

        # A running row without a live session is stale (crash or an unreaped
        # exit); it is relaunched as if reaped first.
        if task.status is not TaskStatus.RUNNING:
            self._check_transition(task, TaskStatus.RUNNING)
        resumed = task.resume_token is not None and supports_resume(task.agent)
        token = task.resume_token or self.token_factory()
        command = build_agent_command(
            task.agent,
            task.prompt,
            task.resume_token,
            session_token=token,
        )

        self._bind(task, session_name, token)
        try:
            self.sessions.launch_background(session_name, task.workspace.path, command)
        except SessionSpawnFailed as error:
            error.add_note(f"while starting the {task.agent} session for task {task.name!r}")
            self.repository.set_session_state(
                task.id,
                status=task.status,
                session_name=task.session_name,
                resume_token=task.resume_token,
                expected=TaskStatus.RUNNING,
            )
            raise
        if foreground:
            self._attach_then_reap(session_name)

        logger.info(
            "Launched task %s in %s (%s)",
            task.name,
            session_name,
            "resumed" if resumed else "fresh",
        )
        return LaunchResult(
            task=self._refresh(task),
            session_name=session_name,
            command=command,
            resumed=resumed,
            reused_session=False,
        )

    def stop(self, name: str) -> Task:
        """Kill the task's session if live and mark a running task idle."""

        task = self.repository.require(name)
        for session_name in self._agent_session_names(task):
            self.sessions.kill(session_name)
        if task.status is TaskStatus.RUNNING:
            self.repository.update_status(task.id, TaskStatus.IDLE, expected=TaskStatus.RUNNING)
            logger.info("Stopped task %s", task.name)
        return self._refresh(task)

    def complete(self, name: str) -> Task:
        """Mark an idle task done. Completion is never inferred."""

        self.reap()
        task = self.repository.require(name)
        if task.status is TaskStatus.DONE:
            return task
        self._check_transition(task, TaskStatus.DONE)
        if not self.repository.update_status(task.id, TaskStatus.DONE, expected=task.status):
            raise PitError(
                f"Task {task.name!r} changed concurrently while completing; please retry.",
            )
        logger.info("Marked task %s done", task.name)
        return self._refresh(task)

    def delete(self, name: str) -> DeleteResult:
        """Stop sessions, tear down the workspace, then delete the row.

        Cleanup problems are returned as warnings; the row is always removed.
        """

        task = self.repository.require(name)
        warnings: list[str] = []
        for session_name in (*self._agent_session_names(task), shell_session_name_for(task.name)):
            try:
                self.sessions.kill(session_name)
            except PitError as error:
                warnings.append(f"session {session_name} could not be killed: {error}")
        if task.status is TaskStatus.RUNNING:
            self.repository.update_status(task.id, TaskStatus.IDLE, expected=TaskStatus.RUNNING)

        try:
            warnings.extend(self.workspaces.teardown(task.workspace))
        except PitError as error:
            warnings.append(f"workspace teardown failed: {error}")
            logger.warning("Workspace teardown for %s failed: %s", task.name, error)

        self.repository.delete(task.id)
        logger.info("Deleted task %s (%d warning(s))", task.name, len(warnings))
        return DeleteResult(task=task, warnings=warnings)

    def list(self, *, reap_first: bool = True) -> list[Task]:
        if reap_first:
            self.reap()
        return self.repository.list()

    def get(self, name: str) -> Task:
        return self.repository.require(name)

    def reap(self) -> ReapResult:
        return reap(self.repository, self.sessions)

    def shell(self, name: str) -> str:
        """Attach to an ad hoc shell session in the task's worktree."""

        task = self.repository.require(name)
        session_name = shell_session_name_for(task.name)
        if self.sessions.exists(session_name):
            self.sessions.attach(session_name)
        else:
            self.sessions.create(session_name, task.workspace.path, [self.shell_command])
        return session_name

    def watch(self, name: str, lines: int = 30) -> str:
        """Recent pane output of the task's live agent session."""

        task = self.repository.require(name)
        session_name = session_name_for(task.name)
        if not self.sessions.exists(session_name):
            raise SessionNotFound(session_name)
        return self.sessions.capture(session_name, lines)

    def _attach_then_reap(self, session_name: str) -> None:
        try:
            self.sessions.attach(session_name)
        except SessionNotFound:
            # The agent already exited; the reap below records that.
            logger.info("Session %s ended before it could be attached", session_name)
        finally:
            self.reap()

    def _bind(self, task: Task, session_name: str, resume_token: str | None) -> None:
        written = self.repository.bind_session(
            task.id,
            session_name=session_name,
            resume_token=resume_token,
            expected=task.status,
        )
        if not written:
            raise PitError(
                f"Task {task.name!r} changed concurrently; please retry the command.",
            )

    def _unwind_workspace(self, workspace: Workspace, error: PitError) -> None:
        try:
            warnings = self.workspaces.teardown(workspace)
        except PitError as cleanup_error:
            raise CleanupPartialFailure(
                f"Workspace {workspace.branch} at {workspace.path} was left behind "
                "after the task could not be saved.",
                [str(cleanup_error)],
            ) from error
        for warning in warnings:
            error.add_note(f"rollback warning: {warning}")

    def _refresh(self, task: Task) -> Task:
        return self.repository.get_by_id(task.id) or task

    @staticmethod
    def _check_transition(task: Task, status_to: TaskStatus) -> None:
        if not is_allowed_transition(task.status, status_to):
            raise InvalidTransition(task.name, task.status.value, status_to.value)

    @staticmethod
    def _agent_session_names(task: Task) -> tuple[str, ...]:
        names = [session_name_for(task.name)]
        if task.session_name and task.session_name not in names:
            names.append(task.session_name)
        return tuple(names)
