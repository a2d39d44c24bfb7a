"""Shared test fixtures."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from uuid import uuid4

import pytest

from pit.core.errors import SessionNotFound, SessionSpawnFailed
from pit.core.repository import TaskRepository
from pit.core.services import TaskOrchestrator
from pit.core.sessions import TmuxSessionManager
from pit.core.workspace import GitClient, WorkspaceManager
from pit.project import Project


def git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", "-c", "user.name=pit", "-c", "user.email=pit@example.com", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout


@dataclass
class FakeSessions:
    """In-memory session manager: a dict of live sessions, no tmux."""

    live: dict[str, tuple[Path, list[str]]] = field(default_factory=dict)
    attached: list[str] = field(default_factory=list)
    fail_spawn: bool = False
    exit_on_attach: bool = False
    exit_on_spawn: bool = False

    def create(self, session_name: str, working_dir: Path, command: list[str]) -> None:
        self.launch_background(session_name, working_dir, command)
        self.attach(session_name)

    def launch_background(self, session_name: str, working_dir: Path, command: list[str]) -> None:
        if self.fail_spawn:
            raise SessionSpawnFailed(f"tmux new-session {session_name!r} failed: boom")
        if self.exit_on_spawn:
            # The agent finished before anyone could attach.
            return
        self.live[session_name] = (working_dir, list(command))

    def attach(self, session_name: str) -> int:
        if session_name not in self.live:
            raise SessionNotFound(session_name)
        self.attached.append(session_name)
        if self.exit_on_attach:
            # The agent finished while the user was attached.
            del self.live[session_name]
        return 0

    def list_live(self) -> set[str]:
        return set(self.live)

    def exists(self, session_name: str) -> bool:
        return session_name in self.live

    def kill(self, session_name: str) -> bool:
        return self.live.pop(session_name, None) is not None

    def capture(self, session_name: str, lines: int = 30) -> str:
        if session_name not in self.live:
            raise SessionNotFound(session_name)
        return "\n".join(self.live[session_name][1][-lines:]) + "\n"


@pytest.fixture()
def git_repo(tmp_path: Path) -> Path:
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "--quiet")
    (repo / "README.md").write_text("# demo\n", encoding="utf-8")
    git(repo, "add", "README.md")
    git(repo, "commit", "--quiet", "-m", "initial commit")
    return repo


@pytest.fixture()
def project(git_repo: Path) -> Project:
    return Project.init(git_repo)


@pytest.fixture()
def repository(project: Project) -> Iterator[TaskRepository]:
    repo = TaskRepository(project.db_path)
    repo.init_schema()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def workspaces(project: Project) -> WorkspaceManager:
    return WorkspaceManager(git=GitClient(project.repo_root), pit_dir=project.pit_dir)


@pytest.fixture()
def fake_sessions() -> FakeSessions:
    return FakeSessions()


@pytest.fixture()
def orchestrator(
    repository: TaskRepository,
    workspaces: WorkspaceManager,
    fake_sessions: FakeSessions,
) -> TaskOrchestrator:
    counter = iter(range(1, 1_000))
    return TaskOrchestrator(
        repository=repository,
        workspaces=workspaces,
        sessions=fake_sessions,
        default_agent="claude",
        shell_command="/bin/bash",
        token_factory=lambda: f"token-{next(counter)}",
    )


@pytest.fixture()
def tmux_sessions(tmp_path: Path) -> Iterator[TmuxSessionManager]:
    """Session manager on a throwaway tmux server, killed afterwards."""

    if shutil.which("tmux") is None:
        pytest.skip("tmux is not installed")
    manager = TmuxSessionManager(
        socket_name=f"pit-test-{uuid4().hex[:8]}",
        config_dir=tmp_path / "pit-data",
    )
    try:
        yield manager
    finally:
        subprocess.run(
            ["tmux", "-L", manager.socket_name, "kill-server"],
            capture_output=True,
            check=False,
        )
