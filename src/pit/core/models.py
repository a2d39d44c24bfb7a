"""Domain models for the task lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class TaskStatus(str, Enum):
    """Persisted task lifecycle states. None of them is terminal."""

    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"


ALLOWED_TRANSITIONS: frozenset[tuple[TaskStatus, TaskStatus]] = frozenset(
    {
        (TaskStatus.IDLE, TaskStatus.RUNNING),
        (TaskStatus.RUNNING, TaskStatus.IDLE),
        (TaskStatus.IDLE, TaskStatus.DONE),
        (TaskStatus.DONE, TaskStatus.RUNNING),
    },
)


def is_allowed_transition(status_from: TaskStatus, status_to: TaskStatus) -> bool:
    return (status_from, status_to) in ALLOWED_TRANSITIONS


@dataclass(slots=True, frozen=True)
class IssueRef:
    """Opaque issue reference as supplied by an issue provider."""

    ref: str
    title: str = ""


@dataclass(slots=True, frozen=True)
class Workspace:
    """Branch + worktree pair owned by exactly one task."""

    branch: str
    path: Path


@dataclass(slots=True)
class TaskCreate:
    """Input payload for inserting a task row."""

    name: str
    branch: str
    worktree: str
    prompt: str = ""
    description: str = ""
    agent: str = "claude"
    issue: IssueRef | None = None


@dataclass(slots=True)
class Task:
    """Readable task view for CLI, dashboard and orchestrator logic."""

    id: int
    name: str
    description: str
    prompt: str
    issue_ref: str
    issue_title: str
    agent: str
    branch: str
    worktree: str
    status: TaskStatus
    resume_token: str | None
    session_name: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def workspace(self) -> Workspace:
        return Workspace(branch=self.branch, path=Path(self.worktree))

    @property
    def issue(self) -> IssueRef | None:
        if not self.issue_ref:
            return None
        return IssueRef(ref=self.issue_ref, title=self.issue_title)


@dataclass(slots=True)
class ReapResult:
    """Outcome of one reconciliation pass."""

    checked: int
    reaped: list[str] = field(default_factory=list)


@dataclass(slots=True)
class DeleteResult:
    """A deleted task plus non-fatal cleanup warnings."""

    task: Task
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class LaunchResult:
    """How a launch bound the task to its tmux session."""

    task: Task
    session_name: str
    command: list[str]
    resumed: bool
    reused_session: bool
