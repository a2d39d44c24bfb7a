"""Error kinds raised by the task lifecycle engine."""

from __future__ import annotations

from collections.abc import Sequence


class PitError(RuntimeError):
    """Base class for every error the core surfaces to callers."""


class TaskNotFound(PitError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Task not found: {name!r}")
        self.name = name


class DuplicateName(PitError):
    def __init__(self, name: str) -> None:
        super().__init__(f"A task named {name!r} already exists in this project.")
        self.name = name


class InvalidTaskName(PitError, ValueError):
    """Task name failed validation before any side effect."""


class InvalidTransition(PitError):
    def __init__(self, name: str, status_from: str, status_to: str) -> None:
        super().__init__(
            f"Task {name!r} cannot move from {status_from} to {status_to}.",
        )
        self.name = name
        self.status_from = status_from
        self.status_to = status_to


class WorkspaceConflict(PitError):
    """Branch or worktree path for a new task already exists."""


class StorageIO(PitError):
    """Store, filesystem or git I/O failed."""


class GitCommandError(StorageIO):
    """A git invocation exited non-zero."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str) -> None:
        command = " ".join(["git", *args])
        detail = stderr.strip() or f"exit code {returncode}"
        super().__init__(f"`{command}` failed: {detail}")
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr


class SessionSpawnFailed(PitError):
    """tmux refused to create a session."""


class SessionNotFound(PitError):
    def __init__(self, session_name: str) -> None:
        super().__init__(f"No live tmux session named {session_name!r}.")
        self.session_name = session_name


class SessionKillFailed(PitError):
    """tmux could not terminate a live session."""

    def __init__(self, session_name: str, stderr: str) -> None:
        detail = stderr.strip() or "unknown tmux error"
        super().__init__(f"tmux kill-session {session_name!r} failed: {detail}")
        self.session_name = session_name
        self.stderr = stderr


class CleanupPartialFailure(PitError):
    """External resources could not be fully cleaned up."""

    def __init__(self, message: str, warnings: Sequence[str]) -> None:
        super().__init__(message)
        self.warnings = list(warnings)


def describe_error_chain(error: BaseException) -> list[str]:
    """Flatten an exception, its notes and its causes into display lines."""

    lines: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        prefix = "" if not lines else "caused by: "
        lines.append(f"{prefix}{current}")
        lines.extend(f"  ({note})" for note in getattr(current, "__notes__", ()))
        if isinstance(current, CleanupPartialFailure):
            lines.extend(f"  warning: {warning}" for warning in current.warnings)
        current = current.__cause__ or (
            None if current.__suppress_context__ else current.__context__
        )
    return lines
