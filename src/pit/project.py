"""Project discovery and the hidden ``.pit`` directory."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from pit.core.errors import PitError, StorageIO
from pit.core.workspace import WORKTREES_DIR_NAME, GitClient

logger = logging.getLogger(__name__)

PIT_DIR_NAME = ".pit"
DB_FILE_NAME = "pit.db"


class ProjectError(PitError):
    """The current directory is not usable as a pit project."""


@dataclass(slots=True, frozen=True)
class Project:
    """Resolved paths of an initialized pit project."""

    repo_root: Path
    pit_dir: Path
    db_path: Path

    @property
    def worktrees_dir(self) -> Path:
        return self.pit_dir / WORKTREES_DIR_NAME

    @classmethod
    def at(
        cls,
        repo_root: Path,
        *,
        pit_dir_name: str = PIT_DIR_NAME,
        db_file_name: str = DB_FILE_NAME,
    ) -> Project:
        pit_dir = repo_root / pit_dir_name
        return cls(repo_root=repo_root, pit_dir=pit_dir, db_path=pit_dir / db_file_name)

    @classmethod
    def init(cls, repo_root: Path, **names: str) -> Project:
        """Create ``.pit/`` and git-ignore it. Safe to call repeatedly."""

        if not (repo_root / ".git").exists():
            raise ProjectError(f"{repo_root} is not a git repository (no .git found).")
        project = cls.at(repo_root, **names)
        try:
            project.worktrees_dir.mkdir(parents=True, exist_ok=True)
            _ensure_gitignored(repo_root, project.pit_dir.name)
        except OSError as error:
            raise StorageIO(f"Failed to initialize {project.pit_dir}: {error}") from error
        logger.info("Initialized pit project in %s", repo_root)
        return project

    @classmethod
    def open(cls, repo_root: Path, **names: str) -> Project:
        """Open an initialized project; fails if ``pit init`` never ran."""

        project = cls.at(repo_root, **names)
        if not project.pit_dir.is_dir():
            raise ProjectError(
                f"Not a pit project (no {project.pit_dir}). Run `pit init` first.",
            )
        return project


def find_repo_root(start: Path, *, pit_dir_name: str = PIT_DIR_NAME) -> Path:
    """Walk up from ``start`` to the main repository root.

    Task worktrees carry their own ``.git`` file; those are skipped so that
    running pit from inside a task still resolves the owning project.
    """

    current = start.resolve()
    for candidate in (current, *current.parents):
        if not (candidate / ".git").exists():
            continue
        if _is_task_worktree(candidate, pit_dir_name):
            continue
        return candidate
    raise ProjectError(f"Not inside a git repository: {start}")


def _is_task_worktree(path: Path, pit_dir_name: str) -> bool:
    return (
        (path / ".git").is_file()
        and path.parent.name == WORKTREES_DIR_NAME
        and path.parent.parent.name == pit_dir_name
    )


def _ensure_gitignored(repo_root: Path, entry: str) -> None:
    gitignore = repo_root / ".gitignore"
    content = gitignore.read_text(encoding="utf-8") if gitignore.exists() else ""
    accepted = {entry, f"{entry}/", f"/{entry}", f"/{entry}/"}
    if any(line.strip() in accepted for line in content.splitlines()):
        return
    if GitClient(repo_root).run("check-ignore", "-q", entry, check=False).ok:
        return
    if content and not content.endswith("\n"):
        content += "\n"
    gitignore.write_text(f"{content}{entry}\n", encoding="utf-8")
