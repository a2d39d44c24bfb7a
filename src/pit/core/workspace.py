"""Git branch + worktree provisioning for task isolation."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from pit.core.errors import GitCommandError, StorageIO, WorkspaceConflict
from pit.core.models import Workspace

logger = logging.getLogger(__name__)

WORKTREES_DIR_NAME = "worktrees"


@dataclass(slots=True)
class GitResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitClient:
    """Thin git command layer rooted at one repository."""

    def __init__(self, repo_root: Path, *, executable: str = "git") -> None:
        self.repo_root = repo_root
        self.executable = executable

    def run(self, *args: str, check: bool = True) -> GitResult:
        """Run ``git <args>`` in the repository root.

        Raises ``GitCommandError`` on non-zero exit when ``check`` is set and
        ``StorageIO`` when git itself cannot be started.
        """

        logger.debug("git %s", " ".join(args))
        try:
            completed = subprocess.run(
                [self.executable, *args],
                cwd=self.repo_root,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as error:
            raise StorageIO(f"Failed to run git in {self.repo_root}: {error}") from error
        result = GitResult(
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
        if check and not result.ok:
            raise GitCommandError(args, result.returncode, result.stderr)
        return result

    def branch_exists(self, branch: str) -> bool:
        return self.run(
            "rev-parse",
            "--verify",
            "--quiet",
            f"refs/heads/{branch}",
            check=False,
        ).ok

    def registered_worktrees(self) -> set[Path]:
        listing = self.run("worktree", "list", "--porcelain").stdout
        return {
            Path(line.removeprefix("worktree ")).resolve()
            for line in listing.splitlines()
            if line.startswith("worktree ")
        }


class WorkspaceManager:
    """Creates and destroys the (branch, worktree) pair owned by one task.

    Branch and path are pure functions of the task name: the branch is
    ``<prefix>/<task>``, the worktree lives under ``<pit_dir>/worktrees``.
    """

    def __init__(self, *, git: GitClient, pit_dir: Path, branch_prefix: str = "pit") -> None:
        self.git = git
        self.worktrees_root = pit_dir / WORKTREES_DIR_NAME
        self.branch_prefix = branch_prefix.strip("/")

    def workspace_for(self, task_name: str) -> Workspace:
        return Workspace(
            branch=f"{self.branch_prefix}/{task_name}",
            path=self.worktrees_root / task_name,
        )

    def provision(self, task_name: str, base_ref: str | None = None) -> Workspace:
        """Create branch from ``base_ref`` (default HEAD), then its worktree."""

        workspace = self.workspace_for(task_name)
        if self.git.branch_exists(workspace.branch):
            raise WorkspaceConflict(f"Branch {workspace.branch!r} already exists.")
        if workspace.path.exists():
            raise WorkspaceConflict(f"Worktree path {workspace.path} already exists.")

        self.git.run("branch", workspace.branch, base_ref or "HEAD")
        try:
            self.worktrees_root.mkdir(parents=True, exist_ok=True)
            self.git.run("worktree", "add", str(workspace.path), workspace.branch)
        except (StorageIO, OSError) as error:
            cleanup = self.git.run("branch", "-D", workspace.branch, check=False)
            if not cleanup.ok:
                logger.warning(
                    "Could not delete branch %s after failed worktree add: %s",
                    workspace.branch,
                    cleanup.stderr.strip(),
                )
            if isinstance(error, OSError):
                raise StorageIO(f"Failed to prepare {self.worktrees_root}: {error}") from error
            raise

        logger.info("Provisioned workspace %s at %s", workspace.branch, workspace.path)
        return workspace

    def teardown(self, workspace: Workspace) -> list[str]:
        """Remove worktree then branch; return non-fatal warnings.

        Sessions must already be stopped by the caller.
        """

        warnings: list[str] = []
        warnings.extend(self._remove_worktree(workspace.path))
        warnings.extend(self._delete_branch(workspace.branch))
        for warning in warnings:
            logger.warning("Teardown of %s: %s", workspace.branch, warning)
        return warnings

    def exists(self, workspace: Workspace) -> tuple[bool, bool]:
        """Report whether the branch and the worktree directory exist."""

        return self.git.branch_exists(workspace.branch), workspace.path.exists()

    def _remove_worktree(self, path: Path) -> list[str]:
        if not path.exists():
            self.git.run("worktree", "prune", check=False)
            return [f"worktree {path} was already gone; pruned stale metadata"]

        if path.resolve() not in self.git.registered_worktrees():
            return [f"{path} is not a registered git worktree; left in place"]

        removed = self.git.run("worktree", "remove", str(path), check=False)
        if removed.ok:
            return []

        forced = self.git.run("worktree", "remove", "--force", str(path), check=False)
        if forced.ok:
            return [f"worktree {path} had uncommitted changes; removed with --force"]

        # A second -f is what git requires for locked worktrees.
        locked = self.git.run("worktree", "remove", "-f", "-f", str(path), check=False)
        if locked.ok:
            return [
                f"worktree {path} could not be removed with --force "
                f"({forced.stderr.strip()}); removed with -f -f",
            ]
        return [f"worktree {path} could not be removed: {locked.stderr.strip()}"]

    def _delete_branch(self, branch: str) -> list[str]:
        if not self.git.branch_exists(branch):
            return [f"branch {branch} was already gone"]
        deleted = self.git.run("branch", "-D", branch, check=False)
        if deleted.ok:
            return []
        return [f"branch {branch} could not be deleted: {deleted.stderr.strip()}"]
