from __future__ import annotations

import shutil

import allure
import pytest

from pit.core.errors import GitCommandError, StorageIO, WorkspaceConflict
from pit.core.workspace import GitClient, GitResult, WorkspaceManager
from pit.project import Project

pytestmark = [
    allure.epic("Workspaces"),
    allure.feature("Branch And Worktree Provisioning"),
]


def test_provision_creates_branch_and_worktree(
    project: Project,
    workspaces: WorkspaceManager,
) -> None:
    workspace = workspaces.provision("fix-auth")

    assert workspace.branch == "pit/fix-auth"
    assert workspace.path == project.pit_dir / "worktrees" / "fix-auth"
    assert (workspace.path / "README.md").read_text(encoding="utf-8") == "# demo\n"
    assert workspaces.exists(workspace) == (True, True)
    assert workspace.path.resolve() in workspaces.git.registered_worktrees()
    assert GitClient(workspace.path).run("branch", "--show-current").stdout.strip() == (
        "pit/fix-auth"
    )


def test_provision_from_base_ref(project: Project, workspaces: WorkspaceManager) -> None:
    base = workspaces.provision("base")
    (base.path / "feature.txt").write_text("feature\n", encoding="utf-8")
    GitClient(base.path).run("add", "feature.txt")
    GitClient(base.path).run(
        "-c",
        "user.name=pit",
        "-c",
        "user.email=pit@example.com",
        "commit",
        "-q",
        "-m",
        "feature",
    )

    stacked = workspaces.provision("stacked", base_ref="pit/base")

    assert (stacked.path / "feature.txt").exists()
    assert not (project.repo_root / "feature.txt").exists()


def test_provision_rejects_existing_branch(workspaces: WorkspaceManager) -> None:
    workspaces.git.run("branch", "pit/taken")

    with pytest.raises(WorkspaceConflict, match="pit/taken"):
        workspaces.provision("taken")
    assert not workspaces.workspace_for("taken").path.exists()


def test_provision_rejects_existing_path(workspaces: WorkspaceManager) -> None:
    workspaces.workspace_for("occupied").path.mkdir(parents=True)

    with pytest.raises(WorkspaceConflict, match="already exists"):
        workspaces.provision("occupied")
    assert not workspaces.git.branch_exists("pit/occupied")


def test_unknown_base_ref_creates_nothing(workspaces: WorkspaceManager) -> None:
    with pytest.raises(GitCommandError, match="no-such-ref"):
        workspaces.provision("broken", base_ref="no-such-ref")
    assert workspaces.exists(workspaces.workspace_for("broken")) == (False, False)


def test_failed_worktree_add_deletes_the_branch(
    workspaces: WorkspaceManager,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    original_run = GitClient.run

    def _run(self: GitClient, *args: str, check: bool = True):
        if args[:2] == ("worktree", "add"):
            raise GitCommandError(args, 128, "fatal: simulated worktree failure")
        return original_run(self, *args, check=check)

    monkeypatch.setattr(GitClient, "run", _run)

    with pytest.raises(GitCommandError, match="simulated worktree failure"):
        workspaces.provision("broken")
    assert not workspaces.git.branch_exists("pit/broken")


def test_teardown_removes_worktree_and_branch(workspaces: WorkspaceManager) -> None:
    workspace = workspaces.provision("fix-auth")

    warnings = workspaces.teardown(workspace)

    assert warnings == []
    assert workspaces.exists(workspace) == (False, False)


def test_teardown_forces_dirty_worktree_with_warning(workspaces: WorkspaceManager) -> None:
    workspace = workspaces.provision("dirty")
    (workspace.path / "scratch.txt").write_text("uncommitted\n", encoding="utf-8")

    warnings = workspaces.teardown(workspace)

    assert any("--force" in warning for warning in warnings)
    assert workspaces.exists(workspace) == (False, False)


def test_teardown_removes_locked_worktree_and_its_branch(workspaces: WorkspaceManager) -> None:
    workspace = workspaces.provision("locked")
    workspaces.git.run("worktree", "lock", str(workspace.path))

    warnings = workspaces.teardown(workspace)

    assert any("-f -f" in warning for warning in warnings)
    assert workspaces.exists(workspace) == (False, False)


def test_teardown_still_tries_branch_when_worktree_removal_fails(
    workspaces: WorkspaceManager,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    workspace = workspaces.provision("stuck")
    run = workspaces.git.run

    def _refuse_removal(*args: str, check: bool = True) -> GitResult:
        if args[:2] == ("worktree", "remove"):
            return GitResult(returncode=128, stdout="", stderr="fatal: refusing\n")
        return run(*args, check=check)

    monkeypatch.setattr(workspaces.git, "run", _refuse_removal)

    warnings = workspaces.teardown(workspace)

    assert f"worktree {workspace.path} could not be removed: fatal: refusing" in warnings
    assert any("branch pit/stuck could not be deleted" in warning for warning in warnings)


def test_teardown_prunes_when_directory_is_already_gone(workspaces: WorkspaceManager) -> None:
    workspace = workspaces.provision("vanished")
    shutil.rmtree(workspace.path)

    warnings = workspaces.teardown(workspace)

    assert any("already gone" in warning for warning in warnings)
    assert workspace.path.resolve() not in workspaces.git.registered_worktrees()
    assert not workspaces.git.branch_exists("pit/vanished")


def test_teardown_warns_when_branch_is_already_gone(workspaces: WorkspaceManager) -> None:
    workspace = workspaces.provision("orphan")
    workspaces.git.run("worktree", "remove", str(workspace.path))
    workspaces.git.run("branch", "-D", workspace.branch)

    warnings = workspaces.teardown(workspace)

    assert any("branch pit/orphan was already gone" in warning for warning in warnings)


def test_teardown_warns_when_branch_cannot_be_deleted(
    project: Project,
    workspaces: WorkspaceManager,
) -> None:
    workspace = workspaces.provision("checked-out")
    workspaces.git.run("worktree", "remove", str(workspace.path))
    elsewhere = project.repo_root.parent / "elsewhere"
    workspaces.git.run("worktree", "add", str(elsewhere), workspace.branch)

    warnings = workspaces.teardown(workspace)

    assert any("could not be deleted" in warning for warning in warnings)
    assert workspaces.git.branch_exists("pit/checked-out")


def test_missing_git_binary_is_a_storage_error(project: Project) -> None:
    manager = WorkspaceManager(
        git=GitClient(project.repo_root, executable="definitely-not-git"),
        pit_dir=project.pit_dir,
    )

    with pytest.raises(StorageIO, match="Failed to run git"):
        manager.provision("fix-auth")
