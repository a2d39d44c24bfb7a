from __future__ import annotations

from pathlib import Path

import allure
import pytest

from pit.core.workspace import WorkspaceManager
from pit.project import Project, ProjectError, find_repo_root

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Project Discovery"),
]


def test_init_creates_pit_dir_and_gitignores_it(git_repo: Path) -> None:
    project = Project.init(git_repo)

    assert project.pit_dir == git_repo / ".pit"
    assert project.db_path == git_repo / ".pit" / "pit.db"
    assert project.worktrees_dir.is_dir()
    assert (git_repo / ".gitignore").read_text(encoding="utf-8") == ".pit\n"


def test_init_is_idempotent_and_respects_existing_ignore_rules(git_repo: Path) -> None:
    (git_repo / ".gitignore").write_text("node_modules\n/.pit/", encoding="utf-8")

    Project.init(git_repo)
    Project.init(git_repo)

    assert (git_repo / ".gitignore").read_text(encoding="utf-8") == "node_modules\n/.pit/"


def test_init_appends_to_gitignore_without_trailing_newline(git_repo: Path) -> None:
    (git_repo / ".gitignore").write_text("*.log", encoding="utf-8")

    Project.init(git_repo)

    assert (git_repo / ".gitignore").read_text(encoding="utf-8") == "*.log\n.pit\n"


def test_init_outside_git_repository_fails(tmp_path: Path) -> None:
    with pytest.raises(ProjectError, match="not a git repository"):
        Project.init(tmp_path)


def test_open_requires_init(git_repo: Path) -> None:
    with pytest.raises(ProjectError, match="pit init"):
        Project.open(git_repo)

    Project.init(git_repo)
    assert Project.open(git_repo).pit_dir == git_repo / ".pit"


def test_find_repo_root_from_nested_directory(git_repo: Path) -> None:
    nested = git_repo / "src" / "module"
    nested.mkdir(parents=True)

    assert find_repo_root(nested) == git_repo.resolve()


def test_find_repo_root_from_inside_task_worktree(
    project: Project,
    workspaces: WorkspaceManager,
) -> None:
    workspace = workspaces.provision("fix-auth")

    assert find_repo_root(workspace.path) == project.repo_root.resolve()


def test_find_repo_root_outside_git_fails(tmp_path: Path) -> None:
    with pytest.raises(ProjectError, match="Not inside a git repository"):
        find_repo_root(tmp_path)
