"""Tests for git operations."""

import subprocess
from pathlib import Path

import pytest
from conftest import commit_all, git

from relflow.services.git import (
    GitError,
    build_tag_args,
    count_commits,
    create_branch,
    create_tag,
    delete_tag,
    get_commits,
    get_config,
    get_current_branch,
    get_head_sha,
    get_last_tag,
    get_repo_root,
    get_tag_commit,
    is_clean,
    list_tags,
    remote_exists,
    reset_soft,
    run_git,
    set_config,
    stage_files,
    tag_exists,
)


class TestRunGit:
    """Tests for run_git function."""

    def test_returns_stripped_stdout(self, temp_git_repo: Path) -> None:
        assert len(run_git("rev-parse", "--short", "HEAD", cwd=temp_git_repo)) >= 7

    def test_raises_on_failure(self, temp_git_repo: Path) -> None:
        with pytest.raises(GitError, match="failed"):
            run_git("checkout", "nonexistent-branch", cwd=temp_git_repo)

    def test_no_raise_with_check_false(self, temp_git_repo: Path) -> None:
        assert run_git("describe", "--tags", cwd=temp_git_repo, check=False) == ""


class TestRepository:
    """Repository and working tree queries."""

    def test_repo_root_from_subdirectory(self, temp_git_repo: Path) -> None:
        subdir = temp_git_repo / "subdir"
        subdir.mkdir()
        assert get_repo_root(subdir) == temp_git_repo

    def test_repo_root_outside_repo(self, tmp_path: Path) -> None:
        with pytest.raises(GitError, match="Not a git repository"):
            get_repo_root(tmp_path)

    def test_branch_and_head(self, temp_git_repo: Path) -> None:
        assert get_current_branch(temp_git_repo) == "main"
        assert len(get_head_sha(temp_git_repo)) == 40

    def test_is_clean(self, temp_git_repo: Path) -> None:
        assert is_clean(temp_git_repo)
        (temp_git_repo / "new.txt").write_text("x")
        assert not is_clean(temp_git_repo)

    def test_stage_files_and_count(self, temp_git_repo: Path) -> None:
        (temp_git_repo / "a.txt").write_text("a")
        (temp_git_repo / "b.txt").write_text("b")
        stage_files(["a.txt"], cwd=temp_git_repo)
        git(temp_git_repo, "commit", "-m", "add a")
        assert count_commits(cwd=temp_git_repo) == 2
        assert not is_clean(temp_git_repo)

    def test_get_commits_with_body(self, temp_git_repo: Path) -> None:
        (temp_git_repo / "a.txt").write_text("a")
        git(temp_git_repo, "add", "a.txt")
        git(temp_git_repo, "commit", "-m", "feat: a", "-m", "BREAKING CHANGE: yes")
        sha, subject, body = get_commits(cwd=temp_git_repo)[0]
        assert len(sha) == 40
        assert subject == "feat: a"
        assert body == "BREAKING CHANGE: yes"


class TestTags:
    """Tag creation, listing and removal."""

    def test_build_tag_args(self) -> None:
        assert build_tag_args("v1.0.0", "msg") == ["tag", "-a", "v1.0.0", "-m", "msg"]
        assert build_tag_args("v1.0.0", "msg", sign=True, key="ABC", force=True) == [
            "tag",
            "-s",
            "-u",
            "ABC",
            "-f",
            "v1.0.0",
            "-m",
            "msg",
        ]

    def test_create_and_delete(self, temp_git_repo: Path) -> None:
        create_tag("v0.1.0", "Release 0.1.0", cwd=temp_git_repo)
        assert tag_exists("v0.1.0", cwd=temp_git_repo)
        assert get_tag_commit("v0.1.0", cwd=temp_git_repo) == get_head_sha(temp_git_repo)
        delete_tag("v0.1.0", cwd=temp_git_repo)
        assert not tag_exists("v0.1.0", cwd=temp_git_repo)

    def test_list_tags_sorted_by_version(self, temp_git_repo: Path) -> None:
        for tag in ["v1.2.0", "v1.10.0", "v1.9.0"]:
            create_tag(tag, tag, cwd=temp_git_repo)
        assert list_tags(cwd=temp_git_repo) == ["v1.10.0", "v1.9.0", "v1.2.0"]

    def test_last_tag(self, temp_git_repo: Path) -> None:
        assert get_last_tag(cwd=temp_git_repo) is None
        create_tag("v1.0.0", "first", cwd=temp_git_repo)
        (temp_git_repo / "x.txt").write_text("x")
        commit_all(temp_git_repo, "fix: x")
        assert get_last_tag(cwd=temp_git_repo) == "v1.0.0"


class TestBranchesAndConfig:
    """Branches, resets, remotes and config."""

    def test_create_branch_keeps_checkout(self, temp_git_repo: Path) -> None:
        create_branch("backup/test", cwd=temp_git_repo)
        assert get_current_branch(temp_git_repo) == "main"
        assert git(temp_git_repo, "rev-parse", "backup/test") == get_head_sha(temp_git_repo)

    def test_reset_soft_keeps_changes_staged(self, temp_git_repo: Path) -> None:
        first = get_head_sha(temp_git_repo)
        (temp_git_repo / "x.txt").write_text("x")
        commit_all(temp_git_repo, "add x")
        reset_soft(first, cwd=temp_git_repo)
        assert get_head_sha(temp_git_repo) == first
        assert "A  x.txt" in git(temp_git_repo, "status", "--porcelain")

    def test_remote_exists(self, temp_git_repo: Path) -> None:
        assert not remote_exists("origin", cwd=temp_git_repo)
        subprocess.run(
            ["git", "remote", "add", "origin", "https://example.test/repo.git"],
            cwd=temp_git_repo,
            check=True,
        )
        assert remote_exists("origin", cwd=temp_git_repo)

    def test_config_roundtrip(self, temp_git_repo: Path) -> None:
        assert get_config("relflow.example", cwd=temp_git_repo) is None
        set_config("relflow.example", "yes", cwd=temp_git_repo)
        assert get_config("relflow.example", cwd=temp_git_repo) == "yes"
