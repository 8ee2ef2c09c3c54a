"""End-to-end tests for the fixupbase CLI against a real repository."""
from pathlib import Path

import git
import pytest
from click.testing import CliRunner

from fixupbase.cli import main


def _commit(repo: git.Repo, path: Path, lines, message: str) -> str:
    path.write_text("\n".join(lines) + "\n")
    repo.git.add(str(path))
    repo.git.commit("-m", message)
    return repo.head.commit.hexsha


@pytest.fixture
def repo(tmp_path):
    """master: Initial commit; feature: Add b.txt, Edit a.txt."""
    repo = git.Repo.init(tmp_path)
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")
        config.set_value("commit", "gpgsign", "false")

    a_txt = tmp_path / "a.txt"
    b_txt = tmp_path / "b.txt"
    _commit(repo, a_txt, ["one", "two", "three", "four", "five"], "Initial commit")
    repo.git.branch("-M", "master")
    repo.git.checkout("-b", "feature")
    _commit(repo, b_txt, ["alpha", "beta", "gamma"], "Add b.txt")
    _commit(repo, a_txt, ["one", "two", "THREE", "four", "five"], "Edit a.txt")
    return repo


def _run(*args):
    return CliRunner().invoke(main, list(args))


class TestFind:
    def test_no_changes(self, repo) -> None:
        result = _run("find", "--repo", repo.working_tree_dir)
        assert result.exit_code == 1
        assert "No changes to commit" in result.output

    def test_unstaged_change_resolves_and_stages(self, repo) -> None:
        base = repo.commit("HEAD~1").hexsha
        (Path(repo.working_tree_dir) / "b.txt").write_text("alpha\ngamma\n")

        result = _run("find", "--repo", repo.working_tree_dir)

        assert result.exit_code == 0, result.output
        assert "Add b.txt" in result.output
        assert f"git commit --fixup={base}" in result.output
        assert repo.git.diff("--cached", "--name-only") == "b.txt"

    def test_staged_change_resolves(self, repo) -> None:
        base = repo.head.commit.hexsha
        (Path(repo.working_tree_dir) / "a.txt").write_text("one\ntwo\nfour\nfive\n")
        repo.git.add("a.txt")

        result = _run("find", "--repo", repo.working_tree_dir)

        assert result.exit_code == 0, result.output
        assert f"git commit --fixup={base}" in result.output

    def test_change_to_merged_commit(self, repo) -> None:
        (Path(repo.working_tree_dir) / "a.txt").write_text("ONE\ntwo\nTHREE\nfour\nfive\n")

        result = _run("find", "--repo", repo.working_tree_dir)

        assert result.exit_code == 1
        assert "already on master" in result.output
        assert repo.git.diff("--cached", "--name-only") == ""

    def test_change_spanning_two_commits(self, repo) -> None:
        (Path(repo.working_tree_dir) / "a.txt").write_text("one\ntwo\nfour\nfive\n")
        (Path(repo.working_tree_dir) / "b.txt").write_text("alpha\ngamma\n")

        result = _run("find", "--repo", repo.working_tree_dir)

        assert result.exit_code == 1
        assert "Multiple base commits found. (Try staging some of the changes)" in result.output
        assert "Add b.txt" in result.output
        assert "Edit a.txt" in result.output

    def test_only_additions(self, repo) -> None:
        (Path(repo.working_tree_dir) / "b.txt").write_text("alpha\nbeta\ngamma\ndelta\n")

        result = _run("find", "--repo", repo.working_tree_dir)

        assert result.exit_code == 1
        assert "No deleted lines in diff" in result.output

    def test_base_outside_visible_history(self, repo) -> None:
        (Path(repo.working_tree_dir) / "b.txt").write_text("alpha\ngamma\n")

        result = _run("find", "--repo", repo.working_tree_dir, "--limit", "1")

        assert result.exit_code == 1
        assert "Base commit is not in current view" in result.output

    def test_not_a_repository(self, tmp_path) -> None:
        result = _run("find", "--repo", str(tmp_path))
        assert result.exit_code == 1
        assert "Error" in result.output


class TestHistory:
    def test_lists_commits(self, repo) -> None:
        result = _run("history", "--repo", repo.working_tree_dir)

        assert result.exit_code == 0, result.output
        assert "Edit a.txt" in result.output
        assert "Add b.txt" in result.output
        assert "Initial commit" in result.output
        assert "merged" in result.output


class TestFindOutsideWindow:
    def test_ambiguous_lists_subjects_beyond_limit(self, repo) -> None:
        (Path(repo.working_tree_dir) / "a.txt").write_text("one\ntwo\nfour\nfive\n")
        (Path(repo.working_tree_dir) / "b.txt").write_text("alpha\ngamma\n")

        result = _run("find", "--repo", repo.working_tree_dir, "--limit", "1")

        assert result.exit_code == 1
        assert "Multiple base commits found." in result.output
        assert "Add b.txt" in result.output
        assert "Edit a.txt" in result.output
