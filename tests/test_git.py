"""
Tests for GitAnalyzer against a throwaway repository.

Run with:
    pytest tests/test_git.py -v
"""

import shutil
import subprocess

import pytest

from commitsmith.git import ChangeStatus, DiffProcessor, FileStatus, GitAnalyzer, GitError, IgnoreMatcher

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _git(cwd, *args):
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)


@pytest.fixture
def repo(tmp_path):
    _git(tmp_path, "init", "-q", "-b", "main")
    _git(tmp_path, "config", "user.email", "dev@example.com")
    _git(tmp_path, "config", "user.name", "Dev")
    _git(tmp_path, "config", "commit.gpgsign", "false")
    (tmp_path / "app.py").write_text("print('hi')\n")
    (tmp_path / "old_name.py").write_text("".join(f"line {i}\n" for i in range(20)))
    _git(tmp_path, "add", ".")
    _git(tmp_path, "commit", "-q", "-m", "feat: initial import")
    return tmp_path


class TestGitAnalyzer:

    def test_outside_repository(self, tmp_path):
        with pytest.raises(GitError, match="Not inside a git repository"):
            GitAnalyzer(cwd=tmp_path)

    def test_nothing_staged(self, repo):
        analyzer = GitAnalyzer(cwd=repo)
        assert analyzer.get_staged_files() == []
        assert analyzer.get_staged_diff() == ""
        assert analyzer.get_diff_stats().files_changed == 0

    def test_staged_statuses(self, repo):
        (repo / "app.py").write_text("print('hello')\n")
        (repo / "new.py").write_text("x = 1\n")
        _git(repo, "mv", "old_name.py", "new_name.py")
        _git(repo, "add", ".")

        files = {f.path: f for f in GitAnalyzer(cwd=repo).get_staged_files()}
        assert files["app.py"] == FileStatus("app.py", "M")
        assert files["new.py"] == FileStatus("new.py", "A")
        assert files["new_name.py"] == FileStatus("new_name.py", "R", old_path="old_name.py")

    def test_excludes_skip_noise(self, repo):
        (repo / "app.py").write_text("print('hello')\n")
        (repo / "package-lock.json").write_text("{}\n")
        _git(repo, "add", ".")

        diff = GitAnalyzer(cwd=repo).get_staged_diff(IgnoreMatcher.git_excludes())
        assert "app.py" in diff
        assert "package-lock.json" not in diff

    def test_diff_stats(self, repo):
        (repo / "app.py").write_text("print('hello')\nprint('again')\n")
        _git(repo, "add", ".")

        stats = GitAnalyzer(cwd=repo).get_diff_stats()
        assert stats.files_changed == 1
        assert stats.insertions == 2
        assert stats.deletions == 1

    def test_branch_and_history(self, repo):
        analyzer = GitAnalyzer(cwd=repo)
        assert analyzer.get_branch_name() == "main"
        assert [c.message for c in analyzer.get_recent_commits()] == ["feat: initial import"]
        assert analyzer.get_root_dir().resolve() == repo.resolve()
        assert analyzer.get_hooks_dir().resolve() == (repo / ".git" / "hooks").resolve()

    def test_create_commit(self, repo):
        (repo / "app.py").write_text("print('hello')\n")
        _git(repo, "add", ".")
        analyzer = GitAnalyzer(cwd=repo)
        analyzer.create_commit("fix(app): greet politely")
        assert [c.message for c in analyzer.get_recent_commits(1)] == ["fix(app): greet politely"]
        assert analyzer.get_staged_files() == []

    def test_real_diff_reduces(self, repo):
        (repo / "app.py").write_text("print('hello')\n")
        _git(repo, "mv", "old_name.py", "new_name.py")
        _git(repo, "add", ".")
        analyzer = GitAnalyzer(cwd=repo)

        reduced = DiffProcessor().reduce(analyzer.get_staged_diff(), analyzer.get_staged_files())
        paths = [c.path for c in reduced.chunks]
        assert "app.py" in paths
        assert reduced.total_additions >= 1


class TestHistory:

    def test_recent_commits_carry_bodies(self, repo):
        (repo / "app.py").write_text("print('hello')\n")
        _git(repo, "commit", "-q", "-am", "fix(app): greet politely\n\n- say hello instead of hi")
        commits = GitAnalyzer(cwd=repo).get_recent_commits()

        assert [c.message for c in commits] == ["fix(app): greet politely", "feat: initial import"]
        assert commits[0].body == "- say hello instead of hi"
        assert commits[1].body is None
        assert commits[0].author == "Dev"
        assert len(commits[0].hash) == 40

    def test_recent_commits_in_fresh_repo(self, tmp_path):
        _git(tmp_path, "init", "-q")
        assert GitAnalyzer(cwd=tmp_path).get_recent_commits() == []

    def test_latest_tag(self, repo):
        analyzer = GitAnalyzer(cwd=repo)
        assert analyzer.get_latest_tag() is None
        _git(repo, "tag", "v0.1.0")
        assert analyzer.get_latest_tag() == "v0.1.0"

    def test_commits_between(self, repo):
        _git(repo, "tag", "v0.1.0")
        (repo / "app.py").write_text("print('hello')\n")
        _git(repo, "commit", "-q", "-am", "fix(app): greet politely (#12)")
        (repo / "docs.md").write_text("# Docs\n")
        _git(repo, "add", ".")
        _git(repo, "commit", "-q", "-m", "Write some docs")

        commits = GitAnalyzer(cwd=repo).get_commits_between("v0.1.0")
        assert [c.message for c in commits] == ["Write some docs", "fix(app): greet politely (#12)"]
        assert all(c.date for c in commits)

    def test_commits_between_unknown_ref(self, repo):
        with pytest.raises(GitError, match="Make sure both refs exist"):
            GitAnalyzer(cwd=repo).get_commits_between("v9.9.9")


class TestLastCommit:

    def test_message(self, repo):
        assert GitAnalyzer(cwd=repo).get_last_commit_message() == "feat: initial import"

    def test_message_without_commits(self, tmp_path):
        _git(tmp_path, "init", "-q")
        with pytest.raises(GitError):
            GitAnalyzer(cwd=tmp_path).get_last_commit_message()

    def test_root_commit_files_and_diff(self, repo):
        analyzer = GitAnalyzer(cwd=repo)
        files = {f.path: f for f in analyzer.get_last_commit_files()}
        assert files["app.py"] == FileStatus("app.py", "A")
        assert files["old_name.py"] == FileStatus("old_name.py", "A")
        assert "+print('hi')" in analyzer.get_last_commit_diff()

    def test_rename_and_excludes(self, repo):
        _git(repo, "mv", "old_name.py", "new_name.py")
        (repo / "yarn.lock").write_text("lock\n")
        (repo / "app.py").write_text("print('hello')\n")
        _git(repo, "add", ".")
        _git(repo, "commit", "-q", "-m", "wip")
        analyzer = GitAnalyzer(cwd=repo)

        files = {f.path: f for f in analyzer.get_last_commit_files()}
        assert files["new_name.py"] == FileStatus("new_name.py", "R", old_path="old_name.py")
        diff = analyzer.get_last_commit_diff(IgnoreMatcher.git_excludes())
        assert "app.py" in diff
        assert "yarn.lock" not in diff

        stats = analyzer.get_last_commit_stats()
        assert stats.files_changed == 3
        assert stats.insertions == 2

    def test_amend_rewrites_message(self, repo):
        analyzer = GitAnalyzer(cwd=repo)
        analyzer.amend_commit("feat(app): import greeting script")
        assert analyzer.get_last_commit_message() == "feat(app): import greeting script"
        assert len(analyzer.get_recent_commits()) == 1

    def test_amend_request_reduces(self, repo):
        analyzer = GitAnalyzer(cwd=repo)
        reduced = DiffProcessor().reduce(analyzer.get_last_commit_diff(), analyzer.get_last_commit_files())
        assert {c.path for c in reduced.file_chunks} == {"app.py", "old_name.py"}
        assert all(c.status is ChangeStatus.ADDED for c in reduced.file_chunks)
