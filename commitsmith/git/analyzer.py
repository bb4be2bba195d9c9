"""Git Analyzer - Extract staged changes and repository metadata from git."""

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FileStatus:
    """One entry of 'git diff --name-status': status letter, path, rename source."""
    path: str
    status: str = 'M'
    old_path: str | None = None


@dataclass
class DiffStats:
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0


@dataclass(frozen=True)
class CommitInfo:
    """One commit from 'git log': subject in message, the rest in body."""
    hash: str
    message: str
    author: str = ''
    date: str = ''
    body: str | None = None


class GitError(Exception):
    """Raised when git operations fail."""
    pass


# Field and record separators for machine-readable 'git log' output
_FIELD = '\x00'
_RECORD = '\x1e'
_LOG_FORMAT = '--format=%H%x00%s%x00%an%x00%aI%x00%b%x1e'


def _parse_name_status(output: str) -> list[FileStatus]:
    files = []
    for line in output.strip().split('\n'):
        parts = line.split('\t')
        if len(parts) < 2:
            continue
        code = parts[0]
        # Renames and copies carry a similarity score: R100\told\tnew
        if code.startswith('R') and len(parts) >= 3:
            files.append(FileStatus(path=parts[2], status='R', old_path=parts[1]))
        elif code.startswith('C') and len(parts) >= 3:
            files.append(FileStatus(path=parts[2], status='A'))
        else:
            files.append(FileStatus(path=parts[1], status=code[0]))
    return files


def _parse_shortstat(text: str) -> DiffStats:
    text = text.strip()
    if not text:
        return DiffStats()

    def _grab(pattern: str) -> int:
        match = re.search(pattern, text)
        return int(match.group(1)) if match else 0

    return DiffStats(
        files_changed=_grab(r'(\d+) file'),
        insertions=_grab(r'(\d+) insertion'),
        deletions=_grab(r'(\d+) deletion'),
    )


def _parse_log(output: str) -> list[CommitInfo]:
    commits = []
    for record in output.split(_RECORD):
        record = record.strip()
        if not record:
            continue
        fields = record.split(_FIELD)
        hash_, message, author, date = (fields + [''] * 4)[:4]
        body = _FIELD.join(fields[4:]).strip()
        commits.append(CommitInfo(hash_, message, author, date, body or None))
    return commits


def _pathspec(excludes: list[str] | None) -> list[str]:
    if not excludes:
        return []
    return ['--', '.', *(f':(exclude){p}' for p in excludes)]


class GitAnalyzer:
    """Reads staged changes and repository metadata from git."""

    def __init__(self, cwd: str | Path | None = None):
        self.cwd = cwd
        self._verify_git_available()
        self._verify_in_repo()

    def _run_git(self, *args: str) -> str:
        """Run a git command and return stdout."""
        try:
            result = subprocess.run(
                ['git', *args],
                capture_output=True,
                text=True,
                check=True,
                encoding='utf-8',
                errors='replace',
                cwd=self.cwd,
            )
            return result.stdout
        except subprocess.CalledProcessError as e:
            raise GitError(f"Git command failed: git {' '.join(args)}\n{e.stderr}")
        except FileNotFoundError:
            raise GitError("Git is not installed or not in PATH")

    def _verify_git_available(self) -> None:
        """Fail fast if git isn't available."""
        try:
            self._run_git('--version')
        except GitError:
            raise GitError("Git is not installed or not in PATH")

    def _verify_in_repo(self) -> None:
        """Fail fast if we're not in a git repository."""
        try:
            self._run_git('rev-parse', '--git-dir')
        except GitError:
            raise GitError("Not inside a git repository. Run this from a git repo.")

    def get_staged_files(self) -> list[FileStatus]:
        """Parse 'git diff --staged --name-status' output."""
        output = self._run_git('diff', '--staged', '--name-status')
        if not output.strip():
            return []
        return _parse_name_status(output)

    def get_staged_diff(self, excludes: list[str] | None = None) -> str:
        """Get the staged diff, letting git skip excluded paths up front."""
        return self._run_git('diff', '--staged', *_pathspec(excludes))

    def get_diff_stats(self) -> DiffStats:
        return _parse_shortstat(self._run_git('diff', '--staged', '--shortstat'))

    # -- last commit (amend) ------------------------------------------------

    def get_last_commit_message(self) -> str:
        """Full message of HEAD. Raises GitError when there are no commits."""
        return self._run_git('log', '-1', '--format=%B').strip()

    def get_last_commit_files(self) -> list[FileStatus]:
        output = self._run_git('diff-tree', '--no-commit-id', '--name-status', '-r', '-M', '--root', 'HEAD')
        if not output.strip():
            return []
        return _parse_name_status(output)

    def get_last_commit_diff(self, excludes: list[str] | None = None) -> str:
        """Patch introduced by HEAD (against the empty tree for a root commit)."""
        return self._run_git('diff-tree', '--no-commit-id', '-p', '-r', '-M', '--root', 'HEAD', *_pathspec(excludes))

    def get_last_commit_stats(self) -> DiffStats:
        return _parse_shortstat(self._run_git('diff-tree', '--no-commit-id', '--shortstat', '-r', '-M', '--root', 'HEAD'))

    def amend_commit(self, message: str) -> None:
        self._run_git('commit', '--amend', '-m', message)

    # -- repository metadata ------------------------------------------------

    def get_branch_name(self) -> str:
        """Current branch, or 'HEAD' when detached or unborn."""
        try:
            return self._run_git('rev-parse', '--abbrev-ref', 'HEAD').strip() or 'HEAD'
        except GitError:
            return 'HEAD'

    def get_root_dir(self) -> Path:
        return Path(self._run_git('rev-parse', '--show-toplevel').strip())

    def get_hooks_dir(self) -> Path:
        hooks = self._run_git('rev-parse', '--git-path', 'hooks').strip()
        path = Path(hooks)
        if not path.is_absolute():
            path = Path(self.cwd or Path.cwd()) / path
        return path

    # -- history ------------------------------------------------------------

    def get_recent_commits(self, n: int = 50) -> list[CommitInfo]:
        """The last n commits with their bodies, newest first (empty for a fresh repo)."""
        try:
            return _parse_log(self._run_git('log', f'-{n}', _LOG_FORMAT))
        except GitError:
            return []

    def get_commits_between(self, from_ref: str, to_ref: str = 'HEAD') -> list[CommitInfo]:
        """Commits reachable from to_ref but not from from_ref, newest first."""
        try:
            output = self._run_git('log', f'{from_ref}..{to_ref}', _LOG_FORMAT)
        except GitError:
            raise GitError(
                f'Could not get commits between "{from_ref}" and "{to_ref}".\n'
                "Make sure both refs exist (tags, branches, or commit SHAs)."
            )
        return _parse_log(output)

    def get_latest_tag(self) -> str | None:
        """Most recent tag reachable from HEAD, or None."""
        try:
            return self._run_git('describe', '--tags', '--abbrev=0').strip() or None
        except GitError:
            return None

    def create_commit(self, message: str) -> None:
        self._run_git('commit', '-m', message)
