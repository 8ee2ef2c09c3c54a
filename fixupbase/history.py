"""Read-only view of the commits visible on the current branch."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

import git

from .errors import CommandFailure

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 300
DEFAULT_MAIN_BRANCHES = ('master', 'main')


@dataclass(frozen=True)
class HistoryCommit:
    """One entry of the visible history."""
    sha: str
    subject: str
    merged: bool = False

    @property
    def short_sha(self) -> str:
        return self.sha[:8]


class CommitHistoryView(Protocol):
    def lookup(self, sha: str) -> Tuple[Optional[HistoryCommit], int, bool]: ...

    def subject_lines_for(self, shas: Iterable[str]) -> str: ...

    def oldest(self) -> Optional[HistoryCommit]: ...


class CommitHistory:
    """Ordered commits of the current branch, most recent first."""

    def __init__(self, commits: Sequence[HistoryCommit], repo: Optional[git.Repo] = None):
        self._commits = tuple(commits)
        self.repo = repo

    def __len__(self) -> int:
        return len(self._commits)

    def __iter__(self):
        return iter(self._commits)

    def __getitem__(self, index: int) -> HistoryCommit:
        return self._commits[index]

    def lookup(self, sha: str) -> Tuple[Optional[HistoryCommit], int, bool]:
        """Find a commit by full hash or by prefix.

        Returns:
            ``(commit, index, True)`` when found, ``(None, -1, False)`` otherwise.
        """
        if not sha:
            return None, -1, False
        for index, commit in enumerate(self._commits):
            if commit.sha.startswith(sha):
                return commit, index, True
        return None, -1, False

    def subject_lines_for(self, shas: Iterable[str]) -> str:
        """One ``<short sha> <subject>`` line per identifier, in the given order.

        Subjects of identifiers outside the visible window are read from git
        in one call. Without a repository they are listed without a subject.
        """
        shas = list(shas)
        missing = [sha for sha in shas if not self.lookup(sha)[2]]
        outside = self._subjects_from_git(missing)

        lines = []
        for sha in shas:
            commit, _, found = self.lookup(sha)
            if found:
                lines.append(f"{commit.short_sha} {commit.subject}")
            elif sha in outside:
                lines.append(f"{sha[:8]} {outside[sha]}")
            else:
                lines.append(sha[:8])
        return '\n'.join(lines)

    def _subjects_from_git(self, shas: Sequence[str]) -> Dict[str, str]:
        if not shas or self.repo is None:
            return {}
        try:
            output = self.repo.git.show('-s', '--format=%H%x00%s', *shas)
        except git.exc.GitCommandError as e:
            raise CommandFailure("Could not read commit subjects", command=e.command, stderr=str(e)) from e

        subjects = {}
        for line in output.split('\n'):
            full_sha, _, subject = line.partition('\x00')
            for sha in shas:
                if full_sha.startswith(sha):
                    subjects[sha] = subject
        return subjects

    def oldest(self) -> Optional[HistoryCommit]:
        return self._commits[-1] if self._commits else None

    @classmethod
    def load(
        cls,
        repo: git.Repo,
        limit: int = DEFAULT_LIMIT,
        main_branches: Sequence[str] = DEFAULT_MAIN_BRANCHES,
    ) -> 'CommitHistory':
        """Load the newest ``limit`` commits reachable from HEAD.

        A commit counts as merged when it is also reachable from one of the
        main branches (local or on ``origin``).
        """
        try:
            log_output = repo.git.log('--format=%H%x00%s', '-n', str(limit), 'HEAD')
        except git.exc.GitCommandError as e:
            raise CommandFailure("Could not read commit history", command=e.command, stderr=str(e)) from e

        merged = _merged_shas(repo, limit, main_branches)
        commits: List[HistoryCommit] = []
        for line in log_output.split('\n'):
            if not line:
                continue
            sha, _, subject = line.partition('\x00')
            commits.append(HistoryCommit(sha=sha, subject=subject, merged=sha in merged))

        logger.debug("Loaded %d commits, %d merged", len(commits), sum(c.merged for c in commits))
        return cls(commits, repo=repo)


def _merged_shas(repo: git.Repo, limit: int, main_branches: Sequence[str]) -> Set[str]:
    """Hashes of commits shared between HEAD and any existing main branch."""
    merged: Set[str] = set()
    for branch in main_branches:
        for ref in (branch, f'origin/{branch}'):
            try:
                repo.git.rev_parse('--verify', '--quiet', ref)
                merge_base = repo.git.merge_base('HEAD', ref)
            except git.exc.GitCommandError:
                continue
            merged.update(
                sha for sha in repo.git.rev_list('-n', str(limit), merge_base).split('\n') if sha
            )
    return merged
