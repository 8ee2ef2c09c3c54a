"""Diff parsing and blame correlation for finding the base commit of a fixup."""

import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, List, Optional, Protocol, Sequence, Set

import git

from .errors import BlameError, CommandFailure, DiffError, DiffFormatError, StageError

logger = logging.getLogger(__name__)

HUNK_HEADER_RE = re.compile(r'@@ -(\d+)(?:,\d+)? \+\d+(?:,\d+)? @@')

# Shared by the staged and unstaged diff; '--cached' is prepended for the index.
DIFF_ARGS = ('-U0', '--ignore-submodules=all', 'HEAD', '--')
DIFF_INDEX_FLAGS = ('--submodule', '--no-ext-diff', '--no-color', '--patch')


@dataclass(frozen=True)
class DeletedLineRange:
    """A run of deleted lines within one hunk of the pre-image."""
    file_path: str
    start_line: int  # 1-based line in the pre-image
    line_count: int


class DiffProvider(Protocol):
    def index_diff(self) -> str: ...

    def worktree_diff(self) -> str: ...


class BlameProvider(Protocol):
    def blame_range(self, file_path: str, revision: str, start_line: int, line_count: int) -> str: ...


class WorkingTree(Protocol):
    def stage_all(self) -> None: ...

    def refresh_files(self) -> List[str]: ...


def parse_diff(diff_text: str) -> List[DeletedLineRange]:
    """Collect the deleted-line ranges of a zero-context unified diff.

    Each hunk contributes at most one range: its pre-image start line and the
    number of '-' lines seen until the next hunk or file header. Hunks without
    deletions are dropped.

    Raises:
        DiffFormatError: If a hunk header does not match ``@@ -N[,M] +N2[,M2] @@``.
    """
    ranges: List[DeletedLineRange] = []
    filename = ""
    start_line = 0
    count = 0
    in_hunk = False

    def finish_hunk():
        if in_hunk and count > 0:
            ranges.append(DeletedLineRange(filename, start_line, count))

    if diff_text.endswith('\n'):
        diff_text = diff_text[:-1]

    for line in diff_text.split('\n'):
        if not line:
            continue
        if line.startswith('diff --git'):
            finish_hunk()
            in_hunk = False
        elif line.startswith('--- ') and not in_hunk:
            # headers only follow 'diff --git'; inside a hunk this is a deleted line.
            # git appends a tab when the file name contains spaces
            filename = line[6:].rstrip('\t')
        elif line.startswith('@@ '):
            finish_hunk()
            match = HUNK_HEADER_RE.match(line)
            if not match:
                raise DiffFormatError(line)
            start_line = int(match.group(1))
            count = 0
            in_hunk = True
        elif in_hunk and line[0] == '-':
            count += 1

    finish_hunk()
    return ranges


def blame_identifiers(blame_output: str) -> List[str]:
    """Return the leading commit identifier of every line of blame output."""
    identifiers = []
    for line in blame_output.rstrip('\n').split('\n'):
        if not line:
            continue
        # boundary commits are prefixed with '^'
        identifiers.append(line.split(' ')[0].lstrip('^'))
    return identifiers


class BlameCorrelator:
    """Blames deleted-line ranges in parallel and merges the commit identifiers."""

    def __init__(self, blame_provider: BlameProvider, max_workers: Optional[int] = None):
        self.blame_provider = blame_provider
        self.max_workers = max_workers

    def correlate(self, ranges: Sequence[DeletedLineRange], revision: str = 'HEAD') -> FrozenSet[str]:
        """Blame every range against ``revision`` and return the set of commits seen.

        A range whose blame fails is logged and skipped; the remaining ranges
        still contribute. The call returns only after every task has finished.
        """
        if not ranges:
            return frozenset()

        shas: Set[str] = set()
        lock = threading.Lock()

        def blame_one(info: DeletedLineRange) -> None:
            try:
                output = self.blame_provider.blame_range(
                    info.file_path, revision, info.start_line, info.line_count
                )
            except CommandFailure as e:
                logger.error("Error blaming file '%s': %s", info.file_path, e)
                return
            found = blame_identifiers(output)
            with lock:
                shas.update(found)

        workers = self.max_workers or len(ranges)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='blame') as executor:
            futures = [executor.submit(blame_one, info) for info in ranges]
            wait(futures)
            for future in futures:
                # re-raise anything blame_one did not absorb
                future.result()

        logger.debug("Blamed %d ranges, found %d candidate commits", len(ranges), len(shas))
        return frozenset(shas)


class GitBackend:
    """Runs the git commands the base-commit search needs."""

    def __init__(self, repo_path: str = "."):
        """Initialize with repository path."""
        self.repo = git.Repo(repo_path, search_parent_directories=True)
        self.repo_path = Path(self.repo.working_tree_dir or repo_path)

    def index_diff(self) -> str:
        """Diff of the staged changes against HEAD, without context lines."""
        return self._diff_index('--cached', *DIFF_ARGS)

    def worktree_diff(self) -> str:
        """Diff of the working tree against HEAD, without context lines."""
        return self._diff_index(*DIFF_ARGS)

    def _diff_index(self, *args: str) -> str:
        try:
            return self.repo.git.diff_index(*DIFF_INDEX_FLAGS, *args)
        except git.exc.GitCommandError as e:
            raise DiffError("Could not read diff", command=e.command, stderr=str(e)) from e

    def blame_range(self, file_path: str, revision: str, start_line: int, line_count: int) -> str:
        """Blame ``line_count`` lines of ``file_path`` at ``revision`` starting at ``start_line``.

        Uses long identifiers so they compare equal to full commit hashes, and
        ``--root`` so the root commit is not reported as a boundary.
        """
        try:
            return self.repo.git.blame(
                '-l', '--root', '-L', f'{start_line},+{line_count}', revision, '--', file_path
            )
        except git.exc.GitCommandError as e:
            raise BlameError(f"Could not blame {file_path}", command=e.command, stderr=str(e)) from e

    def stage_all(self) -> None:
        try:
            self.repo.git.add('-A')
        except git.exc.GitCommandError as e:
            raise StageError("Could not stage changes", command=e.command, stderr=str(e)) from e

    def refresh_files(self) -> List[str]:
        """Re-read the index and return the staged paths."""
        self.repo.index.update()
        try:
            output = self.repo.git.diff('--cached', '--name-only')
        except git.exc.GitCommandError as e:
            raise DiffError("Could not list staged files", command=e.command, stderr=str(e)) from e
        return sorted(path for path in output.split('\n') if path)
