"""Find the base commit for the pending changes and select it."""

import logging
from typing import List, Optional, Protocol

import click
from tabulate import tabulate

from .errors import CommandFailure
from .git_analyzer import (
    BlameCorrelator,
    BlameProvider,
    DiffProvider,
    WorkingTree,
    parse_diff,
)
from .history import CommitHistory, CommitHistoryView
from .resolver import BaseCommitResolver, OutcomeKind, ResolutionOutcome

logger = logging.getLogger(__name__)

COMMITS_VIEW = "commits"


# Color constants for terminal output
class Colors:
    """ANSI color codes for terminal output."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    YELLOW = '\033[33m'
    CYAN = '\033[36m'
    WHITE = '\033[37m'

    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_MAGENTA = '\033[95m'
    BRIGHT_CYAN = '\033[96m'

    @staticmethod
    def colorize(text: str, color: str, bold: bool = False) -> str:
        """Apply color and formatting to text."""
        prefix = Colors.BOLD if bold else ""
        return f"{prefix}{color}{text}{Colors.RESET}"


class SelectionSink(Protocol):
    def set_selected_index(self, index: int) -> None: ...

    def push_view(self, view_id: str) -> None: ...


class TerminalSelection:
    """Shows the visible history with the selected commit highlighted."""

    def __init__(self, history: CommitHistory, window: int = 10):
        self.history = history
        self.window = window
        self.selected_index: Optional[int] = None
        self.views: List[str] = []

    def set_selected_index(self, index: int) -> None:
        self.selected_index = index

    def push_view(self, view_id: str) -> None:
        self.views.append(view_id)
        if view_id == COMMITS_VIEW:
            self.show_commits()

    def show_commits(self) -> None:
        """Print the commits around the selection as a table."""
        selected = self.selected_index if self.selected_index is not None else 0
        start = max(0, selected - self.window // 2)
        end = min(len(self.history), start + self.window)

        rows = []
        for index in range(start, end):
            commit = self.history[index]
            marker = Colors.colorize("▶", Colors.BRIGHT_GREEN, bold=True) if index == self.selected_index else ""
            sha = Colors.colorize(commit.short_sha, Colors.BRIGHT_CYAN, bold=index == self.selected_index)
            status = Colors.colorize("merged", Colors.DIM) if commit.merged else ""
            rows.append([marker, index, sha, commit.subject, status])

        headers = [
            "",
            Colors.colorize("#", Colors.BRIGHT_MAGENTA, bold=True),
            Colors.colorize("Hash", Colors.BRIGHT_CYAN, bold=True),
            Colors.colorize("Subject", Colors.WHITE, bold=True),
            Colors.colorize("Status", Colors.DIM, bold=True),
        ]
        click.echo(tabulate(rows, headers=headers, tablefmt="simple", stralign="left"))


class FixupBaseFinder:
    """Finds the commit that introduced the lines the pending change deletes."""

    def __init__(
        self,
        diff_provider: DiffProvider,
        blame_provider: BlameProvider,
        history: CommitHistoryView,
        working_tree: WorkingTree,
        selection: SelectionSink,
        max_workers: Optional[int] = None,
    ):
        self.diff_provider = diff_provider
        self.history = history
        self.working_tree = working_tree
        self.selection = selection
        self.correlator = BlameCorrelator(blame_provider, max_workers=max_workers)
        self.resolver = BaseCommitResolver(history)
        self.staged_files: List[str] = []

    def get_diff(self):
        """Return ``(diff, used_index)``: staged changes first, unstaged otherwise."""
        diff = self.diff_provider.index_diff()
        if diff:
            return diff, True
        logger.debug("No staged changes, falling back to the working tree")
        return self.diff_provider.worktree_diff(), False

    def find_base_commit(self) -> ResolutionOutcome:
        """Resolve the base commit for the pending changes.

        On success the commit is selected in the commits view. If the changes
        came from the working tree they are staged first, so that the fixup
        commit made next contains them.

        Raises:
            CommandFailure: If reading the diff or staging failed.
            DiffFormatError: If the diff contains a malformed hunk header.
            InvariantViolation: If deletions were found but nothing was blamed.
        """
        diff, used_index = self.get_diff()
        if diff == "":
            return self.resolver.resolve(diff, used_index, [], frozenset())

        ranges = parse_diff(diff)
        logger.debug("Parsed %d deleted-line ranges from the %s diff",
                     len(ranges), "staged" if used_index else "unstaged")
        if not ranges:
            return self.resolver.resolve(diff, used_index, ranges, frozenset())

        shas = self.correlator.correlate(ranges)
        outcome = self.resolver.resolve(diff, used_index, ranges, shas)
        logger.debug("Resolution outcome: %s", outcome.kind.value)
        if outcome.kind is not OutcomeKind.RESOLVED:
            return outcome

        if not used_index:
            self.working_tree.stage_all()
            try:
                self.staged_files = self.working_tree.refresh_files()
            except CommandFailure as e:
                # the changes are staged already; still select the base commit
                logger.warning("Could not refresh files after staging: %s", e)

        self.selection.set_selected_index(outcome.commit_index)
        self.selection.push_view(COMMITS_VIEW)
        return outcome


def suggest_fixup_commands(sha: str) -> None:
    """Print the commands that create and apply a fixup for ``sha``."""
    click.echo()
    header = Colors.colorize("🚀 To fix up the base commit, run:", Colors.WHITE, bold=True)
    click.echo(header)
    for command in (f"git commit --fixup={sha}", f"git rebase -i --autosquash {sha}^"):
        click.echo(f"    {Colors.colorize(command, Colors.BRIGHT_GREEN, bold=True)}")
