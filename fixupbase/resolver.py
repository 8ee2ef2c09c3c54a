"""Decide which commit a pending change should be fixed up into."""

from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, FrozenSet, Optional, Sequence

from .errors import InvariantViolation
from .git_analyzer import DeletedLineRange
from .history import CommitHistoryView


class OutcomeKind(Enum):
    """Terminal results of a base-commit search."""
    NO_CHANGES = "no_changes"
    NO_DELETIONS = "no_deletions"
    AMBIGUOUS_COMMITS = "ambiguous_commits"
    BASE_ALREADY_MERGED = "base_already_merged"
    BASE_NOT_IN_VISIBLE_HISTORY = "base_not_in_visible_history"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class ResolutionOutcome:
    kind: OutcomeKind
    used_index: bool = True
    commit_index: Optional[int] = None
    candidate_subjects: str = ""
    shas: FrozenSet[str] = frozenset()

    @property
    def resolved(self) -> bool:
        return self.kind is OutcomeKind.RESOLVED

    @property
    def message(self) -> str:
        """Text shown to the user for this outcome."""
        if self.kind is OutcomeKind.NO_CHANGES:
            return "No changes to commit"
        if self.kind is OutcomeKind.NO_DELETIONS:
            return "No deleted lines in diff"
        if self.kind is OutcomeKind.AMBIGUOUS_COMMITS:
            hint = "Try staging fewer changes" if self.used_index else "Try staging some of the changes"
            return f"Multiple base commits found. ({hint})\n\n{self.candidate_subjects}"
        if self.kind is OutcomeKind.BASE_ALREADY_MERGED:
            return "The base commit for this change is already on master"
        if self.kind is OutcomeKind.BASE_NOT_IN_VISIBLE_HISTORY:
            return "Base commit is not in current view"
        return f"Base commit found at position {self.commit_index}"


class BaseCommitResolver:
    """Maps the candidate commits of a diff onto a ResolutionOutcome."""

    def __init__(self, history: CommitHistoryView):
        self.history = history

    def resolve(
        self,
        diff_text: str,
        used_index: bool,
        ranges: Sequence[DeletedLineRange],
        candidates: AbstractSet[str],
    ) -> ResolutionOutcome:
        """Apply the decision procedure.

        Raises:
            InvariantViolation: If there are deletions but no commit was blamed for them.
        """
        if diff_text == "":
            return ResolutionOutcome(OutcomeKind.NO_CHANGES, used_index=used_index)
        if not ranges:
            return ResolutionOutcome(OutcomeKind.NO_DELETIONS, used_index=used_index)
        if not candidates:
            raise InvariantViolation("No base commits found")

        shas = frozenset(candidates)
        if len(shas) > 1:
            return ResolutionOutcome(
                OutcomeKind.AMBIGUOUS_COMMITS,
                used_index=used_index,
                candidate_subjects=self.history.subject_lines_for(sorted(shas)),
                shas=shas,
            )

        sha = next(iter(shas))
        commit, index, found = self.history.lookup(sha)
        if not found:
            # Outside the visible window. If the window already reaches merged
            # commits, the base is most likely further down the mainline.
            oldest = self.history.oldest()
            if oldest is not None and oldest.merged:
                return ResolutionOutcome(OutcomeKind.BASE_ALREADY_MERGED, used_index=used_index, shas=shas)
            return ResolutionOutcome(OutcomeKind.BASE_NOT_IN_VISIBLE_HISTORY, used_index=used_index, shas=shas)

        if commit.merged:
            return ResolutionOutcome(OutcomeKind.BASE_ALREADY_MERGED, used_index=used_index, shas=shas)

        return ResolutionOutcome(OutcomeKind.RESOLVED, used_index=used_index, commit_index=index, shas=shas)
