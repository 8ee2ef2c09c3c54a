"""Tests for fixupbase.history.CommitHistory."""
from fixupbase.history import CommitHistory, HistoryCommit

NEWEST = HistoryCommit(sha="1" * 40, subject="Fix typo in README")
MIDDLE = HistoryCommit(sha="2" * 40, subject="Add fetcher retry loop")
OLDEST = HistoryCommit(sha="3" * 40, subject="Initial commit", merged=True)


def _history() -> CommitHistory:
    return CommitHistory([NEWEST, MIDDLE, OLDEST])


class TestLookup:
    def test_full_sha(self) -> None:
        assert _history().lookup("2" * 40) == (MIDDLE, 1, True)

    def test_prefix(self) -> None:
        assert _history().lookup("3333333") == (OLDEST, 2, True)

    def test_missing(self) -> None:
        assert _history().lookup("4" * 40) == (None, -1, False)

    def test_empty_identifier(self) -> None:
        assert _history().lookup("") == (None, -1, False)


class TestSubjectLines:
    def test_in_given_order(self) -> None:
        text = _history().subject_lines_for(["3" * 40, "1" * 40])
        assert text == "33333333 Initial commit\n11111111 Fix typo in README"

    def test_unknown_sha_listed_without_subject(self) -> None:
        assert _history().subject_lines_for(["abcdef0123456789"]) == "abcdef01"


class TestOldest:
    def test_last_entry(self) -> None:
        assert _history().oldest() is OLDEST

    def test_empty(self) -> None:
        assert CommitHistory([]).oldest() is None

    def test_sequence_access(self) -> None:
        history = _history()
        assert len(history) == 3
        assert history[0] is NEWEST
        assert list(history) == [NEWEST, MIDDLE, OLDEST]


class FakeGit:
    def __init__(self, output: str):
        self.output = output
        self.calls = []

    def show(self, *args):
        self.calls.append(args)
        return self.output


class FakeRepo:
    def __init__(self, output: str):
        self.git = FakeGit(output)


class TestSubjectsOutsideWindow:
    def test_read_from_git_in_one_call(self) -> None:
        repo = FakeRepo("4" * 40 + "\x00Add fetcher\n" + "5" * 40 + "\x00Add parser")
        history = CommitHistory([NEWEST, MIDDLE, OLDEST], repo=repo)

        text = history.subject_lines_for(["5" * 40, "1" * 40, "4" * 40])

        assert text == "55555555 Add parser\n11111111 Fix typo in README\n44444444 Add fetcher"
        assert repo.git.calls == [("-s", "--format=%H%x00%s", "5" * 40, "4" * 40)]

    def test_no_git_call_when_all_visible(self) -> None:
        repo = FakeRepo("")
        history = CommitHistory([NEWEST, MIDDLE, OLDEST], repo=repo)

        history.subject_lines_for(["1" * 40, "2" * 40])

        assert repo.git.calls == []
