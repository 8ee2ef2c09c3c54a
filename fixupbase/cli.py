"""Command-line interface for fixupbase."""

import logging
import re
import sys
from pathlib import Path

import click
import git

from .errors import FixupBaseError
from .fixup_finder import Colors, FixupBaseFinder, TerminalSelection, suggest_fixup_commands
from .git_analyzer import GitBackend
from .history import DEFAULT_LIMIT, DEFAULT_MAIN_BRANCHES, CommitHistory


def get_version() -> str:
    """Get version from package metadata or pyproject.toml."""
    try:
        from importlib.metadata import version
        return version("fixupbase")
    except Exception:
        pass

    # Fallback to reading pyproject.toml for development checkouts
    try:
        pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
        with open(pyproject_path, "r") as f:
            match = re.search(r'version\s*=\s*"([^"]+)"', f.read())
            if match:
                return match.group(1)
    except OSError:
        pass

    return "unknown"


def _load(repo_path, limit, main_branches):
    backend = GitBackend(repo_path)
    history = CommitHistory.load(backend.repo, limit=limit, main_branches=main_branches or DEFAULT_MAIN_BRANCHES)
    return backend, history


def _fail(message: str) -> None:
    click.echo(Colors.colorize(f"❌ Error: {message}", Colors.BRIGHT_RED), err=True)
    sys.exit(1)


repo_option = click.option('--repo', type=click.Path(exists=True, file_okay=False, dir_okay=True), default='.',
                           help='Path to git repository (default: current directory)')
limit_option = click.option('--limit', type=click.IntRange(min=1), default=DEFAULT_LIMIT, envvar='FIXUPBASE_LIMIT',
                            show_default=True, help='Number of commits in the visible history')
main_branch_option = click.option('--main-branch', 'main_branches', multiple=True, envvar='FIXUPBASE_MAIN_BRANCHES',
                                  help='Branch whose history counts as merged (repeatable; default: master, main)')


@click.group()
@click.version_option(version=get_version())
@click.option('--verbose', '-v', is_flag=True, help='Log what the search is doing')
def main(verbose):
    """fixupbase - Find the commit your pending changes should be fixed up into."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )


@main.command()
@repo_option
@limit_option
@main_branch_option
@click.option('--jobs', '-j', type=click.IntRange(min=1), envvar='FIXUPBASE_JOBS',
              help='Number of parallel blame processes (default: one per hunk with deletions)')
def find(repo, limit, main_branches, jobs):
    """Find and select the base commit of the staged (or else unstaged) changes.

    If only unstaged changes exist and a base commit is found, all changes are
    staged so that 'git commit --fixup' can be run right away.
    """
    try:
        backend, history = _load(repo, limit, main_branches)
        selection = TerminalSelection(history)
        finder = FixupBaseFinder(backend, backend, history, backend, selection, max_workers=jobs)
        outcome = finder.find_base_commit()
    except (FixupBaseError, git.exc.GitError) as e:
        _fail(str(e))
        return

    if not outcome.resolved:
        click.echo(Colors.colorize(f"🔍 {outcome.message}", Colors.YELLOW))
        sys.exit(1)

    commit = history[outcome.commit_index]
    if finder.staged_files:
        count = Colors.colorize(str(len(finder.staged_files)), Colors.BRIGHT_YELLOW)
        click.echo(f"📦 Staged {count} file{'s' if len(finder.staged_files) != 1 else ''}")
    sha = Colors.colorize(commit.short_sha, Colors.BRIGHT_CYAN, bold=True)
    click.echo(f"🎯 Base commit: {sha} {commit.subject}")
    suggest_fixup_commands(commit.sha)


@main.command()
@repo_option
@limit_option
@main_branch_option
def history(repo, limit, main_branches):
    """Show the visible commit history and which commits are merged."""
    try:
        _, commits = _load(repo, limit, main_branches)
    except (FixupBaseError, git.exc.GitError) as e:
        _fail(str(e))
        return

    if not len(commits):
        click.echo(Colors.colorize("🔍 No commits found.", Colors.YELLOW))
        return
    TerminalSelection(commits, window=limit).show_commits()


if __name__ == '__main__':
    main()
