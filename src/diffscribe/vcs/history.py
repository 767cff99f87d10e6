"""
Walking a repository's history as a sequence of diffs.

Two walks are supported. The commit walk compares every ``n``-th commit
with the one ``n`` steps before it, starting from the empty tree and
ending at HEAD. The tag walk compares consecutive tags by creation date,
again starting from the empty tree (unless a starting tag is given) and
ending at HEAD.

Diffs are filtered down to source files of the project type; comparisons
without any remaining changes are dropped. A comparison that Git fails
to produce is logged and skipped so that one broken revision does not
abort the whole walk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from diffscribe.diff.source_filter import filter_source_files
from diffscribe.vcs.git_client import EMPTY_TREE, Commit, GitClient, GitError, Tag


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


HEAD = "HEAD"

ProgressCallback = Callable[[int, int], None]
Comparison = Tuple[str, str, str]


class TagNotFoundError(GitError):
    """Raised when a requested starting tag does not exist."""

    def __init__(self, tag: str, available: Sequence[str]) -> None:
        super().__init__(f"Tag '{tag}' not found")
        self.tag = tag
        self.available = list(available)


def short_ref(ref: str) -> str:
    """Return a display form of a revision: short hash, tag name or ``empty tree``."""
    if ref == EMPTY_TREE:
        return "empty tree"
    if len(ref) == 40 and all(c in "0123456789abcdef" for c in ref):
        return ref[:7]
    return ref


@dataclass(frozen=True)
class DiffRecord:
    """A filtered diff between two revisions.

    Attributes
    ----------
    from_ref : str
        Older revision, a commit hash, tag name or :data:`EMPTY_TREE`.
    to_ref : str
        Newer revision, a commit hash, tag name or ``HEAD``.
    diff : str
        Unified diff restricted to source files.
    message : str
        Commit messages covered by the comparison, or a tag range.
    """

    from_ref: str
    to_ref: str
    diff: str
    message: str = ""

    @property
    def label(self) -> str:
        return f"{short_ref(self.from_ref)} → {short_ref(self.to_ref)}"


def _messages(commits: Sequence[Commit]) -> str:
    return "\n".join(commit.message for commit in commits if commit.message)


def plan_commit_comparisons(commits: Sequence[Commit], group_size: int) -> List[Comparison]:
    """Work out which revisions to compare for a commit walk.

    Parameters
    ----------
    commits : Sequence[Commit]
        All commits, oldest first.
    group_size : int
        Number of commits covered by one comparison, at least 1.

    Returns
    -------
    List[Tuple[str, str, str]]
        ``(from_ref, to_ref, message)`` triples in chronological order.
    """
    if group_size < 1:
        raise ValueError("group size must be a positive integer")

    total = len(commits)
    if total < group_size + 1:
        return [(EMPTY_TREE, HEAD, _messages(commits))]

    comparisons: List[Comparison] = [(EMPTY_TREE, commits[0].hash, commits[0].message)]
    last = 0
    for index in range(group_size, total, group_size):
        previous = commits[index - group_size]
        comparisons.append(
            (previous.hash, commits[index].hash, _messages(commits[index - group_size + 1:index + 1]))
        )
        last = index
    if last != total - 1:
        comparisons.append((commits[last].hash, HEAD, _messages(commits[last + 1:])))
    return comparisons


def plan_tag_comparisons(tags: Sequence[Tag], from_tag: Optional[str] = None) -> List[Comparison]:
    """Work out which revisions to compare for a tag walk.

    Raises
    ------
    TagNotFoundError
        If ``from_tag`` is given but is not one of ``tags``.
    """
    names = [tag.name for tag in tags]
    start = 0
    if from_tag:
        if from_tag not in names:
            raise TagNotFoundError(from_tag, names)
        start = names.index(from_tag)
    elif not names:
        return [(EMPTY_TREE, HEAD, f"{short_ref(EMPTY_TREE)}..{HEAD}")]

    comparisons: List[Comparison] = []
    if not from_tag:
        comparisons.append((EMPTY_TREE, names[0], f"{short_ref(EMPTY_TREE)}..{names[0]}"))
    for index in range(start, len(names) - 1):
        comparisons.append((names[index], names[index + 1], f"{names[index]}..{names[index + 1]}"))
    comparisons.append((names[-1], HEAD, f"{names[-1]}..{HEAD}"))
    return comparisons


class HistoryWalker:
    """Produce filtered diffs across a repository's history."""

    def __init__(self, git: GitClient, project_type: str) -> None:
        self.git = git
        self.project_type = project_type

    def commit_diffs(
        self, group_size: int = 1, on_progress: Optional[ProgressCallback] = None
    ) -> List[DiffRecord]:
        """Diff the history in steps of ``group_size`` commits."""
        comparisons = plan_commit_comparisons(self.git.get_commits(), group_size)
        logger.info("Walking %d commit comparison(s), group size %d", len(comparisons), group_size)
        return self._collect(comparisons, on_progress)

    def tag_diffs(
        self, from_tag: Optional[str] = None, on_progress: Optional[ProgressCallback] = None
    ) -> List[DiffRecord]:
        """Diff consecutive tags, optionally starting at ``from_tag``.

        Raises
        ------
        TagNotFoundError
            Before any diff is taken, if ``from_tag`` does not exist.
        """
        comparisons = plan_tag_comparisons(self.git.get_tags(), from_tag)
        logger.info("Walking %d tag comparison(s)", len(comparisons))
        return self._collect(comparisons, on_progress)

    def _collect(
        self, comparisons: Sequence[Comparison], on_progress: Optional[ProgressCallback]
    ) -> List[DiffRecord]:
        records: List[DiffRecord] = []
        total = len(comparisons)
        for position, (from_ref, to_ref, message) in enumerate(comparisons, start=1):
            try:
                raw = self.git.diff(from_ref, to_ref)
            except GitError as exc:
                logger.error(
                    "Failed to diff %s..%s, skipping: %s", short_ref(from_ref), short_ref(to_ref), exc
                )
            else:
                diff = filter_source_files(raw, self.project_type)
                if diff:
                    records.append(DiffRecord(from_ref, to_ref, diff, message))
                else:
                    logger.debug(
                        "No source changes between %s and %s", short_ref(from_ref), short_ref(to_ref)
                    )
            if on_progress is not None:
                on_progress(position, total)
        return records
