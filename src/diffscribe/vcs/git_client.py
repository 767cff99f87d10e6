"""
Git client implementation for diffscribe.

This module wraps the read-only Git operations needed to walk a
repository's history: listing tracked files, commits and tags, and
producing diffs between two revisions. All subprocess calls go through
:meth:`GitClient._run` so that unit tests can mock them easily.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# Hash of the empty tree object, used as the "before" side of the very
# first comparison in a history.
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


@dataclass(frozen=True)
class Commit:
    """A commit as listed by ``git log``."""

    hash: str
    date: datetime
    message: str


@dataclass(frozen=True)
class Tag:
    """A tag with its creation date."""

    name: str
    date: datetime


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


def _parse_date(value: str) -> datetime:
    return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))


class GitClient:
    """Client for reading history from a Git repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If the command exits with a non-zero status when ``check`` is
            True, or git itself cannot be started.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding='utf-8',
                errors='replace',
            )
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to run Git: %s", e)
            raise GitError(f"Failed to run git: {e}") from e

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stderr,
            )
            raise GitError(result.stderr.strip() or result.stdout.strip())
        return result

    # ------------------------------------------------------------------
    # Repository information
    # ------------------------------------------------------------------
    def is_work_tree(self) -> bool:
        """Return True if ``repo_root`` lies inside a Git working tree."""
        try:
            result = self._run(["rev-parse", "--is-inside-work-tree"], check=False)
        except GitError:
            return False
        return result.returncode == 0 and result.stdout.strip() == "true"

    def get_toplevel(self) -> Path:
        """Return the absolute root directory of the working tree."""
        result = self._run(["rev-parse", "--show-toplevel"], check=True)
        return Path(result.stdout.strip())

    def has_commits(self) -> bool:
        result = self._run(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
        return result.returncode == 0

    def list_files(self) -> List[str]:
        """Return the paths of all tracked files."""
        result = self._run(["ls-files"], check=True)
        return [line for line in result.stdout.splitlines() if line]

    def count_commits(self) -> int:
        if not self.has_commits():
            return 0
        result = self._run(["rev-list", "--count", "HEAD"], check=True)
        return int(result.stdout.strip() or 0)

    def get_current_branch(self) -> str:
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"], check=False)
        if result.returncode != 0:
            # Unborn branch: HEAD exists only as a symbolic ref.
            result = self._run(["symbolic-ref", "--short", "HEAD"], check=True)
        return result.stdout.strip()

    def list_branches(self) -> List[str]:
        result = self._run(["branch", "--format=%(refname:short)"], check=True)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def get_status_counts(self) -> Dict[str, int]:
        """Count modified and staged files in the working tree.

        Untracked files are ignored. A file changed both in the index and
        in the working tree counts once for each.
        """
        result = self._run(["status", "--porcelain"], check=True)
        counts = {"modified": 0, "staged": 0}
        for line in result.stdout.splitlines():
            if len(line) < 3 or line.startswith("??"):
                continue
            index_status, tree_status = line[0], line[1]
            if index_status != " ":
                counts["staged"] += 1
            if tree_status != " ":
                counts["modified"] += 1
        return counts

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def get_commits(self) -> List[Commit]:
        """Return all commits reachable from HEAD, oldest first.

        Commits are ordered by author date; commits sharing a date keep
        their topological order.
        """
        if not self.has_commits():
            return []
        fmt = f"--format=%H{_FIELD_SEP}%aI{_FIELD_SEP}%B{_RECORD_SEP}"
        result = self._run(["log", fmt], check=True)
        commits: List[Commit] = []
        for record in result.stdout.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            commit_hash, date, message = record.split(_FIELD_SEP, 2)
            commits.append(Commit(commit_hash.strip(), _parse_date(date), message.strip()))
        commits.reverse()
        commits.sort(key=lambda commit: commit.date)
        return commits

    def get_tags(self) -> List[Tag]:
        """Return all tags sorted by creation date, oldest first."""
        fmt = f"--format=%(refname:short){_FIELD_SEP}%(creatordate:iso-strict)"
        result = self._run(["for-each-ref", "--sort=creatordate", fmt, "refs/tags"], check=True)
        tags: List[Tag] = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            name, date = line.split(_FIELD_SEP, 1)
            tags.append(Tag(name.strip(), _parse_date(date)))
        tags.sort(key=lambda tag: tag.date)
        return tags

    def diff(self, from_ref: str, to_ref: str) -> str:
        """Return the unified diff between two revisions.

        Colour, external diff drivers and the path prefixes are pinned so
        that user settings such as ``diff.noprefix`` cannot change the
        ``diff --git a/<path> b/<path>`` headers.
        """
        args = [
            "diff",
            "--no-color",
            "--no-ext-diff",
            "--src-prefix=a/",
            "--dst-prefix=b/",
            from_ref,
            to_ref,
        ]
        result = self._run(args, check=True)
        return result.stdout
