"""
Loading a repository into a session.

Validates that a path points at a Git working tree and gathers what the
shell shows about it: the detected project type, commit count, branches
and working tree status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Union

from diffscribe.project.detector import detect_project_type
from diffscribe.vcs.git_client import GitClient, GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class RepositoryError(Exception):
    """Raised when a path is not a usable Git repository."""

    pass


@dataclass
class RepositoryInfo:
    """Snapshot of a repository taken when it is loaded."""

    path: Path
    project_type: str = "unknown"
    total_commits: int = 0
    current_branch: str = ""
    branches: List[str] = field(default_factory=list)
    status: Dict[str, int] = field(default_factory=lambda: {"modified": 0, "staged": 0})

    @property
    def name(self) -> str:
        return self.path.name


def load_repository(
    path: Union[str, Path],
    client_factory: Callable[[Path], GitClient] = GitClient,
) -> RepositoryInfo:
    """Validate ``path`` and collect information about the repository.

    Raises
    ------
    RepositoryError
        If the path does not exist, is not a directory, is not inside a
        Git working tree, or Git fails while reading it.
    """
    candidate = Path(path).expanduser()
    if not candidate.is_dir():
        raise RepositoryError(f"Invalid repository path: {candidate} is not a directory")

    client = client_factory(candidate.resolve())
    if not client.is_work_tree():
        raise RepositoryError(f"Invalid git repository: {candidate}")

    try:
        root = client.get_toplevel()
        if root != client.repo_root:
            client = client_factory(root)
        files = client.list_files()
        info = RepositoryInfo(
            path=root,
            project_type=detect_project_type(files),
            total_commits=client.count_commits(),
            current_branch=client.get_current_branch(),
            branches=client.list_branches(),
            status=client.get_status_counts(),
        )
    except GitError as exc:
        raise RepositoryError(f"Failed to read repository {candidate}: {exc}") from exc

    logger.info("Loaded repository %s (%s)", info.path, info.project_type)
    return info
