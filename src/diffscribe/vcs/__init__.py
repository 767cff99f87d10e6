"""
Version control integration.

Contains the Git client, the history walker producing diffs between
commits or tags, and repository loading. See
:mod:`diffscribe.vcs.git_client`, :mod:`diffscribe.vcs.history` and
:mod:`diffscribe.vcs.repository`.
"""

from .git_client import EMPTY_TREE, GitClient, GitError  # noqa: F401
from .history import DiffRecord, HistoryWalker, TagNotFoundError  # noqa: F401
from .repository import RepositoryError, RepositoryInfo, load_repository  # noqa: F401
