"""
Unified diff handling.

Splitting a diff into per-file segments and discarding segments for files
that are not source code of the detected project type. See
:mod:`diffscribe.diff.segmenter` and :mod:`diffscribe.diff.source_filter`.
"""

from .segmenter import DIFF_HEADER, DiffSegment, split_diff_into_segments  # noqa: F401
from .source_filter import filter_source_files  # noqa: F401
