"""
Size-bounded grouping.

Packs diff segments or text lines into groups small enough for a single
model request. See :mod:`diffscribe.grouping.chunk_grouper`.
"""

from .chunk_grouper import group_by_size  # noqa: F401
