"""
Split a unified diff into per-file segments.

A new segment starts at every line beginning with ``diff --git``; all
following lines up to the next such header belong to it. Text before the
first header has no file path attached and is dropped, so a diff without
any header produces no segments at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List


DIFF_HEADER = "diff --git"


@dataclass(frozen=True)
class DiffSegment:
    """The part of a diff that touches a single file.

    Attributes
    ----------
    file_path : str
        Path taken from the header after `` b/``.
    content : str
        Raw diff text for the file, header included, without leading or
        trailing whitespace.
    """

    file_path: str
    content: str


def _path_from_header(header: str) -> str:
    parts = header.split(" b/")
    return parts[1] if len(parts) > 1 else ""


def split_diff_into_segments(diff: str) -> Iterator[DiffSegment]:
    """Yield the file segments of ``diff`` in the order they appear.

    Each call starts a fresh pass over the text.
    """
    current: List[str] = []
    current_path = ""
    for line in diff.split("\n"):
        if line.startswith(DIFF_HEADER):
            if current:
                yield DiffSegment(current_path, "\n".join(current).strip())
            current_path = _path_from_header(line)
            current = [line]
        elif current:
            current.append(line)
    if current:
        yield DiffSegment(current_path, "\n".join(current).strip())
