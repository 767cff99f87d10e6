"""
Keep only the parts of a diff that touch source files.

The diff text is cut at every line starting with ``diff --git``, the same
boundaries the segmenter uses. The file path of each section is read from
its ``a/<path> b/`` pair and the section is kept when the path is a source
file for the project type. The kept sections are joined back into
diff-shaped text.
"""

from __future__ import annotations

import logging
import re

from diffscribe.diff.segmenter import DIFF_HEADER
from diffscribe.project.detector import is_source_file


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


_PATH_PAIR = re.compile(r"a/(.+?) b/")
_SECTION_START = re.compile(rf"^{re.escape(DIFF_HEADER)}", re.MULTILINE)


def filter_source_files(diff: str, project_type: str) -> str:
    """Return ``diff`` reduced to sections for source files.

    Parameters
    ----------
    diff : str
        Unified diff text with ``diff --git`` section headers.
    project_type : str
        Project type as returned by
        :func:`~diffscribe.project.detector.detect_project_type`.

    Returns
    -------
    str
        The filtered diff, or an empty string when no section was kept,
        meaning there are no relevant changes.
    """
    kept = []
    # Text before the first header belongs to no file.
    for section in _SECTION_START.split(diff)[1:]:
        section = section.strip()
        if not section:
            continue
        match = _PATH_PAIR.search(section)
        if not match:
            continue
        if is_source_file(match.group(1), project_type):
            kept.append(section)
        else:
            logger.debug("Dropping non-source diff section: %s", match.group(1))
    if not kept:
        return ""
    return f"{DIFF_HEADER} " + f"\n{DIFF_HEADER} ".join(kept)
