"""
Project type detection.

See :mod:`diffscribe.project.detector`.
"""

from .detector import (  # noqa: F401
    detect_project_type,
    get_source_file_patterns,
    is_source_file,
)
