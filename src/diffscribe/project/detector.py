"""
Heuristics for detecting a repository's project type.

Detection is a simple lookup over the tracked file list: manifest files
are checked first, then framework indicator files, then file extensions.
The project type selects which file extensions count as source code when
diffs are filtered.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple


WEB_INDICATORS = (
    "index.html",
    "src/App.js",
    "src/App.vue",
    "src/app.tsx",
    "angular.json",
    "next.config.js",
    "nuxt.config.js",
    "svelte.config.js",
)

SOURCE_FILE_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "web": (".js", ".jsx", ".ts", ".tsx", ".vue", ".svelte", ".css", ".scss", ".html"),
    "node": (".js", ".jsx", ".ts", ".mjs", ".cjs"),
    "go": (".go",),
    "dart": (".dart",),
    "python": (".py",),
    "java": (".java",),
    "unknown": (".js", ".ts", ".go", ".py", ".java", ".dart", ".cpp", ".c", ".h", ".hpp"),
}


def detect_project_type(files: Iterable[str]) -> str:
    """Classify a repository from the paths of its tracked files.

    Parameters
    ----------
    files : Iterable[str]
        Paths relative to the repository root, e.g. from ``git ls-files``.

    Returns
    -------
    str
        One of ``web``, ``node``, ``go``, ``dart``, ``python``, ``java``
        or ``unknown``.
    """
    file_list: List[str] = list(files)
    names = set(file_list)

    def has_suffix(suffix: str) -> bool:
        return any(path.endswith(suffix) for path in file_list)

    if "package.json" in names:
        if any(indicator in names for indicator in WEB_INDICATORS):
            return "web"
        return "node"
    if "go.mod" in names or has_suffix(".go"):
        return "go"
    if "pubspec.yaml" in names or has_suffix(".dart"):
        return "dart"
    if "requirements.txt" in names or "setup.py" in names or has_suffix(".py"):
        return "python"
    if "pom.xml" in names or "build.gradle" in names or has_suffix(".java"):
        return "java"
    return "unknown"


def get_source_file_patterns(project_type: str) -> Tuple[str, ...]:
    """Return the source file extensions for ``project_type``."""
    return SOURCE_FILE_PATTERNS.get(project_type, SOURCE_FILE_PATTERNS["unknown"])


def is_source_file(file_path: str, project_type: str) -> bool:
    """Return True if ``file_path`` has a source extension for ``project_type``."""
    return file_path.lower().endswith(get_source_file_patterns(project_type))
