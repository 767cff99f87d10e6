"""
Per-shell session state.

Everything a command needs to know about the current repository, the
live settings and the features gathered so far lives on one
:class:`Session` object that is passed to the operations explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from diffscribe.config.loader import DEFAULT_CONFIG
from diffscribe.vcs.repository import RepositoryError, RepositoryInfo


@dataclass
class LastRun:
    """The most recent history walk and its parameters."""

    kind: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Session:
    """State owned by one interactive shell.

    Attributes
    ----------
    config : Dict[str, Any]
        Settings from :func:`~diffscribe.config.loader.load_config`;
        ``/speak`` and ``/stream`` change them for this session only.
    repository : RepositoryInfo, optional
        The loaded repository, ``None`` until one is selected.
    all_features : List[str]
        Feature descriptions of the last walk in chronological order.
    features : str
        The consolidated summary or generated document.
    last_run : LastRun, optional
        The last history walk.
    """

    config: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_CONFIG))
    repository: Optional[RepositoryInfo] = None
    all_features: List[str] = field(default_factory=list)
    features: str = ""
    last_run: Optional[LastRun] = None

    @property
    def language(self) -> str:
        return self.config.get("language", DEFAULT_CONFIG["language"])

    @language.setter
    def language(self, value: str) -> None:
        self.config["language"] = value

    @property
    def streaming(self) -> bool:
        return bool(self.config.get("streaming", DEFAULT_CONFIG["streaming"]))

    @streaming.setter
    def streaming(self, value: bool) -> None:
        self.config["streaming"] = value

    def require_repository(self) -> RepositoryInfo:
        if self.repository is None:
            raise RepositoryError("No repository selected")
        return self.repository

    def switch_repository(self, repository: RepositoryInfo) -> None:
        """Select a new repository and forget everything gathered for the old one."""
        self.repository = repository
        self.last_run = None
        self.reset_features()

    def has_features(self) -> bool:
        return bool(self.features) or bool(self.all_features)

    def reset_features(self) -> None:
        self.all_features = []
        self.features = ""
