"""
Feature processing, consolidation, export and documentation.

:class:`FeatureService` runs the feature analyzer over the diffs of a
history walk, keeps the results on the :class:`~diffscribe.session.Session`
and turns them into a consolidated summary, an export log or a
documentation file.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from diffscribe.llm.feature_analyzer import FeatureAnalyzer
from diffscribe.llm.ollama_client import LLMError
from diffscribe.session import Session
from diffscribe.vcs.history import DiffRecord


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class NoFeaturesError(Exception):
    """Raised when an operation needs features but none were gathered."""

    pass


@dataclass
class DocumentationResult:
    """Outcome of :meth:`FeatureService.generate_documentation`."""

    text: str
    path: Optional[Path] = None
    updated: bool = False


def _iso_timestamp(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


class FeatureService:
    """Operations on the features gathered in a session."""

    def __init__(self, session: Session, analyzer: FeatureAnalyzer) -> None:
        self.session = session
        self.analyzer = analyzer

    def process_diffs(
        self,
        records: Sequence[DiffRecord],
        on_record: Optional[Callable[[int, int, DiffRecord], None]] = None,
    ) -> float:
        """Analyze every record in order and store the descriptions.

        Previously gathered descriptions are discarded first. A record the
        model fails on is logged and skipped.

        Returns
        -------
        float
            Elapsed time in seconds.
        """
        start = time.monotonic()
        features: List[str] = []
        total = len(records)
        for position, record in enumerate(records, start=1):
            if on_record is not None:
                on_record(position, total, record)
            if not record.diff:
                logger.warning("No changes found for %s", record.label)
                continue
            try:
                features.extend(self.analyzer.analyze_diff(record.diff))
            except LLMError as exc:
                logger.error("Failed to analyze %s, skipping: %s", record.label, exc)
        self.session.all_features = features
        return time.monotonic() - start

    def consolidate(self) -> str:
        """Fold the gathered descriptions into one summary.

        The previous summary is kept if the model fails.
        """
        if not self.session.all_features:
            raise NoFeaturesError("No features to consolidate")
        self.session.features = self.analyzer.summarize_features(self.session.all_features)
        return self.session.features

    def render_export(self, now: datetime) -> str:
        repository = self.session.require_repository()
        lines = [
            f"Repository: {repository.path}",
            f"Project Type: {repository.project_type}",
            f"Export Time: {_iso_timestamp(now)}",
            "",
        ]
        content = "\n".join(lines) + "\n"
        if self.session.all_features:
            content += "Individual Feature Summaries:\n"
            content += "------------------------\n"
            for index, feature in enumerate(self.session.all_features, start=1):
                content += f"\nFeature Set {index}:\n{feature}\n"
        if self.session.features:
            content += "\nConsolidated Features:\n"
            content += "--------------------\n"
            content += self.session.features
        return content

    def export(self, directory: Optional[Path] = None, now: Optional[datetime] = None) -> Path:
        """Write the gathered and consolidated features to a log file.

        The file is named ``<repo>-features-<timestamp>.log`` and placed in
        ``directory`` (the current directory by default).
        """
        if not self.session.has_features():
            raise NoFeaturesError("No features to export")
        repository = self.session.require_repository()
        moment = now or datetime.now(timezone.utc)
        stamp = _iso_timestamp(moment).replace(":", "-").replace(".", "-")
        target = (directory or Path.cwd()) / f"{repository.name}-features-{stamp}.log"
        target.write_text(self.render_export(moment), encoding="utf-8")
        logger.info("Exported features to %s", target)
        return target

    def generate_documentation(self, file_path: Optional[str] = None) -> DocumentationResult:
        """Summarize the features, optionally merging them into a file.

        With ``file_path`` (relative to the repository root) the file is
        read once, updated with the new features when it has content or
        replaced by a fresh summary otherwise, and written once.
        """
        if not self.session.all_features:
            raise NoFeaturesError("No features to document")

        if not file_path:
            self.session.features = self.analyzer.summarize_features(self.session.all_features)
            return DocumentationResult(text=self.session.features)

        target = self.session.require_repository().path / file_path
        existing = target.read_text(encoding="utf-8") if target.exists() else ""
        if existing:
            text = self.analyzer.update_doc(existing, self.session.all_features)
        else:
            text = self.analyzer.summarize_features(self.session.all_features)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        self.session.features = text
        logger.info("Wrote documentation to %s", target)
        return DocumentationResult(text=text, path=target, updated=bool(existing))
