"""
Feature extraction and consolidation using an LLM.

This module provides the :class:`FeatureAnalyzer` class, which asks a
language model (any object implementing :class:`LanguageModel`, usually
an :class:`~diffscribe.llm.ollama_client.OllamaClient`) to describe the
features introduced by a diff and to fold many such descriptions into a
single document.

A diff is first split into per-file segments which are packed into
groups of bounded size, so each request fits the model's context window.
Consolidation works the same way on the lines of all descriptions: the
model sees one bounded chunk at a time together with the running
summary from the previous step, never the whole history at once.
"""

from __future__ import annotations

import logging
from textwrap import dedent
from typing import Dict, List, Protocol, Sequence

from diffscribe.diff.segmenter import split_diff_into_segments
from diffscribe.grouping.chunk_grouper import group_by_size


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


DIFF_GROUP_SIZE = 2000
SUMMARY_CHUNK_SIZE = 4000
ANALYSIS_MAX_TOKENS = 2048
NOTHING_TO_SUMMARIZE = "No features to summarize"


class LanguageModel(Protocol):
    """Capabilities the analyzer needs from a model client."""

    def query(self, prompt: str, max_tokens: int = ...) -> str:
        ...

    def chat(self, messages: List[Dict[str, str]], max_tokens: int = ...) -> str:
        ...


class FeatureAnalyzer:
    """Turn diffs into feature descriptions and fold them into documents."""

    def __init__(self, model: LanguageModel, language: str = "English") -> None:
        self.model = model
        self.language = language

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------
    def _build_analysis_prompt(self, group_diff: str) -> str:
        instructions = dedent(
            f"""
            Please describe changes as a list of features following these rules:
            1. Describe features introduced by the changes, not file changes.
            2. Analyze implementation and parameter details without responding with code.
            3. Do NOT review, fix, refactor, or provide code examples.
            4. Do NOT offer help, suggestions, or additional context.
            5. Respond in {self.language}.
            6. ONLY return a bullet list in markdown format, using this structure, e.g.:

              - [Feature description]
                - [Changes made and parameters details]
            """
        ).strip()
        return f"You are a business analyst. You have a git diff:\n{group_diff}\n\n{instructions}\n"

    def _summary_system_message(self) -> Dict[str, str]:
        content = dedent(
            f"""
            You are a summarization assistant. The user will provide a large text in chunks. After each chunk, repeat the following process:
            1. Describe the overall system structure and its capabilities.
            2. Describe features into a list by page, module, service, functionality, and etc..
            3. Describe capabilities of each feature as a sub list.
            4. Keep updating features with information from each new chunk.
            5. Use plain language and avoid code or technical details.
            6. Do not offer additional help or suggestions.
            7. Respond in {self.language}.
            8. Use markdown format with bullet points only (no bold or italics), e.g.:
              - [Feature description]
                - [Functionality description]
            """
        ).strip()
        return {"role": "system", "content": content}

    def _doc_system_message(self) -> Dict[str, str]:
        content = dedent(
            f"""
            You are a technical writer maintaining a feature document. The user will provide new feature descriptions in chunks together with the current document. After each chunk:
            1. Merge the new features into the document.
            2. Preserve the existing structure, headings and formatting of the document.
            3. Update existing entries instead of duplicating them.
            4. Use plain language and avoid code or technical details.
            5. Do not offer additional help or suggestions.
            6. Respond in {self.language}.
            7. Return ONLY the complete updated document.
            """
        ).strip()
        return {"role": "system", "content": content}

    # ------------------------------------------------------------------
    # Per-diff analysis
    # ------------------------------------------------------------------
    def analyze_diff(self, diff: str) -> List[str]:
        """Describe the features introduced by ``diff``.

        Returns one description per group of file segments, in the order
        the segments appear in the diff. A diff without any
        ``diff --git`` header yields no descriptions.
        """
        segments = split_diff_into_segments(diff.strip())
        groups = group_by_size(segments, DIFF_GROUP_SIZE, lambda segment: len(segment.content))

        features: List[str] = []
        for index, group in enumerate(groups, start=1):
            group_diff = "\n".join(segment.content for segment in group)
            logger.debug(
                "Analyzing diff group %d (%d file(s), %d chars)", index, len(group), len(group_diff)
            )
            result = self.model.query(self._build_analysis_prompt(group_diff), ANALYSIS_MAX_TOKENS)
            features.append(result.strip())
        return features

    # ------------------------------------------------------------------
    # Folding
    # ------------------------------------------------------------------
    @staticmethod
    def _line_chunks(features: Sequence[str]) -> List[List[str]]:
        lines = [line for feature in features for line in feature.splitlines()]
        return list(group_by_size(lines, SUMMARY_CHUNK_SIZE, len))

    def _fold(self, system: Dict[str, str], chunks: List[List[str]], first_prompt, next_prompt) -> str:
        messages: List[Dict[str, str]] = [system]
        running = ""
        for index, chunk in enumerate(chunks):
            text = "\n".join(chunk)
            prompt = first_prompt(text) if index == 0 else next_prompt(text, running)
            # Only the system message and the current turn go to the model.
            del messages[1:]
            messages.append({"role": "user", "content": prompt})
            logger.debug("Fold step %d/%d (%d chars)", index + 1, len(chunks), len(text))
            running = self.model.chat(list(messages))
            messages.append({"role": "assistant", "content": running})
        return running.strip()

    def summarize_features(self, features: Sequence[str]) -> str:
        """Fold feature descriptions into one consolidated summary.

        Blank descriptions are ignored. When nothing remains,
        :data:`NOTHING_TO_SUMMARIZE` is returned without calling the model.
        """
        valid = [feature for feature in features if feature and feature.strip()]
        if not valid:
            return NOTHING_TO_SUMMARIZE

        return self._fold(
            self._summary_system_message(),
            self._line_chunks(valid),
            lambda text: (
                f"Here is the first part of the document:\n\n{text}\n\n"
                "Please summarize this portion."
            ),
            lambda text, summary: (
                f"Here is another part of the document:\n\n{text}\n\n"
                f"Incorporate this new information into the existing summary:\n\n{summary}"
            ),
        )

    def update_doc(self, existing: str, features: Sequence[str]) -> str:
        """Merge feature descriptions into an existing document.

        Returns ``existing`` untouched when there is nothing to merge.
        """
        valid = [feature for feature in features if feature and feature.strip()]
        if not valid:
            return existing

        return self._fold(
            self._doc_system_message(),
            self._line_chunks(valid),
            lambda text: (
                f"Here is the existing document:\n\n{existing}\n\n"
                f"Here is the first part of the new features:\n\n{text}\n\n"
                "Update the document with these features, keeping its structure and formatting."
            ),
            lambda text, document: (
                f"Here is another part of the new features:\n\n{text}\n\n"
                f"Incorporate this new information into the current document:\n\n{document}"
            ),
        )
