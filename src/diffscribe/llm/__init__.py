"""
Language model integration for diffscribe.

This package contains the :class:`OllamaClient` for communicating with
an Ollama LLM server and the :class:`FeatureAnalyzer` which uses the
model to describe diffs and consolidate the descriptions.
"""

from .ollama_client import LLMError, OllamaClient  # noqa: F401
from .feature_analyzer import FeatureAnalyzer, LanguageModel  # noqa: F401
