"""
Configuration loader for diffscribe.

The tool reads an optional JSON configuration file named ``config.json``
located in the ``~/.diffscribe/`` directory in the user's home directory.
When the file does not exist the built-in defaults are used, so a local
Ollama server on the default port works without any setup.

If the configuration file is present but malformed, or contains keys of
the wrong type, a :class:`ConfigError` is raised.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


DEFAULT_CONFIG: Dict[str, Any] = {
    "base_url": "http://localhost",
    "port": 11434,
    "model": "llama3.2:3b",
    "temperature": 0.2,
    "max_tokens": 2048,
    "request_timeout": None,
    "retry_attempts": 3,
    "retry_delay": 1.0,
    "language": "English",
    "streaming": True,
}

# Expected type(s) for each known key. ``bool`` is checked separately
# because it is a subclass of ``int``.
_KEY_TYPES: Dict[str, tuple] = {
    "base_url": (str,),
    "port": (int,),
    "model": (str,),
    "temperature": (int, float),
    "max_tokens": (int,),
    "request_timeout": (int, float, type(None)),
    "retry_attempts": (int,),
    "retry_delay": (int, float),
    "language": (str,),
    "streaming": (bool,),
}


class ConfigError(Exception):
    """Raised when the configuration file is malformed or invalid."""

    pass


def _get_config_directory() -> Path:
    """Return the directory holding the diffscribe configuration."""
    return Path.home() / ".diffscribe"


def _validate(data: Dict[str, Any]) -> None:
    for key, value in data.items():
        expected = _KEY_TYPES.get(key)
        if expected is None:
            logger.warning("Ignoring unknown configuration key: %s", key)
            continue
        if isinstance(value, bool) and bool not in expected:
            raise ConfigError(f"'{key}' has invalid type bool")
        if not isinstance(value, expected):
            names = " or ".join(t.__name__ for t in expected)
            raise ConfigError(f"'{key}' must be of type {names}")
    if data.get("retry_attempts", 1) < 1:
        raise ConfigError("'retry_attempts' must be at least 1")
    if data.get("max_tokens", 1) < 1:
        raise ConfigError("'max_tokens' must be positive")


def load_config() -> Dict[str, Any]:
    """Load the user configuration merged over :data:`DEFAULT_CONFIG`.

    Returns:
        A new dictionary with every key of :data:`DEFAULT_CONFIG`.

    Raises:
        ConfigError: If the configuration file exists but cannot be read,
            is not a JSON object, or has values of the wrong type.
    """
    config_path = _get_config_directory() / "config.json"
    config = dict(DEFAULT_CONFIG)

    if not config_path.exists():
        logger.debug("No configuration file at %s, using defaults", config_path)
        return config

    try:
        content = config_path.read_text(encoding="utf-8")
        data = json.loads(content)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse configuration file: %s", exc)
        raise ConfigError(f"Invalid JSON in {config_path.name}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path.name} must contain a JSON object")

    _validate(data)
    config.update({key: value for key, value in data.items() if key in DEFAULT_CONFIG})
    logger.debug("Loaded configuration from: %s", config_path)
    return config
