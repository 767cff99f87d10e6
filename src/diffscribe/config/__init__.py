"""
Configuration loading for diffscribe.

Provides a simple loader for the user configuration file. See
:mod:`diffscribe.config.loader` for implementation details.
"""

from .loader import DEFAULT_CONFIG, ConfigError, load_config  # noqa: F401
