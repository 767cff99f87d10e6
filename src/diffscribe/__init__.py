"""
Top-level package for diffscribe.

This package exposes the interactive shell entry point via the
``diffscribe.cli`` module.
"""

__all__ = ["__version__"]

__version__ = "0.3.0"
