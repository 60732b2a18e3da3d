"""Provide the public `taskdeck` package exports."""

from __future__ import annotations

__version__ = "0.1.0"

from .engine import TaskBoard  # noqa: E402

__all__ = ["TaskBoard", "__version__"]
