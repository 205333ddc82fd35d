"""KidPoints web service package.

Storage names are available immediately; the FastAPI application is imported
on first access so scripts that only touch the database never build it.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any, List

from . import persistence

_APP_EXPORTS = ("app", "health_monitor", "current_parent", "current_kid", "session_payload")

__all__: List[str] = ["persistence", *persistence.__all__, *_APP_EXPORTS]


def __getattr__(name: str) -> Any:
    if name in _APP_EXPORTS:
        return getattr(import_module(".application", __name__), name)
    if name in persistence.__all__:
        return getattr(persistence, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
