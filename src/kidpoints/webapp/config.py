"""Configuration constants for the KidPoints web service."""
from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


SESSION_SECRET = os.environ.get("SESSION_SECRET", "change-this-session-secret")
SESSION_COOKIE_NAME = os.environ.get("SESSION_COOKIE_NAME", "kidpoints_session")
SESSION_LIFETIME = timedelta(days=_env_int("SESSION_MAX_AGE_DAYS", 7))
SESSION_MAX_AGE = int(SESSION_LIFETIME.total_seconds())
SESSION_HTTPS_ONLY = _env_bool("SESSION_HTTPS_ONLY")
SQLITE_FILE_NAME = os.environ.get("KIDPOINTS_SQLITE", "kidpoints.db")
SQLITE_TIMEOUT_SECONDS = _env_int("KIDPOINTS_SQLITE_TIMEOUT", 15)
_event_log = os.environ.get("KIDPOINTS_EVENT_LOG", "").strip()
EVENT_LOG_PATH: Optional[Path] = Path(_event_log) if _event_log else None
LOG_LEVEL = os.environ.get("KIDPOINTS_LOG_LEVEL", "INFO")

LOGIN_MAX_ATTEMPTS = _env_int("LOGIN_MAX_ATTEMPTS", 5)
LOGIN_LOCKOUT_MINUTES = _env_int("LOGIN_LOCKOUT_MINUTES", 15)

DEFAULT_HISTORY_LIMIT = _env_int("DEFAULT_HISTORY_LIMIT", 50)
MAX_HISTORY_LIMIT = _env_int("MAX_HISTORY_LIMIT", 500)
MAX_POINTS = _env_int("MAX_POINTS", 1_000_000)
# Largest value an SQLite INTEGER column can hold.
MAX_ROW_ID = 2**63 - 1

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 6
KID_AGE_RANGE: Tuple[int, int] = (0, 150)

SESSION_PARENT_ID_KEY = "parent_id"
SESSION_PARENT_NAME_KEY = "parent_name"
SESSION_KID_ID_KEY = "current_kid_id"

__all__ = [
    "SESSION_SECRET",
    "SESSION_COOKIE_NAME",
    "SESSION_LIFETIME",
    "SESSION_MAX_AGE",
    "SESSION_HTTPS_ONLY",
    "SQLITE_FILE_NAME",
    "SQLITE_TIMEOUT_SECONDS",
    "EVENT_LOG_PATH",
    "LOG_LEVEL",
    "LOGIN_MAX_ATTEMPTS",
    "LOGIN_LOCKOUT_MINUTES",
    "DEFAULT_HISTORY_LIMIT",
    "MAX_HISTORY_LIMIT",
    "MAX_POINTS",
    "MAX_ROW_ID",
    "MIN_NAME_LENGTH",
    "MIN_PASSWORD_LENGTH",
    "KID_AGE_RANGE",
    "SESSION_PARENT_ID_KEY",
    "SESSION_PARENT_NAME_KEY",
    "SESSION_KID_ID_KEY",
]
