"""Credential hashing and login throttling for parent accounts."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, Optional

import bcrypt

# bcrypt only reads the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash ``password`` with bcrypt and a fresh salt."""

    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, stored_hash: str) -> bool:
    """Check ``password`` against a value produced by :func:`hash_password`."""

    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored_hash.encode("utf-8"))
    except ValueError:
        return False


class AuthManager:
    """Track failed logins per account and lock out repeated offenders."""

    def __init__(self, *, max_attempts: int = 5, lockout_minutes: int = 15) -> None:
        self._max_attempts = max_attempts
        self._lockout_window = timedelta(minutes=lockout_minutes)
        self._login_attempts: Dict[str, Deque[datetime]] = {}

    def record_login_attempt(self, user_id: str, *, success: bool, at: Optional[datetime] = None) -> bool:
        """Record a login attempt and return whether further attempts are allowed."""

        now = at or datetime.now()
        bucket = self._login_attempts.setdefault(user_id, deque())
        self._prune(bucket, now)
        if success:
            bucket.clear()
            return True
        bucket.append(now)
        return len(bucket) < self._max_attempts

    def is_locked(self, user_id: str, *, at: Optional[datetime] = None) -> bool:
        """Return ``True`` when ``user_id`` is currently locked out."""

        now = at or datetime.now()
        bucket = self._login_attempts.get(user_id)
        if not bucket:
            return False
        self._prune(bucket, now)
        return len(bucket) >= self._max_attempts

    def reset(self) -> None:
        self._login_attempts.clear()

    def _prune(self, bucket: Deque[datetime], now: datetime) -> None:
        while bucket and now - bucket[0] > self._lockout_window:
            bucket.popleft()


__all__ = ["AuthManager", "MAX_PASSWORD_BYTES", "hash_password", "verify_password"]
