"""Operational utilities for KidPoints."""

from __future__ import annotations

import json
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Optional, Tuple, Union


class HealthMonitor:
    """Aggregate runtime health information for the status probe."""

    def __init__(self, probe: Optional[Callable[[], None]] = None) -> None:
        self.database_online = True
        self.migrations: list[str] = []
        self._probe = probe

    def add_migration(self, name: str) -> None:
        if name not in self.migrations:
            self.migrations.append(name)

    def check_database(self) -> bool:
        if self._probe is None:
            return self.database_online
        try:
            self._probe()
        except Exception:
            self.database_online = False
        else:
            self.database_online = True
        return self.database_online

    def status(self) -> dict:
        online = self.check_database()
        return {
            "status": "ok" if online else "degraded",
            "database": "ok" if online else "down",
            "migrations": list(self.migrations),
        }


class LedgerEvent(str, Enum):
    """Domain events recorded after a committed mutation."""

    PARENT_REGISTERED = "parent_registered"
    KID_CREATED = "kid_created"
    KID_UPDATED = "kid_updated"
    KID_DELETED = "kid_deleted"
    POINTS_APPLIED = "points_applied"
    GOAL_CREATED = "goal_created"
    GOAL_ACHIEVED = "goal_achieved"


class StructuredLogger:
    """Keep recent ledger events in memory and optionally append them to a JSON-lines file."""

    def __init__(self, *, path: Optional[Path] = None, keep: int = 500) -> None:
        self.path = path
        self._recent: Deque[Dict[str, Any]] = deque(maxlen=keep)

    def log(self, event: Union[LedgerEvent, str], **fields: Any) -> Dict[str, Any]:
        kind = LedgerEvent(event)
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": kind.value,
            **fields,
        }
        self._recent.append(entry)
        if self.path is not None:
            self._append_line(entry)
        return entry

    def _append_line(self, entry: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry, default=str, sort_keys=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def tail(self, limit: int = 50, *, event: Optional[LedgerEvent] = None) -> Tuple[Dict[str, Any], ...]:
        """Return up to ``limit`` recent entries, oldest first, optionally of one kind."""

        entries = [entry for entry in self._recent if event is None or entry["event"] == LedgerEvent(event).value]
        return tuple(entries[-limit:]) if limit > 0 else ()

    def clear(self) -> None:
        self._recent.clear()


__all__ = ["HealthMonitor", "LedgerEvent", "StructuredLogger"]
