"""Persistence and SQLModel definitions for the KidPoints web service."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import CheckConstraint, DateTime, TypeDecorator, UniqueConstraint, event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine

from ..exceptions import KidPointsError, StorageError
from ..ops import StructuredLogger
from .config import EVENT_LOG_PATH, SQLITE_FILE_NAME, SQLITE_TIMEOUT_SECONDS

event_log = StructuredLogger(path=EVENT_LOG_PATH)


def now_utc() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


class UtcTimestamp(TypeDecorator):
    """Store datetimes as naive UTC text and load them back tagged with UTC.

    Naive values are taken to be UTC already.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------
engine = create_engine(
    f"sqlite:///{SQLITE_FILE_NAME}",
    echo=False,
    connect_args={"check_same_thread": False, "timeout": SQLITE_TIMEOUT_SECONDS},
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Parent(SQLModel, table=True):
    __tablename__ = "parents"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    password_hash: str
    created_at: datetime = Field(default_factory=now_utc, sa_type=UtcTimestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email, "created_at": _iso(self.created_at)}


class Kid(SQLModel, table=True):
    __tablename__ = "kids"
    __table_args__ = (UniqueConstraint("parent_id", "name", name="uq_kids_parent_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    parent_id: int = Field(foreign_key="parents.id", index=True)
    name: str
    age: Optional[int] = None
    total_points: int = 0
    created_at: datetime = Field(default_factory=now_utc, sa_type=UtcTimestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "name": self.name,
            "age": self.age,
            "total_points": self.total_points,
            "created_at": _iso(self.created_at),
        }


class PointTransaction(SQLModel, table=True):
    __tablename__ = "point_transactions"
    __table_args__ = (
        CheckConstraint("type IN ('reward', 'penalty')", name="ck_point_transactions_type"),
        CheckConstraint(
            "(type = 'reward' AND points > 0) OR (type = 'penalty' AND points < 0)",
            name="ck_point_transactions_sign",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    kid_id: int = Field(foreign_key="kids.id", index=True)
    points: int
    description: str
    type: str  # reward|penalty
    created_at: datetime = Field(default_factory=now_utc, index=True, sa_type=UtcTimestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kid_id": self.kid_id,
            "points": self.points,
            "description": self.description,
            "type": self.type,
            "created_at": _iso(self.created_at),
        }


class Goal(SQLModel, table=True):
    __tablename__ = "goals"
    __table_args__ = (
        CheckConstraint("points_required > 0", name="ck_goals_points_required"),
        CheckConstraint(
            "(is_achieved = 0 AND achieved_at IS NULL) OR (is_achieved = 1 AND achieved_at IS NOT NULL)",
            name="ck_goals_achieved_at",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    kid_id: int = Field(foreign_key="kids.id", index=True)
    title: str
    description: str = ""
    points_required: int
    is_achieved: bool = False
    created_at: datetime = Field(default_factory=now_utc, sa_type=UtcTimestamp)
    achieved_at: Optional[datetime] = Field(default=None, sa_type=UtcTimestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kid_id": self.kid_id,
            "title": self.title,
            "description": self.description,
            "points_required": self.points_required,
            "is_achieved": self.is_achieved,
            "created_at": _iso(self.created_at),
            "achieved_at": _iso(self.achieved_at),
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def new_session() -> Session:
    """Open a session whose loaded rows stay readable after commit."""

    return Session(engine, expire_on_commit=False)


@contextmanager
def unit_of_work(*, on_conflict: Optional[KidPointsError] = None) -> Iterator[Session]:
    """Run the enclosed statements in one transaction.

    Everything commits when the block exits normally. Any exception rolls the
    transaction back; domain errors propagate unchanged while SQLAlchemy errors
    become :class:`StorageError` (or ``on_conflict`` for integrity violations).
    """

    session = new_session()
    try:
        with session.begin():
            yield session
    except IntegrityError as exc:
        if on_conflict is not None:
            raise on_conflict from exc
        raise StorageError() from exc
    except SQLAlchemyError as exc:
        raise StorageError() from exc
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Database initialisation & migrations
# ---------------------------------------------------------------------------
def create_db_and_tables() -> None:
    SQLModel.metadata.create_all(engine)


def drop_db_and_tables() -> None:
    SQLModel.metadata.drop_all(engine)


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    cur = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name = ?;", (table,))
    return cur.fetchone() is not None


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    cur = conn.execute(f"PRAGMA table_info({table});")
    return any(row[1] == column for row in cur.fetchall())


def run_migrations() -> List[str]:
    """Bring an existing database file up to the current schema.

    Returns the names of the steps that changed something.
    """

    applied: List[str] = []
    raw = sqlite3.connect(SQLITE_FILE_NAME, timeout=SQLITE_TIMEOUT_SECONDS)
    try:
        if _table_exists(raw, "users"):
            # Single-user schema predates parents/kids; its rows cannot be mapped.
            raw.execute("DROP TABLE IF EXISTS point_transactions;")
            raw.execute("DROP TABLE IF EXISTS goals;")
            raw.execute("DROP TABLE IF EXISTS users;")
            applied.append("drop_legacy_users_schema")
        if _table_exists(raw, "kids") and not _column_exists(raw, "kids", "age"):
            raw.execute("ALTER TABLE kids ADD COLUMN age INTEGER;")
            applied.append("kids_age")
        if _table_exists(raw, "goals") and not _column_exists(raw, "goals", "achieved_at"):
            raw.execute("ALTER TABLE goals ADD COLUMN achieved_at TEXT;")
            applied.append("goals_achieved_at")
        raw.commit()
    finally:
        raw.close()
    return applied


def initialise_database() -> List[str]:
    applied = run_migrations()
    create_db_and_tables()
    return applied


MIGRATIONS_APPLIED = initialise_database()


__all__ = [
    "engine",
    "Parent",
    "Kid",
    "PointTransaction",
    "Goal",
    "now_utc",
    "UtcTimestamp",
    "event_log",
    "new_session",
    "unit_of_work",
    "create_db_and_tables",
    "drop_db_and_tables",
    "run_migrations",
    "initialise_database",
    "MIGRATIONS_APPLIED",
]
