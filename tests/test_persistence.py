import sqlite3

import pytest
from sqlalchemy.exc import IntegrityError

from kidpoints.exceptions import DuplicateKidError, StorageError
from kidpoints.webapp import persistence
from kidpoints.webapp.persistence import Goal, PointTransaction, unit_of_work


def _raw_execute(*statements: str) -> None:
    conn = sqlite3.connect(persistence.SQLITE_FILE_NAME)
    try:
        for statement in statements:
            conn.execute(statement)
        conn.commit()
    finally:
        conn.close()


def test_database_rejects_mismatched_sign(kid_id: int) -> None:
    with pytest.raises(StorageError):
        with unit_of_work() as session:
            session.add(PointTransaction(kid_id=kid_id, points=5, description="Odd", type="penalty"))


def test_database_rejects_achieved_goal_without_timestamp(kid_id: int) -> None:
    with pytest.raises(StorageError):
        with unit_of_work() as session:
            session.add(Goal(kid_id=kid_id, title="Broken", points_required=5, is_achieved=True))


def test_integrity_errors_can_map_to_domain_errors(kid_id: int) -> None:
    with pytest.raises(DuplicateKidError):
        with unit_of_work(on_conflict=DuplicateKidError()) as session:
            raise IntegrityError("INSERT INTO kids", {}, Exception("UNIQUE constraint failed"))


def test_migrations_upgrade_legacy_tables() -> None:
    persistence.drop_db_and_tables()
    _raw_execute(
        "CREATE TABLE users (id INTEGER PRIMARY KEY, username TEXT, total_points INTEGER)",
        "CREATE TABLE kids (id INTEGER PRIMARY KEY, parent_id INTEGER, name TEXT,"
        " total_points INTEGER DEFAULT 0, created_at TEXT)",
    )

    applied = persistence.run_migrations()

    assert applied == ["drop_legacy_users_schema", "kids_age"]
    assert persistence.run_migrations() == []
    persistence.drop_db_and_tables()
    persistence.create_db_and_tables()
