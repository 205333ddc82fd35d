"""Pytest fixtures for KidPoints tests."""

from __future__ import annotations

import os
import tempfile
from typing import Iterator

import pytest


def _set_default_env() -> None:
    db_dir = tempfile.mkdtemp(prefix="kidpoints-tests-")
    os.environ.setdefault("KIDPOINTS_SQLITE", os.path.join(db_dir, "kidpoints.db"))
    os.environ.setdefault("SESSION_SECRET", "test-session-secret")
    os.environ.setdefault("KIDPOINTS_EVENT_LOG", "")


_set_default_env()

from kidpoints.webapp import family, persistence  # noqa: E402


@pytest.fixture(autouse=True)
def clean_database() -> Iterator[None]:
    persistence.drop_db_and_tables()
    persistence.create_db_and_tables()
    persistence.event_log.clear()
    family.auth_manager.reset()
    yield


@pytest.fixture()
def parent_id() -> int:
    parent = family.register_parent("Pat", "pat@example.com", "secret123", "secret123")
    assert parent.id is not None
    return parent.id


@pytest.fixture()
def kid_id(parent_id: int) -> int:
    kid = family.create_kid(parent_id, "Sam", 8)
    assert kid.id is not None
    return kid.id
