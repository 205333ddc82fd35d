import json

import pytest

from kidpoints.ops import HealthMonitor, LedgerEvent, StructuredLogger


def test_health_monitor_reports_probe_failures() -> None:
    calls = {"fail": False}

    def probe() -> None:
        if calls["fail"]:
            raise RuntimeError("database is locked")

    monitor = HealthMonitor(probe=probe)
    monitor.add_migration("kids_age")
    monitor.add_migration("kids_age")

    assert monitor.status() == {"status": "ok", "database": "ok", "migrations": ["kids_age"]}

    calls["fail"] = True
    status = monitor.status()
    assert status["status"] == "degraded"
    assert status["database"] == "down"
    assert not monitor.database_online


def test_structured_logger_writes_json_lines(tmp_path) -> None:
    path = tmp_path / "logs" / "events.jsonl"
    logger = StructuredLogger(path=path, keep=2)

    logger.log(LedgerEvent.KID_CREATED, kid_id=1)
    logger.log("points_applied", kid_id=1, points=5)
    logger.log(LedgerEvent.GOAL_ACHIEVED, kid_id=1, goal_id=3)

    assert [entry["event"] for entry in logger.tail()] == ["points_applied", "goal_achieved"]
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert json.loads(lines[1])["points"] == 5
    assert json.loads(lines[0])["event"] == "kid_created"

    logger.clear()
    assert logger.tail() == ()


def test_structured_logger_filters_and_rejects_unknown_events() -> None:
    logger = StructuredLogger()
    logger.log(LedgerEvent.GOAL_CREATED, goal_id=1)
    logger.log(LedgerEvent.POINTS_APPLIED, points=2)
    logger.log(LedgerEvent.GOAL_CREATED, goal_id=2)

    created = logger.tail(event=LedgerEvent.GOAL_CREATED)
    assert [entry["goal_id"] for entry in created] == [1, 2]
    assert logger.tail(limit=1)[0]["goal_id"] == 2
    assert logger.tail(limit=0) == ()

    with pytest.raises(ValueError):
        logger.log("chore_finished")
