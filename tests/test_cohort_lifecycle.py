import logging
from datetime import datetime, timedelta, timezone

import pytest

from release_gate.cohort_lifecycle import CohortLifecycleManager, Countdown
from release_gate.errors import MalformedDate
from release_gate.models import Cohort

START = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
END = datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc)


class RecordingRepo:
    def __init__(self):
        self.updates = []

    def read(self, cohort_id):  # pragma: no cover - not used here
        raise AssertionError("read should not be called")

    def update(self, cohort_id, fields):
        self.updates.append((cohort_id, dict(fields)))


def _cohort(**overrides):
    values = dict(
        id="cohort-1",
        course_id="course-1",
        name="Spring 2024",
        start_date=START,
        end_date=END,
        status="upcoming",
    )
    values.update(overrides)
    return Cohort(**values)


def test_cohort_requires_start_before_end():
    with pytest.raises(MalformedDate):
        _cohort(start_date=END, end_date=START)


def test_status_transitions():
    manager = CohortLifecycleManager()
    cohort = _cohort()
    assert manager.status(cohort, START - timedelta(seconds=1)) == "upcoming"
    assert manager.status(cohort, START) == "active"
    assert manager.status(cohort, END - timedelta(seconds=1)) == "active"
    assert manager.status(cohort, END) == "completed"


def test_status_never_regresses():
    manager = CohortLifecycleManager()
    cohort = _cohort()
    order = {"upcoming": 0, "active": 1, "completed": 2}
    previous = -1
    moment = START - timedelta(days=10)
    while moment < END + timedelta(days=10):
        rank = order[manager.status(cohort, moment)]
        assert rank >= previous
        previous = rank
        moment += timedelta(hours=13)


def test_reconcile_writes_once():
    repo = RecordingRepo()
    manager = CohortLifecycleManager(repo)
    cohort = _cohort()
    now = START + timedelta(days=3)

    assert manager.reconcile(cohort, now) is True
    assert manager.reconcile(cohort, now) is False
    assert repo.updates == [("cohort-1", {"status": "active", "updatedAt": now})]
    assert cohort.status == "active"
    assert cohort.updated_at == now


def test_reconcile_skips_when_status_current():
    repo = RecordingRepo()
    manager = CohortLifecycleManager(repo)
    cohort = _cohort(status="active")
    assert manager.reconcile(cohort, START + timedelta(days=1)) is False
    assert repo.updates == []


def test_reconcile_leaves_cancelled_cohorts():
    repo = RecordingRepo()
    manager = CohortLifecycleManager(repo)
    cohort = _cohort(status="cancelled")
    assert manager.reconcile(cohort, END + timedelta(days=1)) is False
    assert repo.updates == []
    assert cohort.status == "cancelled"


def test_reconcile_propagates_store_errors():
    class BrokenRepo(RecordingRepo):
        def update(self, cohort_id, fields):
            raise ConnectionError("offline")

    manager = CohortLifecycleManager(BrokenRepo())
    cohort = _cohort()
    with pytest.raises(ConnectionError):
        manager.reconcile(cohort, START + timedelta(days=1))
    assert cohort.status == "upcoming"


def test_reconcile_many_counts_writes():
    repo = RecordingRepo()
    manager = CohortLifecycleManager(repo)
    cohorts = [
        _cohort(id="a"),
        _cohort(id="b", status="active"),
        _cohort(id="c", start_date=START + timedelta(days=30)),
    ]
    assert manager.reconcile_many(cohorts, START + timedelta(days=2)) == 1
    assert [cid for cid, _ in repo.updates] == ["a"]


def test_current_week():
    manager = CohortLifecycleManager()
    cohort = _cohort()
    assert manager.current_week(cohort, START - timedelta(days=30)) == 0
    assert manager.current_week(cohort, START) == 0
    assert manager.current_week(cohort, START + timedelta(days=7) - timedelta(seconds=1)) == 0
    assert manager.current_week(cohort, START + timedelta(days=7)) == 1
    assert manager.current_week(cohort, START + timedelta(days=20)) == 2


def test_next_release_time_uses_weekly_release_time():
    manager = CohortLifecycleManager()
    cohort = _cohort(weekly_release_time="09:30")
    assert manager.next_release_time(cohort, 0) == datetime(2024, 1, 8, 9, 30, tzinfo=timezone.utc)
    assert manager.next_release_time(cohort, 0, "America/New_York") == datetime(
        2024, 1, 8, 14, 30, tzinfo=timezone.utc
    )


def test_unusable_weekly_release_time_uses_default(caplog):
    manager = CohortLifecycleManager()
    cohort = _cohort(weekly_release_time="8am")
    now = datetime(2024, 1, 6, 5, 45, tzinfo=timezone.utc)
    with caplog.at_level(logging.WARNING):
        countdown = manager.countdown_to_next_release(cohort, 0, now)
    assert manager.next_release_time(cohort, 0) == datetime(2024, 1, 8, 8, 0, tzinfo=timezone.utc)
    assert countdown == Countdown(days=2, hours=2, minutes=15)
    assert any("cohort-1" in record.getMessage() for record in caplog.records)


def test_countdown_to_next_release():
    manager = CohortLifecycleManager()
    cohort = _cohort()
    now = datetime(2024, 1, 6, 5, 45, tzinfo=timezone.utc)
    countdown = manager.countdown_to_next_release(cohort, 0, now)
    # Next release: 2024-01-08 08:00 UTC.
    assert countdown == Countdown(days=2, hours=2, minutes=15)
    assert countdown.as_dict() == {"days": 2, "hours": 2, "minutes": 15}


def test_countdown_is_zero_once_passed():
    manager = CohortLifecycleManager()
    cohort = _cohort()
    now = datetime(2024, 1, 20, tzinfo=timezone.utc)
    assert manager.countdown_to_next_release(cohort, 0, now) == Countdown(0, 0, 0)


def test_available_cohorts_lists_upcoming_soonest_first():
    manager = CohortLifecycleManager()
    now = START - timedelta(days=1)
    later = _cohort(id="later", start_date=START + timedelta(days=14))
    sooner = _cohort(id="sooner")
    running = _cohort(id="running", start_date=START - timedelta(days=7))
    cancelled = _cohort(id="cancelled", status="cancelled")

    result = manager.available_cohorts([later, running, sooner, cancelled], now)
    assert [c.id for c in result] == ["sooner", "later"]


def test_has_started_and_ended():
    manager = CohortLifecycleManager()
    cohort = _cohort()
    assert manager.has_started(cohort, START) is True
    assert manager.has_ended(cohort, START) is False
    assert manager.has_ended(cohort, END) is True
