import logging
from datetime import datetime, timedelta, timezone

import pytest
from freezegun import freeze_time

from release_gate.availability import (
    AVAILABLE_NOW,
    RELEASE_TIME_UNAVAILABLE,
    ReleaseAvailabilityEvaluator,
    ordinal,
)
from release_gate.config import GateSettings
from release_gate.errors import StoreUnavailable
from release_gate.models import LessonRelease

CANONICAL = datetime(2024, 1, 8, 0, 0, tzinfo=timezone.utc)
UNLOCK_NY = datetime(2024, 1, 8, 13, 0, tzinfo=timezone.utc)


def _release(date=CANONICAL, released=False):
    return LessonRelease(
        lesson_id="lesson-week-2",
        cohort_id="cohort-1",
        canonical_release_date=date,
        is_released=released,
    )


@pytest.fixture
def evaluator():
    return ReleaseAvailabilityEvaluator()


def test_unlocks_at_student_local_eight(evaluator):
    release = _release()
    before = UNLOCK_NY - timedelta(seconds=1)
    after = UNLOCK_NY + timedelta(seconds=1)

    assert evaluator.release_instant(release, "America/New_York") == UNLOCK_NY
    assert evaluator.is_available(release, "America/New_York", now=before) is False
    assert evaluator.is_available(release, "America/New_York", now=after) is True
    assert evaluator.is_available(release, "America/New_York", now=UNLOCK_NY) is True


def test_manual_override_wins_even_far_in_future(evaluator):
    release = _release(date=datetime(2099, 1, 1, tzinfo=timezone.utc), released=True)
    assert evaluator.is_available(release, "America/New_York", now=CANONICAL) is True
    assert evaluator.time_until_release(release, "UTC", now=CANONICAL) == AVAILABLE_NOW
    assert evaluator.formatted_release_time(release, "UTC", now=CANONICAL) == AVAILABLE_NOW
    assert evaluator.release_instant(release, "UTC") is None


def test_missing_release_record_is_open(evaluator):
    assert evaluator.is_available(None, "Europe/Berlin", now=CANONICAL) is True
    assert evaluator.time_until_release(None, "Europe/Berlin", now=CANONICAL) == AVAILABLE_NOW


def test_invalid_timezone_uses_utc(evaluator):
    release = _release()
    assert evaluator.is_available(release, "Mars/Colony", now=CANONICAL) is False
    assert evaluator.is_available(
        release, "Mars/Colony", now=CANONICAL + timedelta(hours=8)
    ) is True


def test_availability_is_monotonic(evaluator):
    release = _release()
    seen_open = False
    moment = CANONICAL - timedelta(days=2)
    while moment < CANONICAL + timedelta(days=2):
        available = evaluator.is_available(release, "America/Los_Angeles", now=moment)
        if seen_open:
            assert available is True, moment
        seen_open = seen_open or available
        moment += timedelta(minutes=17)
    assert seen_open


def test_time_until_release_humanized(evaluator):
    release = _release()
    now = UNLOCK_NY - timedelta(hours=5)
    assert evaluator.time_until_release(release, "America/New_York", now=now) == "in 5 hours"
    assert evaluator.time_until_release(release, "America/New_York", now=UNLOCK_NY) == AVAILABLE_NOW


def test_formatted_release_time_in_student_zone(evaluator):
    release = _release()
    now = UNLOCK_NY - timedelta(days=1)
    assert (
        evaluator.formatted_release_time(release, "America/New_York", now=now)
        == "Monday, January 8th at 8:00 AM"
    )


def test_malformed_date_fails_open(evaluator, caplog):
    release = _release(date=None)
    with caplog.at_level(logging.WARNING):
        assert evaluator.is_available(release, "UTC", now=CANONICAL) is True
    assert evaluator.time_until_release(release, "UTC", now=CANONICAL) == AVAILABLE_NOW
    assert evaluator.formatted_release_time(release, "UTC", now=CANONICAL) == AVAILABLE_NOW
    assert any(record.levelno == logging.WARNING for record in caplog.records)


def test_fail_closed_policy_hides_broken_releases():
    evaluator = ReleaseAvailabilityEvaluator(settings=GateSettings(fail_policy="closed"))
    release = _release(date=None)
    assert evaluator.is_available(release, "UTC", now=CANONICAL) is False
    assert evaluator.time_until_release(release, "UTC", now=CANONICAL) == RELEASE_TIME_UNAVAILABLE
    assert evaluator.formatted_release_time(release, "UTC", now=CANONICAL) == RELEASE_TIME_UNAVAILABLE
    # Overrides and missing records are unaffected by the policy.
    assert evaluator.is_available(_release(date=None, released=True), "UTC", now=CANONICAL) is True
    assert evaluator.is_available(None, "UTC", now=CANONICAL) is True


def test_store_errors_are_not_swallowed():
    def broken_clock():
        raise StoreUnavailable("down")

    evaluator = ReleaseAvailabilityEvaluator(clock=broken_clock)
    with pytest.raises(StoreUnavailable):
        evaluator.is_available(_release(), "UTC")


def test_injected_clock_is_used():
    evaluator = ReleaseAvailabilityEvaluator(clock=lambda: UNLOCK_NY + timedelta(seconds=1))
    assert evaluator.is_available(_release(), "America/New_York") is True


def test_default_clock_reads_wall_time():
    evaluator = ReleaseAvailabilityEvaluator()
    with freeze_time("2024-01-08 12:59:59"):
        assert evaluator.is_available(_release(), "America/New_York") is False
    with freeze_time("2024-01-08 13:00:01"):
        assert evaluator.is_available(_release(), "America/New_York") is True


@pytest.mark.parametrize(
    "day, expected",
    [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"),
     (13, "13th"), (21, "21st"), (22, "22nd"), (23, "23rd"), (31, "31st")],
)
def test_ordinal(day, expected):
    assert ordinal(day) == expected
