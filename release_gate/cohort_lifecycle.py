"""Cohort status, week index and countdown derived from the cohort dates.

Status is reconciled lazily: callers that need a fresh value invoke
:meth:`CohortLifecycleManager.reconcile`, which writes only when the derived
status differs from the stored one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from .dates import ensure_utc, parse_local_time
from .errors import MalformedDate
from .models import (
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_UPCOMING,
    Cohort,
)
from .release_time import ReleaseTimeCalculator

_LOG = logging.getLogger(__name__)

WEEK = timedelta(days=7)


class CohortRepo(Protocol):
    def read(self, cohort_id: str) -> Cohort: ...

    def update(self, cohort_id: str, fields: Dict[str, Any]) -> None: ...


@dataclass(frozen=True)
class Countdown:
    days: int = 0
    hours: int = 0
    minutes: int = 0

    @classmethod
    def from_delta(cls, delta: timedelta) -> "Countdown":
        total = int(delta.total_seconds())
        if total <= 0:
            return cls()
        days, rest = divmod(total, 86400)
        return cls(days=days, hours=rest // 3600, minutes=(rest % 3600) // 60)

    def as_dict(self) -> Dict[str, int]:
        return {"days": self.days, "hours": self.hours, "minutes": self.minutes}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CohortLifecycleManager:
    """Derive and persist a cohort's lifecycle state."""

    def __init__(
        self,
        repo: Optional[CohortRepo] = None,
        *,
        calculator: Optional[ReleaseTimeCalculator] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.repo = repo
        self.calculator = calculator or ReleaseTimeCalculator()
        self.clock = clock

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now if now is not None else self.clock())

    # ------------------------------------------------------------------
    # Pure derivations
    # ------------------------------------------------------------------
    def has_started(self, cohort: Cohort, now: Optional[datetime] = None) -> bool:
        return self._now(now) >= cohort.start_date

    def has_ended(self, cohort: Cohort, now: Optional[datetime] = None) -> bool:
        return self._now(now) >= cohort.end_date

    def status(self, cohort: Cohort, now: Optional[datetime] = None) -> str:
        """Return ``upcoming``, ``active`` or ``completed`` for ``now``."""

        current = self._now(now)
        if current >= cohort.end_date:
            return STATUS_COMPLETED
        if current >= cohort.start_date:
            return STATUS_ACTIVE
        return STATUS_UPCOMING

    def current_week(self, cohort: Cohort, now: Optional[datetime] = None) -> int:
        """Return whole weeks elapsed since the cohort start, never negative."""

        elapsed = self._now(now) - cohort.start_date
        return max(0, elapsed // WEEK)

    def next_release_time(
        self, cohort: Cohort, current_week: int, student_timezone: Any = "UTC"
    ) -> datetime:
        """Return the unlock instant of week ``current_week + 1``.

        The weekly release time is applied in ``student_timezone`` with the
        same calendar and DST rules as per-lesson releases.  An unusable stored
        release time falls back to the configured default.
        """

        anchor = cohort.start_date + (current_week + 1) * WEEK
        try:
            hour, minute = parse_local_time(cohort.weekly_release_time)
        except MalformedDate as exc:
            _LOG.warning(
                "Cohort %s has an unusable weekly release time; using %s: %s",
                cohort.id,
                self.calculator.settings.release_time,
                exc,
            )
            hour, minute = self.calculator.settings.release_hour_minute
        return self.calculator.compute(anchor, student_timezone, hour, minute)

    def countdown_to_next_release(
        self,
        cohort: Cohort,
        current_week: int,
        now: Optional[datetime] = None,
        student_timezone: Any = "UTC",
    ) -> Countdown:
        """Return the time left until the next weekly release (zeros if passed)."""

        target = self.next_release_time(cohort, current_week, student_timezone)
        return Countdown.from_delta(target - self._now(now))

    def available_cohorts(
        self, cohorts: Iterable[Cohort], now: Optional[datetime] = None
    ) -> List[Cohort]:
        """Return cohorts that have not started yet, soonest first."""

        current = self._now(now)
        upcoming = [
            c
            for c in cohorts
            if c.status != STATUS_CANCELLED and self.status(c, current) == STATUS_UPCOMING
        ]
        upcoming.sort(key=lambda c: c.start_date)
        return upcoming

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def reconcile(self, cohort: Cohort, now: Optional[datetime] = None) -> bool:
        """Persist the derived status when it differs from the stored one.

        Returns ``True`` when a write was issued.  Cancelled cohorts are left
        alone.  Store failures propagate to the caller.
        """

        if cohort.status == STATUS_CANCELLED:
            return False
        current = self._now(now)
        new_status = self.status(cohort, current)
        if new_status == cohort.status:
            return False
        if self.repo is None:
            raise RuntimeError("CohortLifecycleManager.reconcile requires a cohort repo")

        self.repo.update(cohort.id, {"status": new_status, "updatedAt": current})
        _LOG.info("Cohort %s status updated: %s -> %s", cohort.name, cohort.status, new_status)
        cohort.status = new_status
        cohort.updated_at = current
        return True

    def reconcile_many(self, cohorts: Iterable[Cohort], now: Optional[datetime] = None) -> int:
        """Reconcile every cohort in ``cohorts``; return the number of writes."""

        current = self._now(now)
        return sum(1 for cohort in cohorts if self.reconcile(cohort, current))


__all__ = ["CohortLifecycleManager", "CohortRepo", "Countdown", "WEEK"]
