"""Id-based entry points used by the content-serving layer."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional, Protocol, Tuple

from ..availability import (
    AVAILABLE_NOW,
    RELEASE_TIME_UNAVAILABLE,
    ReleaseAvailabilityEvaluator,
)
from ..cohort_lifecycle import CohortLifecycleManager, CohortRepo, Countdown
from ..config import DEFAULT_TIMEZONE, GateSettings, load_settings
from ..gate import LessonReleaseGate, LessonReleaseRepo, ReleaseGate
from ..models import Enrollment, LessonRelease
from ..release_time import ReleaseTimeCalculator
from ..timezones import TimezoneResolver

_LOG = logging.getLogger(__name__)


class EnrollmentRepo(Protocol):
    def read(self, student_id: str, cohort_id: str) -> Optional[Enrollment]: ...


class ReleaseScheduleService:
    """Wire the repos, resolver and clock into the public operations.

    Store failures (:class:`~release_gate.errors.StoreUnavailable`) are
    propagated unchanged; everything else follows the evaluator's fail policy.
    """

    def __init__(
        self,
        cohorts: CohortRepo,
        releases: LessonReleaseRepo,
        enrollments: Optional[EnrollmentRepo] = None,
        *,
        settings: Optional[GateSettings] = None,
        resolver: Optional[TimezoneResolver] = None,
        clock=None,
        gate: Optional[ReleaseGate] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.resolver = resolver or TimezoneResolver(locale=self.settings.locale)
        calculator = ReleaseTimeCalculator(self.resolver, settings=self.settings)
        clock_kwargs = {"clock": clock} if clock is not None else {}
        self.evaluator = ReleaseAvailabilityEvaluator(
            calculator, settings=self.settings, **clock_kwargs
        )
        self.lifecycle = CohortLifecycleManager(cohorts, calculator=calculator, **clock_kwargs)
        self.cohorts = cohorts
        self.releases = releases
        self.enrollments = enrollments
        self.gate = gate or LessonReleaseGate(releases, self.evaluator)

    # ------------------------------------------------------------------
    # Lesson availability
    # ------------------------------------------------------------------
    def is_available(
        self, lesson_id: str, cohort_id: str, student_timezone: Any = DEFAULT_TIMEZONE,
        now: Optional[datetime] = None,
    ) -> bool:
        return self.gate.is_open(lesson_id, cohort_id, student_timezone, now)

    def time_until_release(
        self, lesson_id: str, cohort_id: str, student_timezone: Any = DEFAULT_TIMEZONE,
        now: Optional[datetime] = None,
    ) -> str:
        """Return ``"Available now"`` exactly when :meth:`is_available` holds."""

        now = self.evaluator._now(now)
        if self.gate.is_open(lesson_id, cohort_id, student_timezone, now):
            return AVAILABLE_NOW
        release = self.releases.find(lesson_id, cohort_id)
        return self._locked_text(
            release, self.evaluator.time_until_release(release, student_timezone, now)
        )

    def formatted_release_time(
        self, lesson_id: str, cohort_id: str, student_timezone: Any = DEFAULT_TIMEZONE,
        now: Optional[datetime] = None,
    ) -> str:
        now = self.evaluator._now(now)
        if self.gate.is_open(lesson_id, cohort_id, student_timezone, now):
            return AVAILABLE_NOW
        release = self.releases.find(lesson_id, cohort_id)
        return self._locked_text(
            release, self.evaluator.formatted_release_time(release, student_timezone, now)
        )

    def _locked_text(self, release: Optional[LessonRelease], text: str) -> str:
        # The gate said locked; a record-less or fallback decision has no instant.
        if text == AVAILABLE_NOW:
            _LOG.debug("No release instant for locked lesson %s", release.key if release else None)
            return RELEASE_TIME_UNAVAILABLE
        return text

    def partition_lessons(
        self,
        lesson_ids: Iterable[str],
        cohort_id: str,
        student_timezone: Any = DEFAULT_TIMEZONE,
        now: Optional[datetime] = None,
    ) -> Tuple[List[str], List[str]]:
        """Split ``lesson_ids`` into ``(available, upcoming)``, keeping order."""

        current = self.evaluator._now(now)
        available: List[str] = []
        upcoming: List[str] = []
        for lesson_id in lesson_ids:
            if self.gate.is_open(lesson_id, cohort_id, student_timezone, current):
                available.append(lesson_id)
            else:
                upcoming.append(lesson_id)
        return available, upcoming

    def student_timezone(self, student_id: str, cohort_id: str) -> str:
        """Return the student's validated timezone (``UTC`` when unknown)."""

        if self.enrollments is None:
            return DEFAULT_TIMEZONE
        enrollment = self.enrollments.read(student_id, cohort_id)
        if enrollment is None:
            return DEFAULT_TIMEZONE
        return self.resolver.normalize(enrollment.timezone)

    def is_available_for_student(
        self, lesson_id: str, cohort_id: str, student_id: str, now: Optional[datetime] = None
    ) -> bool:
        tz = self.student_timezone(student_id, cohort_id)
        return self.is_available(lesson_id, cohort_id, tz, now)

    # ------------------------------------------------------------------
    # Cohort lifecycle
    # ------------------------------------------------------------------
    def cohort_status(self, cohort_id: str, now: Optional[datetime] = None) -> str:
        """Return the cohort's status after reconciling the stored value."""

        cohort = self.cohorts.read(cohort_id)
        self.lifecycle.reconcile(cohort, now)
        return cohort.status

    def current_week(self, cohort_id: str, now: Optional[datetime] = None) -> int:
        return self.lifecycle.current_week(self.cohorts.read(cohort_id), now)

    def countdown(
        self, cohort_id: str, student_timezone: Any = DEFAULT_TIMEZONE,
        now: Optional[datetime] = None,
    ) -> Countdown:
        cohort = self.cohorts.read(cohort_id)
        week = self.lifecycle.current_week(cohort, now)
        return self.lifecycle.countdown_to_next_release(cohort, week, now, student_timezone)


__all__ = ["EnrollmentRepo", "ReleaseScheduleService"]
