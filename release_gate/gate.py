"""A single gating interface over the two release mechanisms.

Lesson release records are the source of truth.  The cohort-week cadence
(lesson week number against the cohort's current week) survives only as
:class:`CohortWeekGate`, which a :class:`LessonReleaseGate` consults when a
lesson has no release record.
"""

from __future__ import annotations

import abc
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from .availability import ReleaseAvailabilityEvaluator
from .cohort_lifecycle import CohortLifecycleManager, CohortRepo
from .models import LessonRelease

_LOG = logging.getLogger(__name__)


class LessonReleaseRepo(Protocol):
    def find(self, lesson_id: str, cohort_id: str) -> Optional[LessonRelease]: ...


class ReleaseGate(abc.ABC):
    """Answer whether a lesson is open for a cohort and student timezone."""

    @abc.abstractmethod
    def is_open(
        self,
        lesson_id: str,
        cohort_id: str,
        student_timezone: Any = "UTC",
        now: Optional[datetime] = None,
    ) -> bool:
        raise NotImplementedError


class CohortWeekGate(ReleaseGate):
    """Legacy gate: a lesson opens once the cohort reaches its week number.

    ``week_lookup`` maps a lesson id to its week number; lessons without one
    are open.
    """

    def __init__(
        self,
        cohorts: CohortRepo,
        week_lookup: Callable[[str], Optional[int]],
        *,
        lifecycle: Optional[CohortLifecycleManager] = None,
    ) -> None:
        self.cohorts = cohorts
        self.week_lookup = week_lookup
        self.lifecycle = lifecycle or CohortLifecycleManager(cohorts)

    def is_open(self, lesson_id, cohort_id, student_timezone="UTC", now=None) -> bool:
        week_number = self.week_lookup(lesson_id)
        if week_number is None:
            return True
        cohort = self.cohorts.read(cohort_id)
        return week_number <= self.lifecycle.current_week(cohort, now)


class LessonReleaseGate(ReleaseGate):
    """Authoritative gate backed by per-lesson release records."""

    def __init__(
        self,
        releases: LessonReleaseRepo,
        evaluator: Optional[ReleaseAvailabilityEvaluator] = None,
        *,
        fallback: Optional[ReleaseGate] = None,
    ) -> None:
        self.releases = releases
        self.evaluator = evaluator or ReleaseAvailabilityEvaluator()
        self.fallback = fallback

    def is_open(self, lesson_id, cohort_id, student_timezone="UTC", now=None) -> bool:
        release = self.releases.find(lesson_id, cohort_id)
        if release is None and self.fallback is not None:
            _LOG.debug("No release record for %s/%s; using fallback gate", lesson_id, cohort_id)
            return self.fallback.is_open(lesson_id, cohort_id, student_timezone, now)
        return self.evaluator.is_available(release, student_timezone, now)


__all__ = ["CohortWeekGate", "LessonReleaseGate", "LessonReleaseRepo", "ReleaseGate"]
