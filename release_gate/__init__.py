"""Timezone-aware weekly lesson release gating for cohort courses."""

from .availability import AVAILABLE_NOW, ReleaseAvailabilityEvaluator
from .cohort_lifecycle import CohortLifecycleManager, Countdown
from .config import GateSettings, load_settings
from .errors import (
    CohortNotFound,
    InvalidTimezone,
    MalformedDate,
    ReleaseGateError,
    StoreUnavailable,
)
from .gate import CohortWeekGate, LessonReleaseGate, ReleaseGate
from .models import Cohort, Enrollment, LessonRelease
from .release_time import ReleaseTimeCalculator, classify_wall_time, localize_wall_time
from .timezones import TimezoneResolver

__all__ = [
    "AVAILABLE_NOW",
    "Cohort",
    "CohortLifecycleManager",
    "CohortNotFound",
    "CohortWeekGate",
    "Countdown",
    "Enrollment",
    "GateSettings",
    "InvalidTimezone",
    "LessonRelease",
    "LessonReleaseGate",
    "MalformedDate",
    "ReleaseAvailabilityEvaluator",
    "ReleaseGate",
    "ReleaseGateError",
    "ReleaseTimeCalculator",
    "StoreUnavailable",
    "TimezoneResolver",
    "classify_wall_time",
    "load_settings",
    "localize_wall_time",
]
