"""Decide whether a lesson release is visible to a student right now."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Tuple

from babel.core import UnknownLocaleError
from babel.dates import format_datetime, format_time, format_timedelta

from .config import GateSettings
from .dates import ensure_utc
from .errors import MalformedDate, ReleaseGateError, StoreUnavailable
from .models import LessonRelease
from .release_time import ReleaseTimeCalculator

_LOG = logging.getLogger(__name__)

AVAILABLE_NOW = "Available now"
RELEASE_TIME_UNAVAILABLE = "Release time unavailable"

# Everything a broken timezone, date or locale can raise while computing.
_COMPUTE_ERRORS = (
    ReleaseGateError,
    ValueError,
    TypeError,
    OverflowError,
    AttributeError,
    UnknownLocaleError,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ordinal(day: int) -> str:
    """Return ``day`` with its English ordinal suffix (1st, 2nd, 11th, 23rd)."""

    if 10 <= day % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


class ReleaseAvailabilityEvaluator:
    """Evaluate one :class:`LessonRelease` for one student timezone.

    Manual overrides always win.  When the unlock instant cannot be computed
    the configured fail policy decides: ``open`` (the default) shows the
    lesson rather than lock out an enrolled student, ``closed`` hides it.
    """

    def __init__(
        self,
        calculator: Optional[ReleaseTimeCalculator] = None,
        *,
        settings: Optional[GateSettings] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.settings = settings or (calculator.settings if calculator else GateSettings())
        self.calculator = calculator or ReleaseTimeCalculator(settings=self.settings)
        self.clock = clock

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now if now is not None else self.clock())

    def release_instant(
        self, release: Optional[LessonRelease], student_timezone: Any
    ) -> Optional[datetime]:
        """Return the student's unlock instant, or ``None`` when not gated.

        Raises :class:`MalformedDate` when the release date is unusable.
        """

        if release is None or release.is_released:
            return None
        if release.canonical_release_date is None:
            raise MalformedDate(
                f"Release {release.lesson_id}/{release.cohort_id} has no usable release date"
            )
        return self.calculator.compute(release.canonical_release_date, student_timezone)

    def _evaluate(
        self, release: Optional[LessonRelease], student_timezone: Any, now: Optional[datetime]
    ) -> Tuple[bool, Optional[datetime], datetime]:
        current = self._now(now)
        instant = self.release_instant(release, student_timezone)
        if instant is None:
            return True, None, current
        return current >= instant, instant, current

    def _on_failure(self, release: Optional[LessonRelease], action: str, exc: Exception) -> bool:
        key = release.key if release is not None else None
        _LOG.warning(
            "Error %s for release %s (fail %s): %s",
            action,
            key,
            self.settings.fail_policy,
            exc,
        )
        return self.settings.fails_open

    def is_available(
        self,
        release: Optional[LessonRelease],
        student_timezone: Any = "UTC",
        now: Optional[datetime] = None,
    ) -> bool:
        """Return ``True`` when the release is visible at ``now``.

        A missing release record means the lesson is ungated.
        """

        try:
            available, _, _ = self._evaluate(release, student_timezone, now)
        except StoreUnavailable:
            raise
        except _COMPUTE_ERRORS as exc:
            return self._on_failure(release, "checking availability", exc)
        return available

    def time_until_release(
        self,
        release: Optional[LessonRelease],
        student_timezone: Any = "UTC",
        now: Optional[datetime] = None,
    ) -> str:
        """Return ``"Available now"`` or a relative string such as ``"in 5 hours"``."""

        try:
            available, instant, current = self._evaluate(release, student_timezone, now)
            if available or instant is None:
                return AVAILABLE_NOW
            return format_timedelta(
                instant - current, add_direction=True, locale=self.settings.locale
            )
        except StoreUnavailable:
            raise
        except _COMPUTE_ERRORS as exc:
            if self._on_failure(release, "calculating time until release", exc):
                return AVAILABLE_NOW
            return RELEASE_TIME_UNAVAILABLE

    def formatted_release_time(
        self,
        release: Optional[LessonRelease],
        student_timezone: Any = "UTC",
        now: Optional[datetime] = None,
    ) -> str:
        """Return ``"Available now"`` or e.g. ``"Monday, January 8th at 8:00 AM"``."""

        try:
            available, instant, _ = self._evaluate(release, student_timezone, now)
            if available or instant is None:
                return AVAILABLE_NOW
            zone = self.calculator.resolver.resolve(student_timezone)
            return self._format_local(instant, zone)
        except StoreUnavailable:
            raise
        except _COMPUTE_ERRORS as exc:
            if self._on_failure(release, "formatting release time", exc):
                return AVAILABLE_NOW
            return RELEASE_TIME_UNAVAILABLE

    def _format_local(self, instant: datetime, zone) -> str:
        locale = self.settings.locale
        local = instant.astimezone(zone)
        weekday_month = format_datetime(local, "EEEE, MMMM", tzinfo=zone, locale=locale)
        day = ordinal(local.day) if locale.lower().startswith("en") else f"{local.day}."
        clock = format_time(local, "h:mm a", tzinfo=zone, locale=locale)
        return f"{weekday_month} {day} at {clock}"


__all__ = [
    "AVAILABLE_NOW",
    "RELEASE_TIME_UNAVAILABLE",
    "ReleaseAvailabilityEvaluator",
    "ordinal",
]
