"""Per-student release instants for the rolling weekly release.

A lesson's canonical release date marks the *day* it unlocks.  Each student
gets it at the same local time-of-day (08:00 by default) on that day, so two
students in different zones unlock at different absolute instants.

Wall times that fall into a daylight-saving transition are resolved by one
policy, shared by every caller:

* a wall time that does not exist (spring-forward gap) snaps forward to the
  first valid instant after the gap, i.e. the transition itself;
* a wall time that occurs twice (fall-back overlap) resolves to the first
  occurrence (``fold=0``).
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Any, Optional

from .config import ANCHOR_STUDENT, ANCHOR_UTC, ANCHORS, GateSettings
from .dates import check_time_of_day, parse_local_time, require_datetime
from .timezones import TimezoneResolver

_LOG = logging.getLogger(__name__)

WALL_NORMAL = "normal"
WALL_AMBIGUOUS = "ambiguous"
WALL_NONEXISTENT = "nonexistent"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _wall(moment: datetime, zone: tzinfo) -> datetime:
    # Through UTC: astimezone() is a no-op when the tzinfo is already ``zone``.
    return moment.astimezone(timezone.utc).astimezone(zone).replace(tzinfo=None, fold=0)


def classify_wall_time(wall: datetime, zone: tzinfo) -> str:
    """Return whether naive ``wall`` is normal, ambiguous or nonexistent in ``zone``."""

    wall = wall.replace(tzinfo=None, fold=0)
    first = wall.replace(tzinfo=zone, fold=0)
    second = wall.replace(tzinfo=zone, fold=1)
    if first.utcoffset() == second.utcoffset():
        return WALL_NORMAL
    if _wall(first, zone) == wall:
        return WALL_AMBIGUOUS
    return WALL_NONEXISTENT


def _gap_end(wall: datetime, zone: tzinfo) -> datetime:
    # ``wall`` read with the post-transition offset lands before the
    # transition, read with the pre-transition offset it lands after it.
    before = wall.replace(tzinfo=zone, fold=0).utcoffset()
    after = wall.replace(tzinfo=zone, fold=1).utcoffset()
    lo = int(((wall - after).replace(tzinfo=timezone.utc) - _EPOCH).total_seconds())
    hi = int(((wall - before).replace(tzinfo=timezone.utc) - _EPOCH).total_seconds())
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if (_EPOCH + timedelta(seconds=mid)).astimezone(zone).utcoffset() == after:
            hi = mid
        else:
            lo = mid
    return _EPOCH + timedelta(seconds=hi)


def localize_wall_time(wall: datetime, zone: tzinfo) -> datetime:
    """Return the UTC instant for naive local ``wall`` in ``zone``.

    Applies the module's DST policy to gaps and overlaps.
    """

    wall = wall.replace(tzinfo=None, fold=0)
    kind = classify_wall_time(wall, zone)
    if kind == WALL_NONEXISTENT:
        resolved = _gap_end(wall, zone)
        _LOG.info(
            "Local time %s does not exist in %s; using %s",
            wall.isoformat(),
            zone,
            resolved.astimezone(zone).isoformat(),
        )
        return resolved
    # fold=0 is the first occurrence of an ambiguous time.
    return wall.replace(tzinfo=zone, fold=0).astimezone(timezone.utc)


class ReleaseTimeCalculator:
    """Convert a canonical release date into a student's unlock instant.

    With the default ``utc`` anchor the release day is the canonical
    instant's UTC date, so 2024-01-08T00:00Z unlocks on January 8th in every
    zone (08:00 in New York is 13:00Z).  The ``student`` anchor converts the
    canonical instant into the student's zone first and takes that local date
    instead; only under it does the unlock instant round-trip back to the
    canonical local date for every zone.
    """

    def __init__(
        self,
        resolver: Optional[TimezoneResolver] = None,
        *,
        settings: Optional[GateSettings] = None,
    ) -> None:
        self.settings = settings or GateSettings()
        if self.settings.anchor not in ANCHORS:
            raise ValueError(f"Unknown calendar anchor {self.settings.anchor!r}")
        self.resolver = resolver or TimezoneResolver(locale=self.settings.locale)

    def release_date(self, canonical: datetime, zone: tzinfo):
        """Return the calendar date a canonical instant stands for."""

        if self.settings.anchor == ANCHOR_STUDENT:
            return canonical.astimezone(zone).date()
        return canonical.astimezone(timezone.utc).date()

    def compute(
        self,
        canonical_release_date: Any,
        student_timezone: Any,
        local_hour: Optional[int] = None,
        local_minute: Optional[int] = None,
    ) -> datetime:
        """Return the UTC instant the release unlocks for ``student_timezone``.

        ``local_hour``/``local_minute`` default to the configured release
        time (08:00).  An invalid timezone falls back to UTC; an unparseable
        date or an out-of-range time raises :class:`MalformedDate`.
        """

        default_hour, default_minute = self.settings.release_hour_minute
        hour = default_hour if local_hour is None else local_hour
        minute = default_minute if local_minute is None else local_minute
        check_time_of_day(hour, minute)

        canonical = require_datetime(canonical_release_date, "releaseDate")
        zone = self.resolver.resolve(student_timezone)
        wall = datetime.combine(self.release_date(canonical, zone), time(hour, minute))
        return localize_wall_time(wall, zone)

    def compute_at(
        self, canonical_release_date: Any, student_timezone: Any, local_time: str
    ) -> datetime:
        """Like :meth:`compute` with an ``"HH:MM"`` release time."""

        hour, minute = parse_local_time(local_time)
        return self.compute(canonical_release_date, student_timezone, hour, minute)


__all__ = [
    "ANCHOR_STUDENT",
    "ANCHOR_UTC",
    "WALL_AMBIGUOUS",
    "WALL_NONEXISTENT",
    "WALL_NORMAL",
    "ReleaseTimeCalculator",
    "classify_wall_time",
    "localize_wall_time",
]
