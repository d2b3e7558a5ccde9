"""Timezone validation, detection and display helpers.

Every student-facing computation goes through :class:`TimezoneResolver` so
the zone database can be swapped for a fixed snapshot in tests.  Invalid
identifiers never raise here; they are downgraded to ``UTC`` and logged.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone, tzinfo
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from babel.dates import get_timezone_gmt, get_timezone_name
from rapidfuzz import fuzz, process, utils

from .config import DEFAULT_LOCALE, DEFAULT_TIMEZONE
from .errors import InvalidTimezone

_LOG = logging.getLogger(__name__)

# Platforms occasionally report a bare city or country instead of an IANA id.
CITY_TIMEZONES: Dict[str, str] = {
    "Madrid": "Europe/Madrid",
    "Barcelona": "Europe/Madrid",
    "Spain": "Europe/Madrid",
    "London": "Europe/London",
    "UK": "Europe/London",
    "England": "Europe/London",
    "New York": "America/New_York",
    "NYC": "America/New_York",
    "Los Angeles": "America/Los_Angeles",
    "LA": "America/Los_Angeles",
    "Chicago": "America/Chicago",
    "Denver": "America/Denver",
    "Phoenix": "America/Phoenix",
    "Toronto": "America/Toronto",
    "Vancouver": "America/Vancouver",
    "Sydney": "Australia/Sydney",
    "Melbourne": "Australia/Melbourne",
    "Tokyo": "Asia/Tokyo",
    "Beijing": "Asia/Shanghai",
    "Shanghai": "Asia/Shanghai",
    "Hong Kong": "Asia/Hong_Kong",
    "Singapore": "Asia/Singapore",
    "Dubai": "Asia/Dubai",
    "Mumbai": "Asia/Kolkata",
    "Delhi": "Asia/Kolkata",
    "Berlin": "Europe/Berlin",
    "Paris": "Europe/Paris",
    "Rome": "Europe/Rome",
    "Amsterdam": "Europe/Amsterdam",
    "Stockholm": "Europe/Stockholm",
    "Oslo": "Europe/Oslo",
    "Copenhagen": "Europe/Copenhagen",
    "Helsinki": "Europe/Helsinki",
    "Warsaw": "Europe/Warsaw",
    "Prague": "Europe/Prague",
    "Vienna": "Europe/Vienna",
    "Budapest": "Europe/Budapest",
    "Bucharest": "Europe/Bucharest",
    "Sofia": "Europe/Sofia",
    "Athens": "Europe/Athens",
    "Istanbul": "Europe/Istanbul",
    "Moscow": "Europe/Moscow",
    "Kiev": "Europe/Kiev",
    "Minsk": "Europe/Minsk",
    "Riga": "Europe/Riga",
    "Tallinn": "Europe/Tallinn",
    "Vilnius": "Europe/Vilnius",
}

# Zones offered by the profile timezone picker, grouped by region.
COMMON_TIMEZONES: Dict[str, List[str]] = {
    "North America": [
        "America/New_York",
        "America/Chicago",
        "America/Denver",
        "America/Los_Angeles",
        "America/Phoenix",
        "America/Anchorage",
        "America/Toronto",
        "America/Vancouver",
        "America/Mexico_City",
    ],
    "Europe": [
        "Europe/London",
        "Europe/Paris",
        "Europe/Berlin",
        "Europe/Rome",
        "Europe/Madrid",
        "Europe/Amsterdam",
        "Europe/Stockholm",
        "Europe/Oslo",
        "Europe/Copenhagen",
        "Europe/Helsinki",
        "Europe/Warsaw",
        "Europe/Prague",
        "Europe/Vienna",
        "Europe/Budapest",
        "Europe/Bucharest",
        "Europe/Sofia",
        "Europe/Athens",
        "Europe/Istanbul",
        "Europe/Moscow",
        "Europe/Kiev",
    ],
    "Asia": [
        "Asia/Tokyo",
        "Asia/Shanghai",
        "Asia/Hong_Kong",
        "Asia/Singapore",
        "Asia/Dubai",
        "Asia/Kolkata",
        "Asia/Bangkok",
        "Asia/Seoul",
        "Asia/Jakarta",
        "Asia/Manila",
        "Asia/Ho_Chi_Minh",
        "Asia/Kuala_Lumpur",
    ],
    "Australia & Pacific": [
        "Australia/Sydney",
        "Australia/Melbourne",
        "Australia/Brisbane",
        "Australia/Perth",
        "Australia/Adelaide",
        "Pacific/Auckland",
        "Pacific/Fiji",
        "Pacific/Honolulu",
    ],
    "South America": [
        "America/Sao_Paulo",
        "America/Buenos_Aires",
        "America/Santiago",
        "America/Lima",
        "America/Bogota",
        "America/Caracas",
    ],
    "Africa": [
        "Africa/Cairo",
        "Africa/Johannesburg",
        "Africa/Lagos",
        "Africa/Nairobi",
        "Africa/Casablanca",
        "Africa/Algiers",
    ],
    "Other": [
        "UTC",
        "GMT",
        "Atlantic/Reykjavik",
        "Indian/Mauritius",
    ],
}

_FUZZY_CUTOFF = 85


def read_platform_timezone() -> Optional[str]:
    """Return the host's configured zone identifier, if one can be found."""

    env_tz = os.environ.get("TZ", "").strip().lstrip(":")
    if env_tz:
        return env_tz

    try:
        target = os.path.realpath("/etc/localtime")
    except OSError:
        target = ""
    marker = "zoneinfo" + os.sep
    if marker in target:
        return target.split(marker, 1)[1]

    try:
        with open("/etc/timezone", encoding="utf-8") as fh:
            value = fh.read().strip()
    except OSError:
        return None
    return value or None


class TimezoneResolver:
    """Validate, normalise and describe IANA timezone identifiers."""

    def __init__(
        self,
        *,
        zone_loader: Callable[[str], tzinfo] = ZoneInfo,
        platform_reader: Callable[[], Optional[str]] = read_platform_timezone,
        fallback: str = DEFAULT_TIMEZONE,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        self._load_zone = zone_loader
        self._read_platform = platform_reader
        self.fallback = fallback
        self.locale = locale

    def _zone_or_none(self, tz: object) -> Optional[tzinfo]:
        if not isinstance(tz, str) or not tz.strip():
            return None
        try:
            return self._load_zone(tz.strip())
        except (KeyError, ValueError, TypeError, OSError):
            return None

    def validate(self, tz: object) -> bool:
        """Return ``True`` iff ``tz`` resolves against the zone database."""

        return self._zone_or_none(tz) is not None

    def require(self, tz: object) -> tzinfo:
        """Return the zone for ``tz`` or raise :class:`InvalidTimezone`."""

        zone = self._zone_or_none(tz)
        if zone is None:
            raise InvalidTimezone(tz)
        return zone

    def resolve(self, tz: object) -> tzinfo:
        """Return the zone for ``tz``, substituting the fallback when invalid."""

        zone = self._zone_or_none(tz)
        if zone is not None:
            return zone
        _LOG.warning("Invalid timezone %r, falling back to %s", tz, self.fallback)
        fallback = self._zone_or_none(self.fallback)
        return fallback if fallback is not None else timezone.utc

    def normalize(self, tz: object) -> str:
        """Return a usable identifier for ``tz`` (the fallback when invalid)."""

        if self.validate(tz):
            return str(tz).strip()
        _LOG.warning("Invalid timezone %r, falling back to %s", tz, self.fallback)
        return self.fallback

    def map_city(self, name: object) -> Optional[str]:
        """Map a city or country name to an IANA identifier.

        Exact names are tried first, then a fuzzy match so minor spelling or
        casing differences ("new york", "Copenhagn") still resolve.
        """

        if not isinstance(name, str) or not name.strip():
            return None
        cleaned = name.strip()
        mapped = CITY_TIMEZONES.get(cleaned)
        if mapped is None:
            match = process.extractOne(
                cleaned,
                list(CITY_TIMEZONES),
                scorer=fuzz.ratio,
                processor=utils.default_process,
                score_cutoff=_FUZZY_CUTOFF,
            )
            if match:
                mapped = CITY_TIMEZONES[match[0]]
        if mapped and self.validate(mapped):
            return mapped
        return None

    def detect(self) -> str:
        """Return the platform timezone, a mapped city zone, or ``UTC``."""

        try:
            detected = self._read_platform()
        except Exception as exc:
            _LOG.warning("Could not detect timezone, falling back to %s: %s", self.fallback, exc)
            return self.fallback

        if self.validate(detected):
            return str(detected).strip()

        mapped = self.map_city(detected)
        if mapped:
            _LOG.info("Mapped timezone %r to %r", detected, mapped)
            return mapped

        _LOG.warning("Invalid timezone detected: %r, falling back to %s", detected, self.fallback)
        return self.fallback

    def display_name(self, tz: str, *, at: Optional[datetime] = None) -> str:
        """Return the long zone name (e.g. ``Eastern Standard Time``)."""

        zone = self._zone_or_none(tz)
        if zone is None:
            return tz
        moment = (at or datetime.now(timezone.utc)).astimezone(zone)
        try:
            name = get_timezone_name(moment, width="long", locale=self.locale)
        except Exception:
            return tz
        return name or tz

    def timezone_options(self, now: Optional[datetime] = None) -> List[Dict[str, str]]:
        """Return the grouped zone list used by timezone pickers."""

        moment = now or datetime.now(timezone.utc)
        options: List[Dict[str, str]] = []
        for region, zones in COMMON_TIMEZONES.items():
            for tz in zones:
                zone = self._zone_or_none(tz)
                if zone is None:
                    continue
                local = moment.astimezone(zone)
                try:
                    offset = get_timezone_gmt(local, width="long", locale=self.locale)
                except Exception:
                    continue
                options.append(
                    {
                        "value": tz,
                        "label": self.display_name(tz, at=moment),
                        "offset": offset,
                        "region": region,
                    }
                )
        options.sort(key=lambda item: (item["region"], item["label"]))
        return options


__all__ = [
    "CITY_TIMEZONES",
    "COMMON_TIMEZONES",
    "TimezoneResolver",
    "read_platform_timezone",
]
