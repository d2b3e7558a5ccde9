"""Exception types raised by the release gate.

Only :class:`StoreUnavailable` is meant to reach callers unhandled.  The
other errors describe semantic edge cases (bad timezones, unparseable
dates) which the evaluator resolves through its fail policy.
"""

from __future__ import annotations


class ReleaseGateError(Exception):
    """Base class for all release gate errors."""


class InvalidTimezone(ReleaseGateError, ValueError):
    """A timezone identifier did not resolve against the zone database."""

    def __init__(self, timezone: object) -> None:
        super().__init__(f"Unknown timezone: {timezone!r}")
        self.timezone = timezone


class MalformedDate(ReleaseGateError, ValueError):
    """A stored date or time-of-day value could not be interpreted."""


class CohortNotFound(ReleaseGateError, KeyError):
    """No cohort document exists for the requested id."""

    def __init__(self, cohort_id: str) -> None:
        super().__init__(cohort_id)
        self.cohort_id = cohort_id

    def __str__(self) -> str:
        return f"Cohort {self.cohort_id!r} not found"


class StoreUnavailable(ReleaseGateError):
    """The backing store could not be reached; callers may retry."""

    retryable = True


__all__ = [
    "ReleaseGateError",
    "InvalidTimezone",
    "MalformedDate",
    "CohortNotFound",
    "StoreUnavailable",
]
