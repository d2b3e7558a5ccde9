"""Runtime configuration for the release gate.

Settings are read from environment variables so the serving layer can flip
the fail policy (for example to ``closed`` on a staging deployment) without
code changes.  Firestore credentials are handled separately by
:func:`release_gate.firestore_store.get_db`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .dates import parse_local_time
from .errors import MalformedDate

FAIL_OPEN = "open"
FAIL_CLOSED = "closed"
FAIL_POLICIES = (FAIL_OPEN, FAIL_CLOSED)

ANCHOR_UTC = "utc"
ANCHOR_STUDENT = "student"
ANCHORS = (ANCHOR_UTC, ANCHOR_STUDENT)

DEFAULT_TIMEZONE = "UTC"
DEFAULT_RELEASE_TIME = "08:00"
DEFAULT_LOCALE = "en"

_FAIL_POLICY_ENV = "RELEASE_GATE_FAIL_POLICY"
_RELEASE_TIME_ENV = "RELEASE_GATE_RELEASE_TIME"
_LOCALE_ENV = "RELEASE_GATE_LOCALE"
_ANCHOR_ENV = "RELEASE_GATE_ANCHOR"


@dataclass(frozen=True)
class GateSettings:
    """Tunable defaults shared by the calculator and evaluator."""

    fail_policy: str = FAIL_OPEN
    release_time: str = DEFAULT_RELEASE_TIME
    locale: str = DEFAULT_LOCALE
    anchor: str = ANCHOR_UTC

    @property
    def fails_open(self) -> bool:
        return self.fail_policy == FAIL_OPEN

    @property
    def release_hour_minute(self) -> tuple[int, int]:
        return parse_local_time(self.release_time)


def _choice(env: Mapping[str, str], name: str, default: str, allowed: tuple) -> str:
    raw = env.get(name, "").strip().lower()
    if not raw:
        return default
    if raw not in allowed:
        raise RuntimeError(f"{name} must be one of {', '.join(allowed)} (got {raw!r})")
    return raw


def load_settings(environ: Optional[Mapping[str, str]] = None) -> GateSettings:
    """Return :class:`GateSettings` built from ``environ`` (``os.environ``)."""

    env = os.environ if environ is None else environ

    release_time = env.get(_RELEASE_TIME_ENV, "").strip() or DEFAULT_RELEASE_TIME
    try:
        parse_local_time(release_time)
    except MalformedDate as exc:
        raise RuntimeError(f"{_RELEASE_TIME_ENV} must be HH:MM (got {release_time!r})") from exc

    return GateSettings(
        fail_policy=_choice(env, _FAIL_POLICY_ENV, FAIL_OPEN, FAIL_POLICIES),
        release_time=release_time,
        locale=env.get(_LOCALE_ENV, "").strip() or DEFAULT_LOCALE,
        anchor=_choice(env, _ANCHOR_ENV, ANCHOR_UTC, ANCHORS),
    )


__all__ = [
    "ANCHOR_STUDENT",
    "ANCHOR_UTC",
    "DEFAULT_LOCALE",
    "DEFAULT_RELEASE_TIME",
    "DEFAULT_TIMEZONE",
    "FAIL_CLOSED",
    "FAIL_OPEN",
    "GateSettings",
    "load_settings",
]
