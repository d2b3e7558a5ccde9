"""Tabular cohort overview for admin dashboards."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, Optional

import pandas as pd

from ..cohort_lifecycle import CohortLifecycleManager
from ..models import COHORT_STATUSES, STATUS_CANCELLED, Cohort

COLUMNS = [
    "cohort_id",
    "name",
    "course_id",
    "start_date",
    "end_date",
    "stored_status",
    "status",
    "current_week",
    "seats_remaining",
]


def cohort_frame(
    cohorts: Iterable[Cohort],
    now: Optional[datetime] = None,
    *,
    lifecycle: Optional[CohortLifecycleManager] = None,
) -> pd.DataFrame:
    """Return one row per cohort with its derived status and week.

    ``stored_status`` is what the document says; ``status`` is recomputed
    from the dates (cancelled cohorts stay cancelled).  Nothing is written.
    """

    manager = lifecycle or CohortLifecycleManager()
    rows = []
    for cohort in cohorts:
        derived = (
            STATUS_CANCELLED
            if cohort.status == STATUS_CANCELLED
            else manager.status(cohort, now)
        )
        rows.append(
            {
                "cohort_id": cohort.id,
                "name": cohort.name,
                "course_id": cohort.course_id,
                "start_date": pd.Timestamp(cohort.start_date),
                "end_date": pd.Timestamp(cohort.end_date),
                "stored_status": cohort.status,
                "status": derived,
                "current_week": manager.current_week(cohort, now),
                "seats_remaining": cohort.seats_remaining,
            }
        )
    frame = pd.DataFrame(rows, columns=COLUMNS)
    if not frame.empty:
        frame = frame.sort_values("start_date", kind="stable").reset_index(drop=True)
    return frame


def status_counts(frame: pd.DataFrame) -> Dict[str, int]:
    """Return the number of cohorts per derived status (zeros included)."""

    counts = {status: 0 for status in COHORT_STATUSES}
    if frame.empty or "status" not in frame.columns:
        return counts
    for status, count in frame["status"].value_counts().items():
        counts[str(status)] = int(count)
    return counts


def stale_cohorts(frame: pd.DataFrame) -> pd.DataFrame:
    """Return the rows whose stored status no longer matches the dates."""

    if frame.empty:
        return frame
    return frame[frame["stored_status"] != frame["status"]].reset_index(drop=True)


__all__ = ["COLUMNS", "cohort_frame", "stale_cohorts", "status_counts"]
