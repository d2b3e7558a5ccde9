"""Service-layer entry points for the release gate."""

from .cohort_summary import cohort_frame, stale_cohorts, status_counts
from .release_service import EnrollmentRepo, ReleaseScheduleService

__all__ = [
    "EnrollmentRepo",
    "ReleaseScheduleService",
    "cohort_frame",
    "stale_cohorts",
    "status_counts",
]
