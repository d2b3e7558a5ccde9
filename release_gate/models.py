"""Plain data records for cohorts, lesson releases and enrollments.

Firestore documents use the camelCase field names written by the course
administration tools; ``from_dict`` maps them onto these records and
``to_dict`` maps them back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from .config import DEFAULT_RELEASE_TIME, DEFAULT_TIMEZONE
from .dates import require_datetime, to_datetime_any
from .errors import MalformedDate

STATUS_UPCOMING = "upcoming"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
COHORT_STATUSES = (STATUS_UPCOMING, STATUS_ACTIVE, STATUS_COMPLETED, STATUS_CANCELLED)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Cohort:
    """A group of students progressing through a course on a shared calendar."""

    id: str
    course_id: str
    name: str
    start_date: datetime
    end_date: datetime
    enrollment_deadline: Optional[datetime] = None
    max_students: int = 0
    current_students: int = 0
    status: str = STATUS_UPCOMING
    weekly_release_time: str = DEFAULT_RELEASE_TIME
    is_active: bool = True
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.start_date >= self.end_date:
            raise MalformedDate(
                f"Cohort {self.id!r} starts at {self.start_date.isoformat()} "
                f"which is not before its end {self.end_date.isoformat()}"
            )

    @property
    def seats_remaining(self) -> int:
        return max(0, self.max_students - self.current_students)

    @classmethod
    def from_dict(cls, cohort_id: str, data: Mapping[str, Any]) -> "Cohort":
        """Build a cohort from a Firestore document payload."""

        return cls(
            id=cohort_id,
            course_id=str(data.get("courseId") or ""),
            name=str(data.get("name") or cohort_id),
            start_date=require_datetime(data.get("startDate"), "startDate"),
            end_date=require_datetime(data.get("endDate"), "endDate"),
            enrollment_deadline=to_datetime_any(data.get("enrollmentDeadline")),
            max_students=_as_int(data.get("maxStudents")),
            current_students=_as_int(data.get("currentStudents")),
            status=str(data.get("status") or STATUS_UPCOMING),
            weekly_release_time=str(data.get("weeklyReleaseTime") or DEFAULT_RELEASE_TIME),
            is_active=bool(data.get("isActive", True)),
            updated_at=to_datetime_any(data.get("updatedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "courseId": self.course_id,
            "name": self.name,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "enrollmentDeadline": self.enrollment_deadline,
            "maxStudents": self.max_students,
            "currentStudents": self.current_students,
            "status": self.status,
            "weeklyReleaseTime": self.weekly_release_time,
            "isActive": self.is_active,
            "updatedAt": self.updated_at,
        }


@dataclass
class LessonRelease:
    """Release schedule for one lesson in one cohort.

    ``canonical_release_date`` is ``None`` when the stored value could not be
    parsed; the evaluator treats that as a malformed date.
    """

    lesson_id: str
    cohort_id: str
    canonical_release_date: Optional[datetime]
    is_released: bool = False
    course_id: str = ""
    week_number: Optional[int] = None

    @property
    def key(self) -> tuple[str, str]:
        return self.lesson_id, self.cohort_id

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LessonRelease":
        return cls(
            lesson_id=str(data.get("lessonId") or ""),
            cohort_id=str(data.get("cohortId") or ""),
            canonical_release_date=to_datetime_any(data.get("releaseDate")),
            is_released=bool(data.get("isReleased", False)),
            course_id=str(data.get("courseId") or ""),
            week_number=_as_optional_int(data.get("weekNumber")),
        )


@dataclass
class Enrollment:
    """A student's membership of a cohort plus their profile timezone."""

    student_id: str
    cohort_id: str
    status: str = "active"
    timezone: str = DEFAULT_TIMEZONE

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], profile: Optional[Mapping[str, Any]] = None
    ) -> "Enrollment":
        profile = profile or {}
        tz = str(profile.get("timezone") or "").strip() or DEFAULT_TIMEZONE
        return cls(
            student_id=str(data.get("userId") or ""),
            cohort_id=str(data.get("cohortId") or ""),
            status=str(data.get("enrollmentStatus") or "active"),
            timezone=tz,
        )


__all__ = [
    "COHORT_STATUSES",
    "STATUS_ACTIVE",
    "STATUS_CANCELLED",
    "STATUS_COMPLETED",
    "STATUS_UPCOMING",
    "Cohort",
    "Enrollment",
    "LessonRelease",
]
