"""Firestore-backed repositories for cohorts, lesson releases and enrollments.

These are thin adapters: they translate documents into
:mod:`release_gate.models` records and turn SDK/network failures into
:class:`~release_gate.errors.StoreUnavailable`.  They never retry; callers
own the retry policy.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import firebase_admin
import streamlit as st
from firebase_admin import credentials, firestore
from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1 import FieldFilter

from .errors import CohortNotFound, StoreUnavailable
from .models import Cohort, Enrollment, LessonRelease

_LOG = logging.getLogger(__name__)

COHORTS_COL = "cohorts"
LESSON_RELEASES_COL = "lessonReleases"
ENROLLMENTS_COL = "enrollments"
USERS_COL = "users"

_db_client: Optional[firestore.Client] = None
db: Optional[firestore.Client] = None  # overridable in tests

_INFRA_ERRORS = (GoogleAPIError, ConnectionError, TimeoutError)


def _load_credentials():
    try:
        secrets = st.secrets["firebase"]
    except Exception:
        secrets = None
    if secrets:
        return credentials.Certificate(dict(secrets))
    return credentials.ApplicationDefault()


def get_db() -> firestore.Client:
    """Return a cached Firestore client.

    Credentials come from ``st.secrets["firebase"]`` when present, otherwise
    from Google application-default credentials.
    """

    global _db_client, db
    if db is not None:
        return db
    if _db_client is not None:
        db = _db_client
        return _db_client
    try:  # pragma: no cover - runtime side effects
        if not firebase_admin._apps:  # guard against re-init
            firebase_admin.initialize_app(_load_credentials())
        _db_client = firestore.client()
        db = _db_client
        return _db_client
    except Exception as exc:  # pragma: no cover - depends on deployment
        _LOG.warning("Firebase init failed: %s", exc)
        raise StoreUnavailable("Firebase initialization failed") from exc


@contextmanager
def _store_call(action: str) -> Iterator[None]:
    try:
        yield
    except _INFRA_ERRORS as exc:
        _LOG.warning("Firestore %s failed: %s", action, exc)
        raise StoreUnavailable(f"Firestore {action} failed: {exc}") from exc


class _FirestoreRepo:
    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        return self._client if self._client is not None else get_db()


class FirestoreCohortRepo(_FirestoreRepo):
    """Read cohorts and write targeted field updates."""

    def read(self, cohort_id: str) -> Cohort:
        with _store_call(f"read of cohort {cohort_id}"):
            snap = self.client.collection(COHORTS_COL).document(cohort_id).get()
        if not getattr(snap, "exists", False):
            raise CohortNotFound(cohort_id)
        return Cohort.from_dict(cohort_id, snap.to_dict() or {})

    def update(self, cohort_id: str, fields: Dict[str, Any]) -> None:
        with _store_call(f"update of cohort {cohort_id}"):
            self.client.collection(COHORTS_COL).document(cohort_id).update(dict(fields))

    def list_for_course(self, course_id: str) -> List[Cohort]:
        """Return the course's cohorts sorted by start date.

        Cohort documents that cannot be parsed are skipped with a warning.
        """

        with _store_call(f"listing of cohorts for {course_id}"):
            query = self.client.collection(COHORTS_COL).where(
                filter=FieldFilter("courseId", "==", course_id)
            )
            snapshots = list(query.stream())

        cohorts: List[Cohort] = []
        for snap in snapshots:
            cohort_id = getattr(snap, "id", "")
            try:
                cohorts.append(Cohort.from_dict(cohort_id, snap.to_dict() or {}))
            except ValueError as exc:
                _LOG.warning("Skipping malformed cohort %s: %s", cohort_id, exc)
        cohorts.sort(key=lambda c: c.start_date)
        return cohorts


class FirestoreLessonReleaseRepo(_FirestoreRepo):
    """Look up the release record for a (lesson, cohort) pair."""

    def find(self, lesson_id: str, cohort_id: str) -> Optional[LessonRelease]:
        """Return the release record or ``None`` when the lesson is ungated."""

        with _store_call(f"lookup of release {lesson_id}/{cohort_id}"):
            query = (
                self.client.collection(LESSON_RELEASES_COL)
                .where(filter=FieldFilter("lessonId", "==", lesson_id))
                .where(filter=FieldFilter("cohortId", "==", cohort_id))
                .limit(2)
            )
            snapshots = list(query.stream())

        if not snapshots:
            return None
        if len(snapshots) > 1:
            _LOG.warning(
                "Multiple release records for %s/%s; using %s",
                lesson_id,
                cohort_id,
                getattr(snapshots[0], "id", "<unknown>"),
            )
        data = dict(snapshots[0].to_dict() or {})
        data.setdefault("lessonId", lesson_id)
        data.setdefault("cohortId", cohort_id)
        return LessonRelease.from_dict(data)

    get_release = find


class FirestoreEnrollmentRepo(_FirestoreRepo):
    """Read a student's enrollment along with their profile timezone."""

    def read(self, student_id: str, cohort_id: str) -> Optional[Enrollment]:
        with _store_call(f"lookup of enrollment {student_id}/{cohort_id}"):
            query = (
                self.client.collection(ENROLLMENTS_COL)
                .where(filter=FieldFilter("userId", "==", student_id))
                .where(filter=FieldFilter("cohortId", "==", cohort_id))
                .limit(1)
            )
            snapshots = list(query.stream())
            if not snapshots:
                return None
            profile_snap = self.client.collection(USERS_COL).document(student_id).get()

        profile = profile_snap.to_dict() if getattr(profile_snap, "exists", False) else {}
        data = dict(snapshots[0].to_dict() or {})
        data.setdefault("userId", student_id)
        data.setdefault("cohortId", cohort_id)
        return Enrollment.from_dict(data, profile or {})


__all__ = [
    "COHORTS_COL",
    "ENROLLMENTS_COL",
    "LESSON_RELEASES_COL",
    "USERS_COL",
    "FirestoreCohortRepo",
    "FirestoreEnrollmentRepo",
    "FirestoreLessonReleaseRepo",
    "get_db",
]
