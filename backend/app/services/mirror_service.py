"""
One-directional backfill of Black assessments and grades into the legacy
Firestore layout read by older account clients:

    users/{uid}/exams/{assessment_id}
    users/{uid}/grades/{grade_id}

Documents are keyed by the relational row id and written with merge
semantics, so reruns are idempotent.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterator
from dataclasses import asdict, dataclass
from typing import Any

from google.cloud.firestore import Client as FirestoreClient
from sqlalchemy.orm import Query, Session

from app.models.assessment import BlackAssessment
from app.models.grade import BlackGrade
from app.models.student import BlackStudent

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000
MIRROR_SOURCE = "supabase_sync"


@dataclass
class MirrorStats:
    assessments_processed: int = 0
    assessments_mirrored: int = 0
    assessments_skipped_no_uid: int = 0
    assessments_missing_date: int = 0
    grades_processed: int = 0
    grades_mirrored: int = 0
    grades_skipped_no_uid: int = 0
    grades_missing_date: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def _paged(query: Query, page_size: int) -> Iterator[Any]:
    offset = 0
    while True:
        page = query.offset(offset).limit(page_size).all()
        if not page:
            break
        yield from page
        offset += len(page)
        if len(page) < page_size:
            break


def _now_ms() -> int:
    return int(time.time() * 1000)


class MirrorService:
    def __init__(self, db: Session, firestore: FirestoreClient, page_size: int = PAGE_SIZE):
        self.db = db
        self.firestore = firestore
        self.page_size = page_size

    def load_student_uids(self) -> dict[uuid.UUID, str]:
        query = (
            self.db.query(BlackStudent.id, BlackStudent.user_id)
            .order_by(BlackStudent.created_at.asc(), BlackStudent.id.asc())
        )
        return {row.id: row.user_id for row in _paged(query, self.page_size) if row.user_id}

    def mirror_assessment(self, uid: str, row: BlackAssessment) -> None:
        payload = {
            "date": row.when_at.isoformat(),
            "subject": row.subject or None,
            "notes": row.topics or None,
            "blackAssessmentId": str(row.id),
            "syncedAt": _now_ms(),
            "source": MIRROR_SOURCE,
        }
        self.firestore.collection(f"users/{uid}/exams").document(str(row.id)).set(payload, merge=True)

    def mirror_grade(self, uid: str, row: BlackGrade) -> None:
        payload = {
            "date": row.when_at.isoformat(),
            "subject": row.subject or None,
            "grade": row.score,
            "maxScore": row.max_score if row.max_score is not None else 10,
            "syncedAt": _now_ms(),
            "source": MIRROR_SOURCE,
        }
        if row.assessment_id:
            payload["assessmentId"] = str(row.assessment_id)
        self.firestore.collection(f"users/{uid}/grades").document(str(row.id)).set(payload, merge=True)

    def run(self) -> MirrorStats:
        stats = MirrorStats()
        uids = self.load_student_uids()
        logger.info("Loaded %d student to uid mappings", len(uids))

        assessments = self.db.query(BlackAssessment).order_by(
            BlackAssessment.created_at.asc(), BlackAssessment.id.asc()
        )
        for row in _paged(assessments, self.page_size):
            stats.assessments_processed += 1
            uid = uids.get(row.student_id)
            if not uid:
                stats.assessments_skipped_no_uid += 1
                continue
            if not row.when_at:
                stats.assessments_missing_date += 1
                continue
            self.mirror_assessment(uid, row)
            stats.assessments_mirrored += 1

        grades = self.db.query(BlackGrade).order_by(BlackGrade.created_at.asc(), BlackGrade.id.asc())
        for row in _paged(grades, self.page_size):
            stats.grades_processed += 1
            uid = uids.get(row.student_id)
            if not uid:
                stats.grades_skipped_no_uid += 1
                continue
            if not row.when_at:
                stats.grades_missing_date += 1
                continue
            self.mirror_grade(uid, row)
            stats.grades_mirrored += 1

        return stats
