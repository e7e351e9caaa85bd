from __future__ import annotations

import logging
import uuid
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.assessment import BlackAssessment
from app.models.grade import BlackGrade
from app.models.student import BlackStudent
from app.services.grade_sync_service import refresh_brief_safe, resolve_student_id

logger = logging.getLogger(__name__)


def _lock_student(db: Session, student_id: uuid.UUID) -> None:
    # Serializes find-or-create per student; a no-op on backends without row locks.
    db.query(BlackStudent.id).filter(BlackStudent.id == student_id).with_for_update().first()


def sync_assessment(
    db: Session,
    *,
    uid: str,
    when_at: date,
    subject: str | None = None,
    notes: str | None = None,
) -> uuid.UUID | None:
    """
    Upsert the Black assessment of ``uid`` for ``when_at``.

    Returns the assessment id, or None when the user has no Black student.
    """
    student_id = resolve_student_id(db, uid)
    if not student_id:
        return None

    try:
        _lock_student(db, student_id)
        assessment = (
            db.query(BlackAssessment)
            .filter(BlackAssessment.student_id == student_id, BlackAssessment.when_at == when_at)
            .order_by(BlackAssessment.created_at.asc(), BlackAssessment.id.asc())
            .first()
        )
        if assessment is None:
            assessment = BlackAssessment(student_id=student_id, when_at=when_at)
        assessment.subject = subject
        assessment.topics = notes
        db.add(assessment)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    assessment_id = assessment.id
    refresh_brief_safe(db, student_id)
    return assessment_id


def delete_assessment(
    db: Session,
    *,
    uid: str,
    assessment_id: uuid.UUID | None = None,
    when_at: date | None = None,
) -> int:
    """
    Delete the Black assessment linked to an exam entry. Grades that referenced
    it are kept. Returns the number of deleted rows.
    """
    student_id = resolve_student_id(db, uid)
    if not student_id:
        return 0

    query = db.query(BlackAssessment).filter(BlackAssessment.student_id == student_id)
    if assessment_id:
        query = query.filter(BlackAssessment.id == assessment_id)
    elif when_at:
        query = query.filter(BlackAssessment.when_at == when_at)
    else:
        return 0

    deleted = 0
    try:
        rows = query.all()
        if rows:
            db.query(BlackGrade).filter(
                BlackGrade.assessment_id.in_([row.id for row in rows])
            ).update({BlackGrade.assessment_id: None}, synchronize_session=False)
        for row in rows:
            db.delete(row)
            deleted += 1
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Assessment delete failed for student %s", student_id)
        deleted = 0

    refresh_brief_safe(db, student_id)
    return deleted
