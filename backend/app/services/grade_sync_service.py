"""
Grade sync: records a Black grade and writes its result line into the
matching assessment's notes.

Each step commits on its own. A failure after the grade insert (assessment
update, brief refresh) never rolls back what was already written.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.queue import enqueue_refresh_brief, is_async_queue_enabled
from app.models.assessment import BlackAssessment
from app.models.grade import BlackGrade
from app.models.student import BlackStudent
from app.services.brief_service import brief_service

logger = logging.getLogger(__name__)

MAX_SCORE = 10
RESULT_PREFIX = "esito"


def clamp_grade(value: float) -> float:
    """Clamp a grade to [0, 10] and round it half-up to one decimal."""
    bounded = max(0.0, min(float(MAX_SCORE), float(value)))
    return float(Decimal(str(bounded)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _format_score(value: float) -> str:
    return f"{float(value):g}"


def build_result_line(*, score: float | None, max_score: float = MAX_SCORE, subject: str | None) -> str:
    label = f"Esito {subject}" if subject else "Esito verifica"
    if score is None or not math.isfinite(score) or not math.isfinite(max_score):
        return f"{label}: registrato"
    return f"{label}: {_format_score(score)}/{_format_score(max_score)}"


def merge_assessment_topics(current: str | None, result_line: str) -> str:
    lines = [line.rstrip() for line in current.split("\n")] if current else []
    for idx, line in enumerate(lines):
        if line.strip().lower().startswith(RESULT_PREFIX):
            lines[idx] = result_line
            break
    else:
        lines.append(result_line)
    return "\n".join(line for line in lines if line)


def resolve_student_id(db: Session, uid: str | None) -> uuid.UUID | None:
    if not uid:
        return None
    try:
        return db.query(BlackStudent.id).filter(BlackStudent.user_id == uid).scalar()
    except SQLAlchemyError:
        logger.exception("Black student lookup failed for uid %s", uid)
        db.rollback()
        return None


def find_assessment(
    db: Session,
    *,
    student_id: uuid.UUID,
    when_at: date,
    assessment_id: uuid.UUID | None = None,
    subject: str | None = None,
) -> BlackAssessment | None:
    if assessment_id:
        row = db.get(BlackAssessment, assessment_id)
        if row and row.student_id == student_id:
            return row

    candidates = (
        db.query(BlackAssessment)
        .filter(BlackAssessment.student_id == student_id, BlackAssessment.when_at == when_at)
        .order_by(BlackAssessment.created_at.asc(), BlackAssessment.id.asc())
        .all()
    )
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]

    if subject:
        normalized = subject.casefold()
        for row in candidates:
            if (row.subject or "").casefold() == normalized:
                return row
    logger.warning(
        "Ambiguous assessment lookup for student %s on %s: %d candidates, using first",
        student_id,
        when_at,
        len(candidates),
    )
    return candidates[0]


def refresh_brief_safe(db: Session, student_id: uuid.UUID) -> None:
    try:
        if is_async_queue_enabled():
            enqueue_refresh_brief(student_id=student_id)
        else:
            brief_service.refresh(db, student_id)
    except Exception:  # noqa: BLE001
        db.rollback()
        logger.warning("Brief refresh failed for student %s", student_id, exc_info=True)


def _insert_grade(
    db: Session, *, student_id: uuid.UUID, subject: str | None, score: float, when_at: date
) -> BlackGrade | None:
    grade = BlackGrade(
        student_id=student_id,
        subject=subject,
        score=score,
        max_score=MAX_SCORE,
        when_at=when_at,
    )
    try:
        db.add(grade)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Black grade insert failed for student %s", student_id)
        return None
    return grade


def sync_grade(
    db: Session,
    *,
    when_at: date,
    grade: float,
    uid: str | None = None,
    student_id: uuid.UUID | None = None,
    subject: str | None = None,
    assessment_id: uuid.UUID | None = None,
    exam_subject: str | None = None,
) -> uuid.UUID | None:
    """
    Record a grade for a Black student and reflect it on the matching assessment.

    Returns the student id, or None when the identity has no Black student.
    """
    student_id = student_id or resolve_student_id(db, uid)
    if not student_id:
        return None

    if math.isfinite(grade):
        grade = clamp_grade(grade)
    resolved_subject = subject or exam_subject or None
    grade_row = _insert_grade(
        db, student_id=student_id, subject=resolved_subject, score=grade, when_at=when_at
    )

    try:
        assessment = find_assessment(
            db,
            student_id=student_id,
            when_at=when_at,
            assessment_id=assessment_id,
            subject=exam_subject or subject,
        )
        if assessment:
            line = build_result_line(score=grade, max_score=MAX_SCORE, subject=resolved_subject)
            assessment.topics = merge_assessment_topics(assessment.topics, line)
            db.add(assessment)
            if grade_row is not None:
                grade_row.assessment_id = assessment.id
                db.add(grade_row)
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Assessment update failed for student %s on %s", student_id, when_at)

    refresh_brief_safe(db, student_id)
    return student_id
