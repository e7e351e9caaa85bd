import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.deps import get_current_user
from app.core.errors import bad_request, not_found
from app.core.firebase import AuthUser
from app.models.exam import UserExam, UserGrade
from app.schemas.exam import (
    NOTES_MAX_LENGTH,
    SUBJECT_MAX_LENGTH,
    ExamCreate,
    ExamGradeCreate,
    ExamListResponse,
    clean_text,
    parse_iso_date,
    parse_number,
    parse_subject,
)
from app.services.assessment_sync_service import delete_assessment, sync_assessment
from app.services.grade_sync_service import clamp_grade, sync_grade

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me/exams", tags=["exams"])

GRADE_SOURCE = "account_app"


def _utc_today():
    return datetime.now(timezone.utc).date()


def _parse_id(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise not_found() from None


def _require_exam_owned(db: Session, user: AuthUser, exam_id: str) -> UserExam:
    exam = db.get(UserExam, _parse_id(exam_id))
    if not exam or exam.uid != user.uid:
        raise not_found()
    return exam


@router.get("", response_model=ExamListResponse)
def list_exams(
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items = (
        db.query(UserExam)
        .filter(UserExam.uid == current_user.uid)
        .order_by(UserExam.date.asc(), UserExam.created_at.asc())
        .all()
    )
    return {"items": items}


@router.post("")
def create_exam(
    payload: ExamCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    when_at = parse_iso_date(payload.date)
    if when_at is None:
        raise bad_request()
    subject = clean_text(payload.subject, SUBJECT_MAX_LENGTH)
    notes = clean_text(payload.notes, NOTES_MAX_LENGTH)

    exam = (
        db.query(UserExam)
        .filter(UserExam.uid == current_user.uid, UserExam.date == when_at)
        .order_by(UserExam.created_at.asc())
        .first()
    )
    if exam is None:
        exam = UserExam(uid=current_user.uid, date=when_at)
    else:
        exam.updated_at = datetime.utcnow()
    exam.subject = subject
    exam.notes = notes
    db.add(exam)
    db.commit()
    exam_id = exam.id

    try:
        assessment_id = sync_assessment(
            db, uid=current_user.uid, when_at=when_at, subject=subject, notes=notes
        )
    except SQLAlchemyError:
        logger.exception("Assessment sync failed for exam %s", exam_id)
        assessment_id = None

    if assessment_id and exam.black_assessment_id != assessment_id:
        exam.black_assessment_id = assessment_id
        db.add(exam)
        db.commit()

    return {"ok": True, "id": str(exam_id)}


@router.delete("/{exam_id}")
def delete_exam(
    exam_id: str,
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    exam = _require_exam_owned(db, current_user, exam_id)
    assessment_id = exam.black_assessment_id
    when_at = exam.date
    db.delete(exam)
    db.commit()

    if assessment_id or when_at:
        delete_assessment(db, uid=current_user.uid, assessment_id=assessment_id, when_at=when_at)
    return {"ok": True}


@router.post("/{exam_id}/grade")
def grade_exam(
    exam_id: str,
    payload: ExamGradeCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    grade = parse_number(payload.grade)
    subject = parse_subject(payload.subject)
    if grade is None or subject is None:
        raise bad_request("invalid_grade")
    bounded = clamp_grade(grade)

    exam = _require_exam_owned(db, current_user, exam_id)
    if exam.date is None:
        raise bad_request("missing_date")
    if exam.date > _utc_today():
        raise bad_request("future_exam", "Puoi registrare voti solo per verifiche passate.")

    grade_row = None
    if exam.grade_id:
        grade_row = db.get(UserGrade, exam.grade_id)
        if grade_row and grade_row.uid != current_user.uid:
            grade_row = None
    if grade_row is None and exam.black_assessment_id:
        grade_row = (
            db.query(UserGrade)
            .filter(
                UserGrade.uid == current_user.uid,
                UserGrade.assessment_id == exam.black_assessment_id,
            )
            .first()
        )
    if grade_row is None:
        grade_row = UserGrade(uid=current_user.uid, exam_id=exam.id)
    else:
        grade_row.updated_at = datetime.utcnow()
    grade_row.date = exam.date
    grade_row.subject = subject
    grade_row.grade = bounded
    grade_row.assessment_id = exam.black_assessment_id
    grade_row.source = GRADE_SOURCE
    db.add(grade_row)
    db.flush()

    exam.grade = bounded
    exam.grade_subject = subject
    exam.grade_id = grade_row.id
    exam.grade_synced_at = datetime.utcnow()
    db.add(exam)
    db.commit()

    summary = {
        "id": str(grade_row.id),
        "date": exam.date.isoformat(),
        "subject": subject,
        "grade": bounded,
    }
    sync_grade(
        db,
        uid=current_user.uid,
        when_at=exam.date,
        grade=bounded,
        subject=subject,
        assessment_id=exam.black_assessment_id,
        exam_subject=exam.subject,
    )
    return {"ok": True, "grade": summary}
