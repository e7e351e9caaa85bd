import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.deps import get_current_user
from app.core.errors import bad_request, not_found
from app.core.firebase import AuthUser
from app.models.exam import UserExam, UserGrade
from app.schemas.exam import SUBJECTS, parse_iso_date, parse_number, parse_subject
from app.schemas.grade import GradeCreate, GradeListResponse
from app.services.grade_sync_service import clamp_grade, sync_grade

router = APIRouter(prefix="/me/grades", tags=["grades"])

GRADE_SOURCE = "account_app"


def _find_ungraded_exam(db: Session, uid: str, when_at) -> UserExam | None:
    return (
        db.query(UserExam)
        .filter(UserExam.uid == uid, UserExam.date == when_at, UserExam.grade.is_(None))
        .order_by(UserExam.created_at.asc())
        .first()
    )


@router.get("", response_model=GradeListResponse)
def list_grades(
    subject: str | None = None,
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(UserGrade).filter(UserGrade.uid == current_user.uid)
    if subject in SUBJECTS:
        query = query.filter(UserGrade.subject == subject)
    return {"items": query.order_by(UserGrade.date.asc(), UserGrade.created_at.asc()).all()}


@router.post("")
def create_grade(
    payload: GradeCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    when_at = parse_iso_date(payload.date)
    subject = parse_subject(payload.subject)
    grade = parse_number(payload.grade)
    if when_at is None or subject is None or grade is None:
        raise bad_request()
    bounded = clamp_grade(grade)

    exam = _find_ungraded_exam(db, current_user.uid, when_at)
    grade_row = UserGrade(
        uid=current_user.uid,
        date=when_at,
        subject=subject,
        grade=bounded,
        exam_id=exam.id if exam else None,
        assessment_id=exam.black_assessment_id if exam else None,
        source=GRADE_SOURCE,
    )
    db.add(grade_row)
    db.flush()
    if exam:
        exam.grade = bounded
        exam.grade_subject = subject
        exam.grade_id = grade_row.id
        exam.grade_synced_at = datetime.utcnow()
        db.add(exam)
    db.commit()

    grade_id = grade_row.id
    exam_id = exam.id if exam else None
    sync_grade(
        db,
        uid=current_user.uid,
        when_at=when_at,
        grade=bounded,
        subject=subject,
        assessment_id=exam.black_assessment_id if exam else None,
        exam_subject=exam.subject if exam else None,
    )
    return {"ok": True, "id": str(grade_id), "exam_id": str(exam_id) if exam_id else None}


@router.delete("/{grade_id}")
def delete_grade(
    grade_id: str,
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        grade = db.get(UserGrade, uuid.UUID(grade_id))
    except ValueError:
        raise not_found() from None
    if not grade or grade.uid != current_user.uid:
        raise not_found()

    linked_exams = (
        db.query(UserExam)
        .filter(UserExam.uid == current_user.uid, UserExam.grade_id == grade.id)
        .all()
    )
    for exam in linked_exams:
        exam.grade = None
        exam.grade_subject = None
        exam.grade_id = None
        exam.grade_synced_at = None
        db.add(exam)
    db.delete(grade)
    db.commit()
    return {"ok": True}
