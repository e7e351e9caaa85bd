from datetime import date, datetime

import pytest
from sqlalchemy.orm import Session

from app.models.assessment import BlackAssessment
from app.models.brief import BlackStudentBrief
from app.models.grade import BlackGrade
from app.services import grade_sync_service
from app.services.grade_sync_service import (
    build_result_line,
    clamp_grade,
    find_assessment,
    merge_assessment_topics,
    sync_grade,
)
from conftest import make_assessment, make_student

EXAM_DAY = date(2025, 5, 10)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(11.27, 10.0), (-3, 0.0), (7.86, 7.9), (7.85, 7.9), (6, 6.0), (0.04, 0.0)],
)
def test_clamp_grade(raw, expected):
    assert clamp_grade(raw) == expected


def test_build_result_line():
    assert build_result_line(score=8.0, subject="matematica") == "Esito matematica: 8/10"
    assert build_result_line(score=6.5, subject=None) == "Esito verifica: 6.5/10"
    assert build_result_line(score=float("nan"), subject="fisica") == "Esito fisica: registrato"


def test_merge_replaces_existing_result_line():
    merged = merge_assessment_topics("derivate\nEsito matematica: 6/10", "Esito matematica: 8/10")
    assert merged == "derivate\nEsito matematica: 8/10"


def test_merge_appends_and_drops_blank_lines():
    merged = merge_assessment_topics("limiti  \n\nintegrali\n", "Esito verifica: 7/10")
    assert merged == "limiti\nintegrali\nEsito verifica: 7/10"


def test_merge_matches_prefix_case_insensitively_and_only_first():
    current = "  ESITO vecchio\nesito duplicato"
    merged = merge_assessment_topics(current, "Esito fisica: 9/10")
    assert merged.split("\n") == ["Esito fisica: 9/10", "esito duplicato"]


def test_merge_on_empty_notes():
    assert merge_assessment_topics(None, "Esito fisica: 5/10") == "Esito fisica: 5/10"


def test_find_assessment_prefers_subject_hint(db_session: Session):
    student = make_student(db_session)
    make_assessment(
        db_session, student, EXAM_DAY, subject="fisica", created_at=datetime(2025, 5, 1, 8)
    )
    maths = make_assessment(
        db_session, student, EXAM_DAY, subject="Matematica", created_at=datetime(2025, 5, 1, 9)
    )

    found = find_assessment(db_session, student_id=student.id, when_at=EXAM_DAY, subject="matematica")
    assert found.id == maths.id


def test_find_assessment_ambiguous_falls_back_to_first(db_session: Session, caplog):
    student = make_student(db_session)
    first = make_assessment(
        db_session, student, EXAM_DAY, subject="fisica", created_at=datetime(2025, 5, 1, 8)
    )
    make_assessment(
        db_session, student, EXAM_DAY, subject="matematica", created_at=datetime(2025, 5, 1, 9)
    )

    found = find_assessment(db_session, student_id=student.id, when_at=EXAM_DAY)
    assert found.id == first.id
    assert "Ambiguous assessment lookup" in caplog.text


def test_find_assessment_by_id_ignores_other_students(db_session: Session):
    student = make_student(db_session)
    other = make_student(db_session, uid="uid-other")
    foreign = make_assessment(db_session, other, EXAM_DAY)

    found = find_assessment(
        db_session, student_id=student.id, when_at=EXAM_DAY, assessment_id=foreign.id
    )
    assert found is None


def test_sync_grade_without_black_student_is_noop(db_session: Session):
    result = sync_grade(db_session, uid="uid-nobody", when_at=EXAM_DAY, grade=7)
    assert result is None
    assert db_session.query(BlackGrade).count() == 0


def test_sync_grade_replaces_result_line(db_session: Session):
    student = make_student(db_session)
    assessment = make_assessment(
        db_session, student, EXAM_DAY, topics="derivate\nEsito matematica: 6/10"
    )

    sync_grade(db_session, uid="uid-black", when_at=EXAM_DAY, grade=8, subject="matematica")

    db_session.expire_all()
    topics = db_session.get(BlackAssessment, assessment.id).topics
    result_lines = [line for line in topics.split("\n") if line.lower().startswith("esito")]
    assert result_lines == ["Esito matematica: 8/10"]
    assert "derivate" in topics.split("\n")

    grade = db_session.query(BlackGrade).one()
    assert grade.score == 8
    assert grade.max_score == 10
    assert grade.subject == "matematica"
    assert grade.assessment_id == assessment.id
    assert db_session.get(BlackStudentBrief, student.id) is not None


def test_sync_grade_uses_exam_subject_when_subject_missing(db_session: Session):
    student = make_student(db_session)
    make_assessment(db_session, student, EXAM_DAY, subject="fisica", topics="ottica")

    sync_grade(db_session, student_id=student.id, when_at=EXAM_DAY, grade=6.5, exam_subject="fisica")

    grade = db_session.query(BlackGrade).one()
    assert grade.subject == "fisica"
    assessment = db_session.query(BlackAssessment).one()
    assert assessment.topics == "ottica\nEsito fisica: 6.5/10"


def test_sync_grade_without_assessment_records_standalone_grade(db_session: Session):
    student = make_student(db_session)

    sync_grade(db_session, student_id=student.id, when_at=EXAM_DAY, grade=9, subject="fisica")

    grade = db_session.query(BlackGrade).one()
    assert grade.assessment_id is None
    assert db_session.query(BlackAssessment).count() == 0


def test_brief_refresh_failure_keeps_primary_writes(db_session: Session, monkeypatch):
    student = make_student(db_session)
    assessment = make_assessment(db_session, student, EXAM_DAY, topics="derivate")

    def _boom(*_args, **_kwargs):
        raise RuntimeError("refresh_black_brief unavailable")

    monkeypatch.setattr(grade_sync_service.brief_service, "refresh", _boom)

    sync_grade(db_session, uid="uid-black", when_at=EXAM_DAY, grade=7, subject="matematica")

    db_session.expire_all()
    assert db_session.query(BlackGrade).count() == 1
    assert db_session.get(BlackAssessment, assessment.id).topics == "derivate\nEsito matematica: 7/10"
    assert db_session.get(BlackStudentBrief, student.id) is None


def test_brief_refresh_is_enqueued_in_async_mode(db_session: Session, monkeypatch):
    student = make_student(db_session)
    enqueued = []
    monkeypatch.setattr(grade_sync_service, "is_async_queue_enabled", lambda: True)
    monkeypatch.setattr(
        grade_sync_service,
        "enqueue_refresh_brief",
        lambda *, student_id: enqueued.append(student_id) or "job-1",
    )

    sync_grade(db_session, student_id=student.id, when_at=EXAM_DAY, grade=5, subject="fisica")

    assert enqueued == [student.id]
    assert db_session.get(BlackStudentBrief, student.id) is None


def test_sync_grade_clamps_direct_callers(db_session: Session):
    student = make_student(db_session)
    assessment = make_assessment(db_session, student, EXAM_DAY, topics="derivate")

    sync_grade(db_session, student_id=student.id, when_at=EXAM_DAY, grade=11.27, subject="matematica")

    db_session.expire_all()
    assert db_session.query(BlackGrade).one().score == 10
    assert db_session.get(BlackAssessment, assessment.id).topics == "derivate\nEsito matematica: 10/10"


def test_sync_grade_rounds_half_up(db_session: Session):
    student = make_student(db_session)

    sync_grade(db_session, student_id=student.id, when_at=EXAM_DAY, grade=7.86, subject="fisica")

    assert db_session.query(BlackGrade).one().score == 7.9
