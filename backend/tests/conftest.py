import os

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["ASYNC_QUEUE_ENABLED"] = "false"
os.environ.pop("BLACK_CRON_SECRET", None)
os.environ.pop("CRON_SECRET", None)

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.core import firebase  # noqa: E402
from app.core.db import Base, SessionLocal, engine  # noqa: E402
from app.core.firebase import AuthUser  # noqa: E402
from app.models.assessment import BlackAssessment  # noqa: E402
from app.models.student import BlackStudent  # noqa: E402
from app.services.pre_exam_service import TipPlan  # noqa: E402

TOKEN_PREFIX = "test-token-"


def auth_headers(uid: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {TOKEN_PREFIX}{uid}"}


def _fake_verify_id_token(token: str) -> AuthUser | None:
    if not token.startswith(TOKEN_PREFIX):
        return None
    uid = token[len(TOKEN_PREFIX) :]
    return AuthUser(uid=uid, email=f"{uid}@example.com")


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _fake_firebase(monkeypatch):
    monkeypatch.setattr(firebase, "verify_id_token", _fake_verify_id_token)


@pytest.fixture
def db_session() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


def make_student(db: Session, uid: str | None = "uid-black", **fields) -> BlackStudent:
    student = BlackStudent(user_id=uid, **fields)
    db.add(student)
    db.commit()
    return student


def make_assessment(
    db: Session,
    student: BlackStudent,
    when_at: date,
    subject: str | None = "matematica",
    topics: str | None = None,
    **fields,
) -> BlackAssessment:
    assessment = BlackAssessment(
        student_id=student.id, when_at=when_at, subject=subject, topics=topics, **fields
    )
    db.add(assessment)
    db.commit()
    return assessment


class FakeGenerator:
    def __init__(self, plan: TipPlan | None = None):
        self.plan = plan or TipPlan(
            focus_points=["Leggere bene ogni consegna prima di iniziare."],
            study_actions=["Ripassare le formule delle derivate per venti minuti."],
            motivation="Luca Rossi arriva preparato.",
        )
        self.contexts: list[str] = []

    def generate(self, *, context: str) -> TipPlan | None:
        self.contexts.append(context)
        return self.plan


class FakeMailer:
    def __init__(self, error: Exception | None = None):
        self.sent: list[dict] = []
        self.error = error

    def send(self, **message) -> None:
        if self.error:
            raise self.error
        self.sent.append(message)
