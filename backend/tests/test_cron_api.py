import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_pre_exam_service
from app.main import app
from app.models.student import BlackStudent
from app.services.pre_exam_service import PreExamTipService
from app.services.readiness_service import ReadinessUpdateError
from conftest import FakeGenerator, FakeMailer, make_student

client = TestClient(app)


class _FakePreExam:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result if result is not None else {"processed": 0, "sent": 0}
        self.error = error
        self.calls = 0

    def run(self, db, today=None):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def pre_exam():
    fake = _FakePreExam()
    app.dependency_overrides[get_pre_exam_service] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_pre_exam_service, None)


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setattr(settings, "BLACK_CRON_SECRET", "s3cret")
    return "s3cret"


def test_insecure_mode_outside_production(pre_exam, caplog):
    response = client.get("/api/cron/readiness")

    assert response.status_code == 200
    assert "INSECURE MODE" in caplog.text


def test_production_without_secret_needs_vercel_header(pre_exam, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")

    assert client.get("/api/cron/readiness").status_code == 401
    assert client.get("/api/cron/readiness", headers={"x-vercel-cron": "1"}).status_code == 200


def test_secret_is_required_when_configured(pre_exam, cron_secret):
    assert client.get("/api/cron/readiness").status_code == 401
    wrong = client.get("/api/cron/readiness", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "unauthorized"}


@pytest.mark.parametrize(
    ("headers", "params"),
    [
        ({"Authorization": "Bearer s3cret"}, {}),
        ({"x-cron-secret": "s3cret"}, {}),
        ({}, {"secret": "s3cret"}),
    ],
)
def test_secret_accepted_from_every_channel(pre_exam, cron_secret, headers, params):
    response = client.post("/api/cron/readiness", headers=headers, params=params)
    assert response.status_code == 200


def test_legacy_cron_secret_name_is_honored(pre_exam, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "legacy")

    assert client.get("/api/cron/readiness").status_code == 401
    assert client.get("/api/cron/readiness", params={"secret": "legacy"}).status_code == 200


def test_decay_response(db_session: Session, pre_exam):
    make_student(db_session, uid="a", readiness=10)
    make_student(db_session, uid="b", readiness=0)

    response = client.get("/api/cron/readiness")

    assert response.json() == {
        "ok": True,
        "mode": "decay",
        "processed": 2,
        "decreased": 1,
        "pre_exam": {"processed": 0, "sent": 0},
    }
    assert pre_exam.calls == 1


def test_reset_response(db_session: Session, pre_exam):
    make_student(db_session, uid="a", readiness=10)

    response = client.post("/api/cron/readiness", params={"action": "reset"})

    assert response.json() == {"ok": True, "mode": "reset", "updated": 1}
    assert pre_exam.calls == 0
    db_session.expire_all()
    assert db_session.query(BlackStudent).one().readiness == 100


def test_pre_exam_failure_does_not_fail_decay(db_session: Session, pre_exam):
    make_student(db_session, uid="a", readiness=10)
    pre_exam.error = RuntimeError("smtp down")

    response = client.get("/api/cron/readiness")

    assert response.status_code == 200
    assert response.json()["decreased"] == 1
    assert response.json()["pre_exam"] is None


def test_readiness_failure_returns_500(pre_exam, monkeypatch):
    def _fail(_db):
        raise ReadinessUpdateError("readiness_upsert_failed: boom")

    monkeypatch.setattr("app.routers.cron.decay_readiness", _fail)

    response = client.get("/api/cron/readiness")

    assert response.status_code == 500
    assert response.json() == {
        "error": "readiness_update_failed",
        "detail": "readiness_upsert_failed: boom",
    }


def test_test_pre_exam_action_sends_from_body():
    mailer = FakeMailer()
    app.dependency_overrides[get_pre_exam_service] = lambda: PreExamTipService(FakeGenerator(), mailer)
    try:
        response = client.post(
            "/api/cron/readiness",
            params={"action": "test-pre-exam"},
            json={"to": "ops@example.com", "subject": "Fisica"},
        )
    finally:
        app.dependency_overrides.pop(get_pre_exam_service, None)

    body = response.json()
    assert response.status_code == 200
    assert body["ok"] is True
    assert body["mode"] == "test"
    assert body["to"] == ["ops@example.com"]
    assert body["subject"].startswith("[TEST] ")
    assert len(mailer.sent) == 1


def test_test_pre_exam_action_reports_errors(db_session: Session):
    make_student(db_session, uid="a", readiness=10)
    app.dependency_overrides[get_pre_exam_service] = lambda: PreExamTipService(FakeGenerator(), FakeMailer())
    try:
        response = client.post(
            "/api/cron/readiness",
            params={"action": "test-pre-exam"},
            content="{broken",
            headers={"Content-Type": "application/json"},
        )
    finally:
        app.dependency_overrides.pop(get_pre_exam_service, None)

    assert response.json() == {"ok": False, "mode": "test", "error": "invalid_json"}
    db_session.expire_all()
    assert db_session.query(BlackStudent).one().readiness == 10
