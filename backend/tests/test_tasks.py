from sqlalchemy.orm import Session

from app.core import queue
from app.models.brief import BlackStudentBrief
from app.tasks import refresh_brief_job
from conftest import make_student


class FakeQueue:
    def __init__(self):
        self.jobs = []

    def enqueue(self, func, *args, **kwargs):
        self.jobs.append((func, args, kwargs))
        return type("Job", (), {"id": "job-1"})()


def test_refresh_brief_job(db_session: Session):
    student = make_student(db_session, full_name="Anna Verdi")

    refresh_brief_job(str(student.id))

    db_session.expire_all()
    brief = db_session.get(BlackStudentBrief, student.id)
    assert brief.brief_md.startswith("Anna Verdi — Brief Black")


def test_enqueue_refresh_brief(monkeypatch):
    fake = FakeQueue()
    monkeypatch.setattr(queue, "_get_queue", lambda: fake)

    job_id = queue.enqueue_refresh_brief(student_id="0b5c8f0e-1f1e-4c55-9d2c-7b1f0c6a8e11")

    assert job_id == "job-1"
    func, args, kwargs = fake.jobs[0]
    assert func == "app.tasks.refresh_brief_job"
    assert args == ("0b5c8f0e-1f1e-4c55-9d2c-7b1f0c6a8e11",)
    assert kwargs["retry"].max == 1
