from datetime import datetime

import pytest
from sqlalchemy import Update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.models.student import BlackStudent
from app.services.readiness_service import (
    ReadinessUpdateError,
    chunked,
    decay_readiness,
    reset_readiness,
)
from conftest import make_student

STAMP = datetime(2025, 3, 1, 4, 0)


def _readiness(db: Session) -> dict[str, int]:
    db.expire_all()
    return {row.user_id: row.readiness for row in db.query(BlackStudent).all()}


def test_chunked_splits_rows():
    assert [list(part) for part in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
    with pytest.raises(ValueError):
        list(chunked([1], 0))


def test_decay_floors_at_zero(db_session: Session):
    make_student(db_session, uid="a", readiness=50)
    make_student(db_session, uid="b", readiness=1)
    make_student(db_session, uid="c", readiness=0)

    result = decay_readiness(db_session, stamp=STAMP)

    assert result == {"processed": 3, "decreased": 2}
    assert _readiness(db_session) == {"a": 49, "b": 0, "c": 0}


def test_decay_stamps_updated_rows_only(db_session: Session):
    make_student(db_session, uid="a", readiness=10)
    make_student(db_session, uid="c", readiness=0)

    decay_readiness(db_session, stamp=STAMP)

    db_session.expire_all()
    stamps = {row.user_id: row.updated_at for row in db_session.query(BlackStudent).all()}
    assert stamps == {"a": STAMP, "c": None}


def test_decay_with_no_students(db_session: Session):
    assert decay_readiness(db_session) == {"processed": 0, "decreased": 0}


def test_reset_is_idempotent(db_session: Session):
    make_student(db_session, uid="a", readiness=3)
    make_student(db_session, uid="b", readiness=100)

    assert reset_readiness(db_session, stamp=STAMP) == {"updated": 2}
    first = _readiness(db_session)
    assert reset_readiness(db_session, stamp=STAMP) == {"updated": 2}

    assert first == _readiness(db_session) == {"a": 100, "b": 100}


def test_small_chunks_cover_every_student(db_session: Session):
    for idx in range(7):
        make_student(db_session, uid=f"s{idx}", readiness=20 + idx)

    result = decay_readiness(db_session, stamp=STAMP, chunk_size=3)

    assert result == {"processed": 7, "decreased": 7}
    assert _readiness(db_session) == {f"s{idx}": 19 + idx for idx in range(7)}


def test_failed_chunk_rolls_back_whole_job(db_session: Session, monkeypatch):
    for idx in range(3):
        make_student(db_session, uid=f"s{idx}", readiness=40)

    real_execute = db_session.execute
    updates = {"count": 0}

    def flaky_execute(statement, *args, **kwargs):
        if isinstance(statement, Update):
            updates["count"] += 1
            if updates["count"] == 2:
                raise OperationalError("UPDATE black_students", {}, Exception("connection lost"))
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", flaky_execute)

    with pytest.raises(ReadinessUpdateError, match="readiness_upsert_failed"):
        decay_readiness(db_session, stamp=STAMP, chunk_size=1)

    assert _readiness(db_session) == {"s0": 40, "s1": 40, "s2": 40}
