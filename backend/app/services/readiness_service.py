"""
Readiness batch operations over every Black student.

Writes go through ORM bulk updates by primary key, ``CHUNK_SIZE`` rows per
statement. The whole job runs in one transaction: a failing chunk rolls back
every chunk before it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.student import BlackStudent

logger = logging.getLogger(__name__)

CHUNK_SIZE = 500
READINESS_MAX = 100
READINESS_MIN = 0

T = TypeVar("T")


class ReadinessUpdateError(RuntimeError):
    pass


def chunked(rows: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


def _apply_chunks(db: Session, rows: list[dict[str, Any]], chunk_size: int | None = None) -> None:
    size = chunk_size or settings.READINESS_CHUNK_SIZE or CHUNK_SIZE
    try:
        for part in chunked(rows, size):
            db.execute(update(BlackStudent), list(part))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise ReadinessUpdateError(f"readiness_upsert_failed: {exc}") from exc


def reset_readiness(
    db: Session, *, stamp: datetime | None = None, chunk_size: int | None = None
) -> dict[str, int]:
    stamp = stamp or datetime.utcnow()
    try:
        student_ids = [row.id for row in db.query(BlackStudent.id).all()]
    except SQLAlchemyError as exc:
        db.rollback()
        raise ReadinessUpdateError(f"readiness_reset_fetch_failed: {exc}") from exc
    if not student_ids:
        return {"updated": 0}

    updates = [
        {"id": student_id, "readiness": READINESS_MAX, "updated_at": stamp}
        for student_id in student_ids
    ]
    _apply_chunks(db, updates, chunk_size)
    logger.info("Readiness reset for %d students", len(updates))
    return {"updated": len(updates)}


def decay_readiness(
    db: Session, *, stamp: datetime | None = None, chunk_size: int | None = None
) -> dict[str, int]:
    stamp = stamp or datetime.utcnow()
    try:
        rows = db.query(BlackStudent.id, BlackStudent.readiness).all()
    except SQLAlchemyError as exc:
        db.rollback()
        raise ReadinessUpdateError(f"readiness_decay_fetch_failed: {exc}") from exc
    if not rows:
        return {"processed": 0, "decreased": 0}

    updates = []
    for row in rows:
        current = row.readiness or 0
        if current <= READINESS_MIN:
            continue
        updates.append(
            {
                "id": row.id,
                "readiness": max(READINESS_MIN, current - 1),
                "updated_at": stamp,
            }
        )
    if updates:
        _apply_chunks(db, updates, chunk_size)
    logger.info("Readiness decay: processed=%d decreased=%d", len(rows), len(updates))
    return {"processed": len(rows), "decreased": len(updates)}
