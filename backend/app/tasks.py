from __future__ import annotations

import logging
import uuid

from app.core.db import SessionLocal
from app.services.brief_service import brief_service

logger = logging.getLogger(__name__)


def refresh_brief_job(student_id: str) -> None:
    student_uuid = uuid.UUID(student_id)
    db = SessionLocal()
    try:
        brief_service.refresh(db, student_uuid)
    except Exception:  # noqa: BLE001
        db.rollback()
        logger.exception("Failed to refresh brief for student %s", student_id)
        raise
    finally:
        db.close()
