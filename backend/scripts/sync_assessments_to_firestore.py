"""
Backfill: mirror every Black assessment and grade into the legacy Firestore
documents (users/{uid}/exams, users/{uid}/grades) read by older account
clients. Safe to rerun.

Run with:
  python backend/scripts/sync_assessments_to_firestore.py
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

script_path = Path(__file__).resolve()
backend_root = script_path.parents[1]
sys.path.append(str(backend_root))

from app.core.db import SessionLocal  # noqa: E402
from app.core.firebase import get_firestore_client  # noqa: E402
from app.services.mirror_service import MirrorService  # noqa: E402

logger = logging.getLogger("sync_assessments_to_firestore")


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    logger.info("Sync assessments -> Firestore exams")

    db = SessionLocal()
    try:
        stats = MirrorService(db, get_firestore_client()).run()
    except Exception:  # noqa: BLE001
        logger.exception("Sync failed")
        return 1
    finally:
        db.close()

    logger.info(
        "Assessments: processed %d, mirrored %d, missing uid %d, missing date %d",
        stats.assessments_processed,
        stats.assessments_mirrored,
        stats.assessments_skipped_no_uid,
        stats.assessments_missing_date,
    )
    logger.info(
        "Grades: processed %d, mirrored %d, missing uid %d, missing date %d",
        stats.grades_processed,
        stats.grades_mirrored,
        stats.grades_skipped_no_uid,
        stats.grades_missing_date,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
