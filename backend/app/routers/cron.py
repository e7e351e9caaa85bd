import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.deps import get_pre_exam_service, require_cron_secret
from app.services.pre_exam_service import PreExamTipService
from app.services.readiness_service import ReadinessUpdateError, decay_readiness, reset_readiness

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)])


async def _raw_body(request: Request) -> bytes:
    return await request.body()


def _run_readiness(action: str | None, db: Session, pre_exam: PreExamTipService, body: bytes):
    if action == "test-pre-exam":
        result = pre_exam.run_test(body)
        return {"ok": "error" not in result, "mode": "test", **result}

    try:
        if action == "reset":
            return {"ok": True, "mode": "reset", **reset_readiness(db)}
        decay = decay_readiness(db)
    except ReadinessUpdateError as exc:
        logger.exception("Readiness cron failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "readiness_update_failed", "detail": str(exc)},
        )

    pre_exam_result = None
    try:
        pre_exam_result = pre_exam.run(db)
    except Exception:  # noqa: BLE001
        db.rollback()
        logger.exception("Pre-exam tips failed")

    return {"ok": True, "mode": "decay", **decay, "pre_exam": pre_exam_result}


@router.get("/readiness", operation_id="run_readiness_get")
def run_readiness_get(
    action: str | None = None,
    db: Session = Depends(get_db),
    pre_exam: PreExamTipService = Depends(get_pre_exam_service),
    body: bytes = Depends(_raw_body),
):
    """Daily readiness decay (default) or full reset with ``action=reset``."""
    return _run_readiness(action, db, pre_exam, body)


@router.post("/readiness", operation_id="run_readiness_post")
def run_readiness_post(
    action: str | None = None,
    db: Session = Depends(get_db),
    pre_exam: PreExamTipService = Depends(get_pre_exam_service),
    body: bytes = Depends(_raw_body),
):
    """Same as GET; ``action=test-pre-exam`` sends a test tip email from the JSON body."""
    return _run_readiness(action, db, pre_exam, body)
