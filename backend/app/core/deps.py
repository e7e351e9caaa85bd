import logging
import secrets

from fastapi import Request

from app.core import firebase
from app.core.config import settings
from app.core.errors import unauthorized
from app.core.firebase import AuthUser
from app.services.pre_exam_service import PreExamTipService, default_pre_exam_service
from app.services.premium_service import PremiumAccessService

logger = logging.getLogger(__name__)


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    if not header.startswith("Bearer "):
        return None
    token = header[len("Bearer ") :].strip()
    return token or None


def get_current_user(request: Request) -> AuthUser:
    token = _bearer_token(request)
    if not token:
        raise unauthorized()
    user = firebase.verify_id_token(token)
    if user is None:
        raise unauthorized()
    return user


def is_cron_authorized(request: Request) -> bool:
    secret = settings.cron_secret
    if not secret:
        if not settings.is_production:
            logger.warning(
                "INSECURE MODE: no cron secret configured outside production, "
                "accepting unauthenticated cron request from %s",
                request.client.host if request.client else "unknown",
            )
            return True
        return "x-vercel-cron" in request.headers

    provided = (
        _bearer_token(request)
        or request.headers.get("x-cron-secret")
        or request.query_params.get("secret")
    )
    if not provided:
        return False
    return secrets.compare_digest(provided.encode(), secret.encode())


def require_cron_secret(request: Request) -> None:
    if not is_cron_authorized(request):
        raise unauthorized()


def get_premium_access(request: Request) -> PremiumAccessService:
    return request.app.state.premium_access


def get_pre_exam_service() -> PreExamTipService:
    return default_pre_exam_service()
