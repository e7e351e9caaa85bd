from fastapi import APIRouter, Depends, status

from app.core.deps import get_current_user, get_premium_access
from app.core.errors import ApiError
from app.core.firebase import AuthUser
from app.services.premium_service import PremiumAccessService, SubscriptionCheckError

router = APIRouter(prefix="/me", tags=["account"])


@router.get("/subscription")
def get_subscription(
    current_user: AuthUser = Depends(get_current_user),
    premium_access: PremiumAccessService = Depends(get_premium_access),
):
    try:
        premium = premium_access.is_premium(current_user.email)
    except SubscriptionCheckError:
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "subscription_check_failed")
    return {"premium": premium}
