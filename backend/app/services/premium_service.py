from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from types import ModuleType
from typing import Any

import stripe

from app.core.cache import TTLCache
from app.core.config import settings

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"active", "trialing", "past_due"})


class SubscriptionCheckError(RuntimeError):
    pass


def normalize_email(email: str | None) -> str | None:
    normalized = (email or "").strip().lower()
    return normalized or None


def parse_overrides(raw: str | None) -> frozenset[str]:
    return frozenset(
        email for email in (normalize_email(item) for item in (raw or "").split(",")) if email
    )


def _parse_expiry(raw: str) -> datetime:
    expires_at = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at


def parse_temp_access(raw: str | None) -> dict[str, datetime]:
    """Parse ``email=ISO-expiry`` pairs separated by commas; bad entries are logged and skipped."""
    grants: dict[str, datetime] = {}
    for item in (raw or "").split(","):
        if not item.strip():
            continue
        email, _, expiry = item.partition("=")
        normalized = normalize_email(email)
        try:
            expires_at = _parse_expiry(expiry)
        except ValueError:
            logger.warning("Ignoring malformed temporary access entry %r", item.strip())
            continue
        if normalized:
            grants[normalized] = expires_at
    return grants


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PremiumAccessService:
    """
    Answers whether an email holds an active Black subscription on Stripe.

    Results are memoized in the injected cache: positive answers for
    ``ttl_true`` seconds, negative answers for the shorter ``ttl_false``.
    """

    def __init__(
        self,
        cache: TTLCache,
        *,
        api_key: str | None,
        overrides: frozenset[str] = frozenset(),
        temp_access: dict[str, datetime] | None = None,
        ttl_true: float = 600,
        ttl_false: float = 120,
        stripe_api: ModuleType | Any = stripe,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.cache = cache
        self.api_key = api_key
        self.overrides = overrides
        self.temp_access = temp_access or {}
        self.ttl_true = ttl_true
        self.ttl_false = ttl_false
        self.stripe = stripe_api
        self._now = now

    def has_temp_access(self, email: str) -> bool:
        expires_at = self.temp_access.get(email)
        return expires_at is not None and self._now() <= expires_at

    def _remember(self, email: str, value: bool) -> bool:
        self.cache.set(email, value, self.ttl_true if value else self.ttl_false)
        return value

    def _lookup(self, email: str) -> bool:
        customers = self.stripe.Customer.list(email=email, limit=100, api_key=self.api_key)
        for customer in customers.data:
            subscriptions = self.stripe.Subscription.list(
                customer=customer.id, status="all", limit=100, api_key=self.api_key
            )
            if any(sub.status in ACTIVE_STATUSES for sub in subscriptions.data):
                return True
        return False

    def is_premium(self, email: str | None) -> bool:
        normalized = normalize_email(email)
        if not normalized:
            return False
        if normalized in self.overrides or self.has_temp_access(normalized):
            return True

        cached = self.cache.get(normalized)
        if cached is not None:
            return cached

        if not self.api_key:
            raise SubscriptionCheckError("missing_stripe_secret_key")
        try:
            value = self._lookup(normalized)
        except stripe.StripeError as exc:
            logger.exception("Stripe subscription lookup failed")
            raise SubscriptionCheckError(str(exc)) from exc
        return self._remember(normalized, value)


def build_premium_access_service(cache: TTLCache | None = None) -> PremiumAccessService:
    return PremiumAccessService(
        cache or TTLCache(),
        api_key=settings.STRIPE_SECRET_KEY,
        overrides=parse_overrides(settings.SUB_OVERRIDES),
        temp_access=parse_temp_access(settings.SUB_TEMP_ACCESS),
        ttl_true=settings.PREMIUM_TTL_TRUE_SECONDS,
        ttl_false=settings.PREMIUM_TTL_FALSE_SECONDS,
    )
