from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache, partial
from typing import Any

import stripe
from starlette.concurrency import run_in_threadpool

from app.core.errors import ExternalServiceError, SignatureInvalid
from app.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HostedCheckout:
    id: str
    url: str | None


class StripeGateway:
    """Thin wrapper over the Stripe SDK used by payment reconciliation."""

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        *,
        tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE,
    ) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    async def create_checkout_session(self, params: dict[str, Any]) -> HostedCheckout:
        if not self.secret_key:
            raise ExternalServiceError("Payment provider is not configured")
        create = partial(stripe.checkout.Session.create, api_key=self.secret_key, **params)
        try:
            # The SDK is synchronous; keep it off the event loop.
            session = await run_in_threadpool(create)
        except stripe.StripeError as exc:
            logger.warning("Stripe checkout session creation failed: %s", exc.user_message or exc)
            raise ExternalServiceError(details={"provider": "stripe"}) from exc
        return HostedCheckout(id=session.id, url=session.url)

    def verify_signature(self, payload: bytes, signature: str | None) -> None:
        """Raise ``SignatureInvalid`` unless ``payload`` carries a valid Stripe signature."""
        if not self.webhook_secret or not signature:
            raise SignatureInvalid("Missing signature or webhook secret")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, self.webhook_secret, self.tolerance
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            logger.warning("Webhook signature verification failed: %s", exc)
            raise SignatureInvalid() from exc


@lru_cache(maxsize=1)
def get_stripe_gateway() -> StripeGateway:
    return StripeGateway(settings.stripe_secret_key, settings.stripe_webhook_secret)
