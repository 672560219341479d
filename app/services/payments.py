from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ExternalServiceError, ValidationError
from app.core.settings import settings
from app.models.application import Application
from app.models.payment import Payment
from app.models.user import User
from app.schemas.common import ApplicationStatus, PaymentStatus, TERMINAL_PAYMENT_STATUSES
from app.services import analytics, applications, notifications
from app.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

PRODUCT_NAME = "ETIAS Application Assistance"
PRODUCT_DESCRIPTION = (
    "Guided preparation of your ETIAS travel authorization application. "
    "The official EU fee is paid separately on the official portal."
)
TEST_EVENT_PREFIX = "evt_test_"

ACK_RECEIVED = {"received": True}
ACK_VERIFIED = {"verified": True}

_TERMINAL = frozenset(status.value for status in TERMINAL_PAYMENT_STATUSES)

# A failure event never overrides these.
_NO_FAILURE_FROM = _TERMINAL | {PaymentStatus.FAILED.value}


@dataclass(frozen=True, slots=True)
class CheckoutSessionResult:
    session_id: str
    url: str | None
    payment_id: UUID


def _now() -> datetime:
    return datetime.now(timezone.utc)


def correlation_metadata(application_id: Any, user_id: Any, payment_id: Any) -> dict[str, str]:
    """Metadata placed on both the checkout session and its payment intent."""
    return {
        "application_id": str(application_id),
        "user_id": str(user_id),
        "payment_id": str(payment_id),
    }


def build_checkout_params(application: Application, user: User, payment: Payment) -> dict[str, Any]:
    base_url = settings.public_app_url.rstrip("/")
    metadata = correlation_metadata(application.id, user.id, payment.id)
    params: dict[str, Any] = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": [
            {
                "price_data": {
                    "currency": payment.currency.lower(),
                    "product_data": {
                        "name": PRODUCT_NAME,
                        "description": PRODUCT_DESCRIPTION,
                    },
                    "unit_amount": payment.amount,
                },
                "quantity": 1,
            }
        ],
        "success_url": f"{base_url}/success/{application.id}?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{base_url}/payment/{application.id}?cancelled=true",
        "client_reference_id": str(user.id),
        "allow_promotion_codes": True,
        "billing_address_collection": "required",
        "metadata": {
            **metadata,
            "customer_email": user.email or "",
            "customer_name": user.name or "",
        },
        "payment_intent_data": {"metadata": metadata},
    }
    if user.email:
        params["customer_email"] = user.email
    return params


async def create_checkout_session(
    db: AsyncSession,
    application_id: UUID,
    user: User,
    *,
    gateway: StripeGateway,
) -> CheckoutSessionResult:
    application = await applications.get_owned_application(db, application_id, user)
    if applications.current_status(application).rank >= ApplicationStatus.PAYMENT_COMPLETED.rank:
        raise ValidationError(
            "Application has already been paid",
            details={"status": application.status},
        )

    now = _now()
    payment = Payment(
        application_id=application.id,
        user_id=user.id,
        amount=settings.service_fee_cents,
        currency=settings.service_fee_currency,
        status=PaymentStatus.PENDING.value,
        created_at=now,
        updated_at=now,
    )
    db.add(payment)
    await db.flush()
    applications.advance_status(application, ApplicationStatus.PAYMENT_PENDING)
    await db.commit()

    try:
        checkout = await gateway.create_checkout_session(
            build_checkout_params(application, user, payment)
        )
    except ExternalServiceError as exc:
        # Compensate so the attempt does not linger as pending.
        payment.status = PaymentStatus.FAILED.value
        payment.error_message = exc.message
        payment.updated_at = _now()
        await db.commit()
        logger.warning(
            "Checkout session failed for application %s payment %s",
            application.id,
            payment.id,
            extra={"event": "checkout_session_failed"},
        )
        raise

    payment.stripe_session_id = checkout.id
    payment.updated_at = _now()
    analytics.track_event(
        db,
        "checkout_session_created",
        user_id=user.id,
        event_data={
            "application_id": application.id,
            "payment_id": payment.id,
            "session_id": checkout.id,
        },
    )
    await db.commit()
    logger.info(
        "Checkout session %s created for application %s",
        checkout.id,
        application.id,
        extra={"event": "checkout_session_created"},
    )
    return CheckoutSessionResult(session_id=checkout.id, url=checkout.url, payment_id=payment.id)


async def get_payment_status(db: AsyncSession, application_id: UUID, user: User) -> Payment | None:
    application = await applications.get_owned_application(db, application_id, user)
    return await _latest_payment_for_application(db, application.id)


async def _latest_payment_for_application(db: AsyncSession, application_id: UUID) -> Payment | None:
    stmt = (
        select(Payment)
        .where(Payment.application_id == application_id)
        .order_by(Payment.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def _payment_by_intent(db: AsyncSession, intent_id: str) -> Payment | None:
    stmt = select(Payment).where(Payment.stripe_payment_intent_id == intent_id).limit(1)
    result = await db.execute(stmt)
    return result.scalars().first()


def _parse_uuid(value: Any) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        logger.warning("Ignoring malformed identifier in webhook metadata: %r", value)
        return None


def _mark_succeeded(payment: Payment, *, intent_id: str | None, now: datetime) -> bool:
    """Returns True only on the transition into ``succeeded``; terminal payments stay put."""
    if payment.status in _TERMINAL:
        if intent_id and not payment.stripe_payment_intent_id:
            payment.stripe_payment_intent_id = intent_id
        return False
    payment.status = PaymentStatus.SUCCEEDED.value
    payment.completed_at = now
    payment.updated_at = now
    payment.error_message = None
    if intent_id:
        payment.stripe_payment_intent_id = intent_id
    return True


async def _handle_checkout_completed(db: AsyncSession, session: dict[str, Any]) -> None:
    metadata = session.get("metadata") or {}
    application_id = _parse_uuid(metadata.get("application_id"))
    payment_id = _parse_uuid(metadata.get("payment_id"))
    intent_id = session.get("payment_intent")
    if isinstance(intent_id, dict):
        intent_id = intent_id.get("id")

    payment = await db.get(Payment, payment_id) if payment_id else None
    if payment is None and application_id is not None:
        payment = await _latest_payment_for_application(db, application_id)
    if payment is None:
        logger.error(
            "Checkout session %s has no resolvable payment (metadata=%s)",
            session.get("id"),
            metadata,
        )
        return

    application = await db.get(Application, payment.application_id)
    if application is None:
        logger.error("Payment %s references a missing application", payment.id)
        return

    now = _now()
    if payment.stripe_session_id is None and session.get("id"):
        payment.stripe_session_id = session.get("id")
    marked = _mark_succeeded(payment, intent_id=intent_id, now=now)
    if payment.status != PaymentStatus.SUCCEEDED.value:
        logger.warning(
            "Ignoring checkout completion for %s payment %s",
            payment.status,
            payment.id,
            extra={"event": "checkout.session.completed"},
        )
        return
    advanced = applications.advance_status(application, ApplicationStatus.READY_TO_SUBMIT)

    analytics.track_event(
        db,
        "payment_completed",
        user_id=payment.user_id,
        event_data={
            "application_id": application.id,
            "payment_id": payment.id,
            "payment_intent_id": intent_id,
            "replayed": not (marked or advanced),
        },
    )
    # The application may already sit at ready_to_submit through a client update.
    if marked or advanced:
        await _notify(db, notifications.send_payment_received, payment)
    logger.info(
        "Checkout completed for application %s (advanced=%s)",
        application.id,
        advanced,
        extra={"event": "checkout.session.completed"},
    )


async def _handle_intent_succeeded(db: AsyncSession, intent: dict[str, Any]) -> None:
    intent_id = intent.get("id")
    payment = await _payment_by_intent(db, intent_id) if intent_id else None
    if payment is None:
        payment_id = _parse_uuid((intent.get("metadata") or {}).get("payment_id"))
        payment = await db.get(Payment, payment_id) if payment_id else None
    if payment is None:
        logger.info("No payment found for intent %s", intent_id)
        return
    if _mark_succeeded(payment, intent_id=intent_id, now=_now()):
        logger.info("Payment %s marked succeeded from intent %s", payment.id, intent_id)


async def _handle_intent_failed(db: AsyncSession, intent: dict[str, Any]) -> None:
    intent_id = intent.get("id")
    payment = await _payment_by_intent(db, intent_id) if intent_id else None
    if payment is None:
        payment_id = _parse_uuid((intent.get("metadata") or {}).get("payment_id"))
        payment = await db.get(Payment, payment_id) if payment_id else None
    if payment is None:
        logger.info("No payment found for failed intent %s", intent_id)
        return
    if payment.status in _NO_FAILURE_FROM:
        return

    now = _now()
    payment.status = PaymentStatus.FAILED.value
    payment.updated_at = now
    if intent_id and not payment.stripe_payment_intent_id:
        payment.stripe_payment_intent_id = intent_id
    last_error = intent.get("last_payment_error") or {}
    payment.error_message = last_error.get("message") or "Payment failed"
    await _notify(db, notifications.send_payment_failed, payment)
    logger.info("Payment %s marked failed", payment.id, extra={"event": "payment_intent.payment_failed"})


async def _notify(
    db: AsyncSession,
    send: Callable[..., Awaitable[Any]],
    payment: Payment,
) -> None:
    try:
        user = await db.get(User, payment.user_id)
        await send(db, user=user, application_id=payment.application_id)
    except Exception:
        logger.exception("Notification for payment %s could not be created", payment.id)


EVENT_HANDLERS: dict[str, Callable[[AsyncSession, dict[str, Any]], Awaitable[None]]] = {
    "checkout.session.completed": _handle_checkout_completed,
    "payment_intent.succeeded": _handle_intent_succeeded,
    "payment_intent.payment_failed": _handle_intent_failed,
}


async def handle_webhook(
    db: AsyncSession,
    payload: bytes,
    signature: str | None,
    *,
    gateway: StripeGateway,
) -> dict[str, bool]:
    """Verify and apply one Stripe event.

    Only a signature failure raises. Everything after verification is
    acknowledged so the provider stops retrying.
    """
    gateway.verify_signature(payload, signature)

    try:
        event = json.loads(payload)
    except ValueError:
        logger.error("Verified webhook payload is not valid JSON")
        return ACK_RECEIVED
    if not isinstance(event, dict):
        logger.error("Verified webhook payload is not a JSON object")
        return ACK_RECEIVED

    event_id = str(event.get("id") or "")
    event_type = event.get("type")
    if event_id.startswith(TEST_EVENT_PREFIX):
        logger.info("Test webhook event %s acknowledged", event_id)
        return ACK_VERIFIED

    handler = EVENT_HANDLERS.get(event_type) if isinstance(event_type, str) else None
    if handler is None:
        logger.info("Unhandled webhook event type %s (%s)", event_type, event_id)
        return ACK_RECEIVED

    data = event.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        logger.error("Webhook event %s (%s) carries no data object", event_type, event_id)
        return ACK_RECEIVED
    try:
        await handler(db, obj)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Error processing webhook event %s (%s)", event_type, event_id)
    return ACK_RECEIVED
