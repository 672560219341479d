from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models import User
from app.schemas.payment import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PaymentDTO,
    PaymentStatusResponse,
)
from app.services import payments
from app.services.stripe_gateway import StripeGateway

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/checkout-session", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_authenticated_user),
    gateway: StripeGateway = Depends(deps.get_payment_gateway),
) -> CheckoutSessionResponse:
    result = await payments.create_checkout_session(
        db, payload.application_id, current_user, gateway=gateway
    )
    return CheckoutSessionResponse(
        session_id=result.session_id,
        url=result.url,
        payment_id=result.payment_id,
    )


@router.get("/{application_id}/status", response_model=PaymentStatusResponse)
async def payment_status(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_authenticated_user),
) -> PaymentStatusResponse:
    payment = await payments.get_payment_status(db, application_id, current_user)
    return PaymentStatusResponse(
        application_id=application_id,
        payment=PaymentDTO.model_validate(payment) if payment else None,
    )
