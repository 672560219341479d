from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.limiter import limiter
from app.db.session import get_db
from app.services import payments
from app.services.stripe_gateway import StripeGateway

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe", summary="Stripe event receiver")
@limiter.exempt
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(deps.get_payment_gateway),
) -> dict:
    # Signature verification needs the raw bytes, not a parsed model.
    payload = await request.body()
    return await payments.handle_webhook(db, payload, stripe_signature, gateway=gateway)
