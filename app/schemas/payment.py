from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.schemas.common import PaymentStatus


class CheckoutSessionRequest(BaseModel):
    application_id: UUID


class CheckoutSessionResponse(BaseModel):
    session_id: str
    url: str | None = None
    payment_id: UUID


class PaymentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    status: PaymentStatus
    amount: int
    currency: str
    stripe_session_id: str | None = None
    stripe_payment_intent_id: str | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


class PaymentStatusResponse(BaseModel):
    application_id: UUID
    payment: PaymentDTO | None = None
