from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models import User
from app.schemas.eligibility import (
    EligibilityCheckRequest,
    EligibilityCheckResponse,
    EligibilityReferenceData,
    TravelPurposeOption,
)
from app.services import eligibility

router = APIRouter(prefix="/eligibility", tags=["eligibility"])


@router.post("/check", response_model=EligibilityCheckResponse)
async def check_eligibility(
    payload: EligibilityCheckRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(deps.get_optional_user),
) -> EligibilityCheckResponse:
    decision = await eligibility.check_eligibility(
        db,
        nationality=payload.nationality,
        has_valid_passport=payload.has_valid_passport,
        travel_purpose=payload.travel_purpose,
        user_id=current_user.id if current_user else None,
        session_id=payload.session_id,
    )
    return EligibilityCheckResponse(
        is_eligible=decision.is_eligible,
        reason=decision.reason,
        requires_visa=decision.requires_visa,
        next_steps=decision.next_steps,
    )


@router.get("/countries", response_model=list[str])
async def eligible_countries() -> list[str]:
    return list(eligibility.ELIGIBLE_NATIONALITIES)


@router.get("/reference", response_model=EligibilityReferenceData)
async def reference_data() -> EligibilityReferenceData:
    return EligibilityReferenceData(
        eligible_countries=list(eligibility.ELIGIBLE_NATIONALITIES),
        schengen_countries=list(eligibility.SCHENGEN_COUNTRIES),
        travel_purposes=[
            TravelPurposeOption(value=value, label=label)
            for value, label in eligibility.TRAVEL_PURPOSES
        ],
    )
