from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.eligibility_check import EligibilityCheck
from app.services import analytics

logger = logging.getLogger(__name__)

ELIGIBLE_NATIONALITIES: tuple[str, ...] = (
    "Albania", "Andorra", "Antigua and Barbuda", "Argentina", "Australia",
    "Bahamas", "Barbados", "Bosnia and Herzegovina", "Brazil", "Brunei",
    "Canada", "Chile", "Colombia", "Costa Rica", "Dominica",
    "El Salvador", "Georgia", "Grenada", "Guatemala", "Honduras",
    "Hong Kong", "Israel", "Japan", "Kiribati", "Macao",
    "Malaysia", "Marshall Islands", "Mauritius", "Mexico", "Micronesia",
    "Moldova", "Monaco", "Montenegro", "New Zealand", "Nicaragua",
    "North Macedonia", "Palau", "Panama", "Paraguay", "Peru",
    "Saint Kitts and Nevis", "Saint Lucia", "Saint Vincent and the Grenadines",
    "Samoa", "San Marino", "Serbia", "Seychelles", "Singapore",
    "Solomon Islands", "South Korea", "Taiwan", "Timor-Leste", "Tonga",
    "Trinidad and Tobago", "Tuvalu", "Ukraine", "United Arab Emirates",
    "United Kingdom", "United States", "Uruguay", "Vanuatu", "Vatican City", "Venezuela",
)
_ELIGIBLE_SET = frozenset(ELIGIBLE_NATIONALITIES)

SCHENGEN_COUNTRIES: tuple[str, ...] = (
    "Austria", "Belgium", "Bulgaria", "Croatia", "Cyprus", "Czech Republic",
    "Denmark", "Estonia", "Finland", "France", "Germany", "Greece",
    "Hungary", "Iceland", "Italy", "Latvia", "Liechtenstein", "Lithuania",
    "Luxembourg", "Malta", "Netherlands", "Norway", "Poland", "Portugal",
    "Romania", "Slovakia", "Slovenia", "Spain", "Sweden", "Switzerland",
)

TRAVEL_PURPOSES: tuple[tuple[str, str], ...] = (
    ("tourism", "Tourism / Leisure"),
    ("business", "Business"),
    ("transit", "Transit"),
    ("medical", "Medical Treatment"),
    ("study_short", "Short-term Study (up to 90 days)"),
    ("other", "Other"),
)

NEXT_STEPS_ELIGIBLE = "You can proceed with your ETIAS application preparation."
NEXT_STEPS_INELIGIBLE = "Please check the visa requirements for your nationality."


@dataclass(frozen=True, slots=True)
class EligibilityDecision:
    is_eligible: bool
    reason: str
    requires_visa: bool
    next_steps: str


def is_eligible_nationality(nationality: str) -> bool:
    # Exact, case-sensitive membership; unlisted spellings are never inferred.
    return nationality in _ELIGIBLE_SET


def evaluate(
    nationality: str,
    has_valid_passport: bool,
    purpose: str | None = None,
) -> EligibilityDecision:
    """Decide ETIAS eligibility. The first failing check determines the outcome.

    ``purpose`` is accepted for record keeping and does not affect the decision.
    """
    if not is_eligible_nationality(nationality):
        return EligibilityDecision(
            is_eligible=False,
            reason=(
                f"Citizens of {nationality} do not require ETIAS authorization. Your country may "
                "require a Schengen visa instead, or you may be an EU/EEA citizen who does not "
                "need travel authorization."
            ),
            requires_visa=True,
            next_steps=NEXT_STEPS_INELIGIBLE,
        )
    if not has_valid_passport:
        return EligibilityDecision(
            is_eligible=False,
            reason=(
                "You need a valid passport to apply for ETIAS. Please ensure your passport is "
                "valid for at least 3 months beyond your planned stay."
            ),
            requires_visa=False,
            next_steps=NEXT_STEPS_INELIGIBLE,
        )
    return EligibilityDecision(
        is_eligible=True,
        reason=(
            f"As a citizen of {nationality}, you are eligible to apply for ETIAS authorization "
            "for travel to the Schengen Area."
        ),
        requires_visa=False,
        next_steps=NEXT_STEPS_ELIGIBLE,
    )


async def check_eligibility(
    db: AsyncSession,
    *,
    nationality: str,
    has_valid_passport: bool,
    travel_purpose: str | None = None,
    user_id: UUID | None = None,
    session_id: str | None = None,
) -> EligibilityDecision:
    decision = evaluate(nationality, has_valid_passport, travel_purpose)
    db.add(
        EligibilityCheck(
            user_id=user_id,
            session_id=session_id,
            nationality=nationality,
            has_valid_passport=has_valid_passport,
            travel_purpose=travel_purpose,
            is_eligible=decision.is_eligible,
            eligibility_reason=decision.reason,
        )
    )
    analytics.track_event(
        db,
        "eligibility_check",
        user_id=user_id,
        session_id=session_id,
        event_data={"nationality": nationality, "is_eligible": decision.is_eligible},
    )
    await db.commit()
    logger.info(
        "Eligibility check recorded",
        extra={"event": "eligibility_check"},
    )
    return decision
