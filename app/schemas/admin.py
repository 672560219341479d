from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


class ApplicationStats(BaseModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)


class PaymentStats(BaseModel):
    succeeded: int = 0
    total_amount: int = 0
    currency: str = "EUR"
    by_status: dict[str, int] = Field(default_factory=dict)


class EligibilityStats(BaseModel):
    total: int = 0
    eligible: int = 0
    ineligible: int = 0


class ConversionStats(BaseModel):
    eligibility_to_application: float = 0.0
    application_to_payment: float = 0.0


class AdminStatsResponse(BaseModel):
    users: int = 0
    applications: ApplicationStats
    payments: PaymentStats
    eligibility: EligibilityStats
    conversion: ConversionStats


class DailyStat(BaseModel):
    date: date
    count: int


class DailyStatsResponse(BaseModel):
    days: int
    items: list[DailyStat]


class AnalyticsSummary(BaseModel):
    start: datetime | None = None
    end: datetime | None = None
    total_events: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
