"""Pydantic schemas for API request/response validation"""

from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator
from starquest_settlement.domain.models import (
    BatchResult,
    FamilySettlementOutcome,
    InterestBreakdownItem,
    SettlementRecord,
)


class InterestBreakdownSchema(BaseModel):
    """Interest contributed by one tier"""

    tier_order: int
    min_debt: int
    max_debt: Optional[int] = None
    debt_in_tier: int
    interest_rate: float
    interest_amount: int


class SettlementSchema(BaseModel):
    """One child's settlement snapshot"""

    settlement_id: str
    family_id: str
    child_id: str
    settlement_date: date
    balance_before: int
    debt_amount: int
    interest_calculated: int
    credit_limit_before: int
    credit_limit_after: int
    credit_limit_adjustment: int
    interest_breakdown: List[InterestBreakdownSchema]
    settled_at: str


class SettlementHistoryResponse(BaseModel):
    """Response for GET /v1/families/{family_id}/settlements"""

    family_id: str
    settlements: List[SettlementSchema]


class NotificationSchema(BaseModel):
    status: str
    recipient: Optional[str] = None
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


class FamilyOutcomeSchema(BaseModel):
    family_id: str
    family_name: str
    state: str
    settled_children: int
    skipped_children: List[str]
    total_interest: int
    errors: List[str]
    notification: Optional[NotificationSchema] = None


class SettlementBatchSchema(BaseModel):
    settlement_date: date
    processed: int
    skipped: int
    errors: List[str]
    families: List[FamilyOutcomeSchema]


class DailyJobsResults(BaseModel):
    settlement: SettlementBatchSchema


class DailyJobsResponse(BaseModel):
    """Response for GET|POST /v1/cron/daily-jobs"""

    success: bool
    timestamp: str
    results: DailyJobsResults


class InterestTierSchema(BaseModel):
    """One bracket; max_debt null means unlimited"""

    tier_order: int = Field(..., ge=1)
    min_debt: int = Field(..., ge=0)
    max_debt: Optional[int] = Field(None, ge=0)
    interest_rate: float = Field(..., ge=0, le=1, description="Fraction, e.g. 0.05 = 5%")

    @model_validator(mode="after")
    def check_bounds(self) -> "InterestTierSchema":
        if self.max_debt is not None and self.max_debt < self.min_debt:
            raise ValueError("max_debt must be >= min_debt")
        return self


class InterestTierTableRequest(BaseModel):
    """Request body for PUT /v1/families/{family_id}/interest-tiers"""

    tiers: List[InterestTierSchema]


class InterestTierTableResponse(BaseModel):
    family_id: str
    tiers: List[InterestTierSchema]


class InterestPreviewResponse(BaseModel):
    family_id: str
    debt: int
    total_interest: int
    breakdown: List[InterestBreakdownSchema]


class CreditSummaryResponse(BaseModel):
    """Response for GET /v1/families/{family_id}/children/{child_id}/credit"""

    family_id: str
    child_id: str
    credit_enabled: bool
    credit_limit: int
    original_credit_limit: int
    balance: int
    credit_used: int
    available_credit: int
    spendable_stars: int


def breakdown_schema(items: List[InterestBreakdownItem]) -> List[InterestBreakdownSchema]:
    return [
        InterestBreakdownSchema(
            tier_order=item.tier_order,
            min_debt=item.min_debt,
            max_debt=item.max_debt,
            debt_in_tier=item.debt_in_tier,
            interest_rate=float(item.rate),
            interest_amount=item.interest_amount,
        )
        for item in items
    ]


def settlement_schema(record: SettlementRecord) -> SettlementSchema:
    return SettlementSchema(
        settlement_id=record.id,
        family_id=record.family_id,
        child_id=record.child_id,
        settlement_date=record.settlement_date,
        balance_before=record.balance_before,
        debt_amount=record.debt_amount,
        interest_calculated=record.interest_calculated,
        credit_limit_before=record.credit_limit_before,
        credit_limit_after=record.credit_limit_after,
        credit_limit_adjustment=record.credit_limit_adjustment,
        interest_breakdown=breakdown_schema(record.interest_breakdown),
        settled_at=record.settled_at.isoformat(),
    )


def family_outcome_schema(outcome: FamilySettlementOutcome) -> FamilyOutcomeSchema:
    notification = None
    if outcome.notification:
        notification = NotificationSchema(
            status=outcome.notification.status.value,
            recipient=outcome.notification.recipient,
            skipped_reason=outcome.notification.skipped_reason,
            error=outcome.notification.error,
        )
    return FamilyOutcomeSchema(
        family_id=outcome.family_id,
        family_name=outcome.family_name,
        state=outcome.state.value,
        settled_children=len(outcome.records),
        skipped_children=outcome.skipped_children,
        total_interest=sum(record.interest_calculated for record in outcome.records),
        errors=outcome.errors,
        notification=notification,
    )


def batch_schema(result: BatchResult) -> SettlementBatchSchema:
    return SettlementBatchSchema(
        settlement_date=result.settlement_date,
        processed=result.processed,
        skipped=result.skipped,
        errors=result.errors,
        families=[family_outcome_schema(outcome) for outcome in result.families],
    )
