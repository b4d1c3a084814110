"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class ReportType(str, Enum):
    SETTLEMENT = "settlement"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class AuditStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"
    # Some children failed; the next run for the period reopens the claim
    INCOMPLETE = "incomplete"


class FamilyState(str, Enum):
    """Lifecycle of one family within one settlement period"""

    NOT_DUE = "not_due"
    DUE = "due"
    SKIPPED = "skipped"
    SETTLING = "settling"
    SETTLED = "settled"
    NOTIFIED = "notified"
    NOTIFICATION_FAILED = "notification_failed"
    NOTIFICATION_SKIPPED = "notification_skipped"
    SETTLEMENT_FAILED = "settlement_failed"


@dataclass(frozen=True)
class InterestTier:
    """One debt bracket; max_debt of None means unlimited"""

    order: int
    min_debt: int
    max_debt: Optional[int]
    rate: Decimal

    @property
    def unlimited(self) -> bool:
        return self.max_debt is None


@dataclass(frozen=True)
class InterestBreakdownItem:
    """Interest contributed by a single tier"""

    tier_order: int
    min_debt: int
    max_debt: Optional[int]
    debt_in_tier: int
    rate: Decimal
    interest_amount: int


@dataclass(frozen=True)
class InterestCalculation:
    total_interest: int
    breakdown: List[InterestBreakdownItem] = field(default_factory=list)


@dataclass
class CreditSettings:
    """Credit line of one child"""

    family_id: str
    child_id: str
    enabled: bool
    credit_limit: int
    original_credit_limit: int
    max_credit_limit: Optional[int] = None


@dataclass(frozen=True)
class SettlementRecord:
    """Immutable snapshot of one child's settlement for one period"""

    id: str
    family_id: str
    child_id: str
    settlement_date: date
    debt_amount: int
    interest_calculated: int
    balance_before: int
    credit_limit_before: int
    credit_limit_after: int
    credit_limit_adjustment: int
    interest_breakdown: List[InterestBreakdownItem]
    settled_at: datetime

    @property
    def is_noop(self) -> bool:
        """No interest charged and no limit change"""
        return self.interest_calculated == 0 and self.credit_limit_adjustment == 0


@dataclass(frozen=True)
class Family:
    id: str
    name: str
    settlement_day: int  # 0 = last day of month
    parent_email: Optional[str] = None


@dataclass(frozen=True)
class ReportPreferences:
    family_id: str
    settlement_email_enabled: bool = True
    report_email: Optional[str] = None


@dataclass(frozen=True)
class Child:
    child_id: str
    name: Optional[str] = None


@dataclass
class AuditEntry:
    family_id: str
    report_type: ReportType
    period_start: date
    period_end: date
    status: AuditStatus
    recipient: Optional[str] = None
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single notification send"""

    success: bool
    error: Optional[str] = None


@dataclass
class NotificationOutcome:
    status: AuditStatus
    recipient: Optional[str] = None
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


@dataclass
class FamilySettlementOutcome:
    """Result of settling one family within a batch"""

    family_id: str
    family_name: str
    state: FamilyState
    records: List[SettlementRecord] = field(default_factory=list)
    skipped_children: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    notification: Optional[NotificationOutcome] = None


@dataclass
class BatchResult:
    """Aggregated outcome of one orchestrator run"""

    settlement_date: date
    processed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    families: List[FamilySettlementOutcome] = field(default_factory=list)
