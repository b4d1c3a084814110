"""Data access layer: ORM rows in, typed domain entities out"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starquest_settlement.infrastructure.database.models import (
    FamilyRow,
    ReportPreferencesRow,
    InterestTierRow,
    ChildCreditSettingsRow,
    CreditSettlementRow,
    ReportHistoryRow,
)
from starquest_settlement.domain.models import (
    AuditEntry,
    AuditStatus,
    CreditSettings,
    Family,
    InterestBreakdownItem,
    InterestTier,
    ReportPreferences,
    ReportType,
    SettlementRecord,
)
from starquest_settlement.domain.exceptions import AlreadySettledError, DataAccessError
from starquest_settlement.domain.interest import DEFAULT_INTEREST_TIERS
from starquest_settlement.domain.schedule import validate_settlement_day


def breakdown_to_json(items: Sequence[InterestBreakdownItem]) -> List[Dict[str, Any]]:
    return [
        {
            "tier_order": item.tier_order,
            "min_debt": item.min_debt,
            "max_debt": item.max_debt,
            "debt_in_tier": item.debt_in_tier,
            "interest_rate": float(item.rate),
            "interest_amount": item.interest_amount,
        }
        for item in items
    ]


def breakdown_from_json(data: Optional[List[Dict[str, Any]]]) -> List[InterestBreakdownItem]:
    return [
        InterestBreakdownItem(
            tier_order=int(item["tier_order"]),
            min_debt=int(item["min_debt"]),
            max_debt=None if item.get("max_debt") is None else int(item["max_debt"]),
            debt_in_tier=int(item["debt_in_tier"]),
            rate=Decimal(str(item["interest_rate"])),
            interest_amount=int(item["interest_amount"]),
        )
        for item in (data or [])
    ]


class FamilyRepository:
    """Repository for families and their report preferences"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_domain(row: FamilyRow) -> Family:
        return Family(
            id=row.id,
            name=row.name,
            settlement_day=validate_settlement_day(row.settlement_day),
            parent_email=row.parent_email,
        )

    def list_due(self, settlement_days: Sequence[int]) -> List[Family]:
        """
        Families whose settlement day is in settlement_days.

        Raises:
            DataAccessError: If the query fails; never returns [] on failure
        """
        try:
            rows = (
                self.db.query(FamilyRow)
                .filter(FamilyRow.settlement_day.in_(list(settlement_days)))
                .order_by(FamilyRow.id)
                .all()
            )
        except SQLAlchemyError as e:
            raise DataAccessError(f"Failed to fetch families: {e}") from e
        return [self._to_domain(row) for row in rows]

    def get(self, family_id: str) -> Optional[Family]:
        row = self.db.get(FamilyRow, family_id)
        return self._to_domain(row) if row else None

    def get_preferences(self, family_id: str) -> Optional[ReportPreferences]:
        try:
            row = self.db.get(ReportPreferencesRow, family_id)
        except SQLAlchemyError as e:
            raise DataAccessError(f"Failed to fetch report preferences: {e}") from e
        if row is None:
            return None
        return ReportPreferences(
            family_id=row.family_id,
            settlement_email_enabled=row.settlement_email_enabled,
            report_email=row.report_email,
        )


class InterestTierRepository:
    """Repository for family interest tier tables"""

    def __init__(self, db: Session):
        self.db = db

    def list_for_family(self, family_id: str) -> List[InterestTier]:
        try:
            rows = (
                self.db.query(InterestTierRow)
                .filter(InterestTierRow.family_id == family_id)
                .order_by(InterestTierRow.tier_order)
                .all()
            )
        except SQLAlchemyError as e:
            raise DataAccessError(f"Failed to fetch interest tiers: {e}") from e

        return [
            InterestTier(
                order=row.tier_order,
                min_debt=row.min_debt,
                max_debt=row.max_debt,
                rate=Decimal(str(row.interest_rate)),
            )
            for row in rows
        ]

    def replace(self, family_id: str, tiers: Sequence[InterestTier]) -> List[InterestTier]:
        """Swap the whole table; caller validates first"""
        self.db.query(InterestTierRow).filter(InterestTierRow.family_id == family_id).delete()
        for tier in tiers:
            self.db.add(
                InterestTierRow(
                    family_id=family_id,
                    tier_order=tier.order,
                    min_debt=tier.min_debt,
                    max_debt=tier.max_debt,
                    interest_rate=tier.rate,
                )
            )
        self.db.flush()
        return self.list_for_family(family_id)

    def initialize_defaults(self, family_id: str) -> List[InterestTier]:
        """Install the default table unless the family already has one"""
        existing = self.list_for_family(family_id)
        if existing:
            return existing
        return self.replace(family_id, DEFAULT_INTEREST_TIERS)


class CreditSettingsRepository:
    """Repository for child credit lines"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, family_id: str, child_id: str, for_update: bool = False) -> Optional[CreditSettings]:
        """Fetch a child's credit settings, row-locked when for_update"""
        query = self.db.query(ChildCreditSettingsRow).filter(
            ChildCreditSettingsRow.family_id == family_id,
            ChildCreditSettingsRow.child_id == child_id,
        )
        if for_update:
            query = query.with_for_update()

        try:
            row = query.first()
        except SQLAlchemyError as e:
            raise DataAccessError(f"Failed to fetch credit settings for {child_id}: {e}") from e

        if row is None:
            return None
        return CreditSettings(
            family_id=row.family_id,
            child_id=row.child_id,
            enabled=row.credit_enabled,
            credit_limit=row.credit_limit,
            original_credit_limit=row.original_credit_limit,
            max_credit_limit=row.max_credit_limit,
        )

    def update_limit(self, family_id: str, child_id: str, credit_limit: int) -> None:
        updated = (
            self.db.query(ChildCreditSettingsRow)
            .filter(
                ChildCreditSettingsRow.family_id == family_id,
                ChildCreditSettingsRow.child_id == child_id,
            )
            .update({ChildCreditSettingsRow.credit_limit: credit_limit})
        )
        if updated != 1:
            raise DataAccessError(f"Credit settings for {child_id} disappeared during settlement")


class SettlementRepository:
    """Repository for settlement records (insert-only)"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_domain(row: CreditSettlementRow) -> SettlementRecord:
        return SettlementRecord(
            id=str(row.id),
            family_id=row.family_id,
            child_id=row.child_id,
            settlement_date=row.settlement_date,
            debt_amount=row.debt_amount,
            interest_calculated=row.interest_calculated,
            balance_before=row.balance_before,
            credit_limit_before=row.credit_limit_before,
            credit_limit_after=row.credit_limit_after,
            credit_limit_adjustment=row.credit_limit_adjustment,
            interest_breakdown=breakdown_from_json(row.interest_breakdown),
            settled_at=row.settled_at,
        )

    def create(self, record: SettlementRecord) -> SettlementRecord:
        """
        Persist a settlement snapshot.

        Raises:
            AlreadySettledError: A record exists for this child and date
        """
        row = CreditSettlementRow(
            id=uuid.UUID(record.id),
            family_id=record.family_id,
            child_id=record.child_id,
            settlement_date=record.settlement_date,
            balance_before=record.balance_before,
            debt_amount=record.debt_amount,
            interest_calculated=record.interest_calculated,
            interest_breakdown=breakdown_to_json(record.interest_breakdown),
            credit_limit_before=record.credit_limit_before,
            credit_limit_after=record.credit_limit_after,
            credit_limit_adjustment=record.credit_limit_adjustment,
            settled_at=record.settled_at,
        )
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise AlreadySettledError(
                f"Child {record.child_id} already settled on {record.settlement_date}"
            ) from e
        return record

    def get(self, family_id: str, child_id: str, settlement_date: date) -> Optional[SettlementRecord]:
        row = (
            self.db.query(CreditSettlementRow)
            .filter(
                CreditSettlementRow.family_id == family_id,
                CreditSettlementRow.child_id == child_id,
                CreditSettlementRow.settlement_date == settlement_date,
            )
            .first()
        )
        return self._to_domain(row) if row else None

    def list_for_family(
        self, family_id: str, child_id: Optional[str] = None, limit: int = 20
    ) -> List[SettlementRecord]:
        """Most recent settlements first"""
        query = self.db.query(CreditSettlementRow).filter(CreditSettlementRow.family_id == family_id)
        if child_id:
            query = query.filter(CreditSettlementRow.child_id == child_id)
        rows = (
            query.order_by(CreditSettlementRow.settlement_date.desc(), CreditSettlementRow.child_id)
            .limit(limit)
            .all()
        )
        return [self._to_domain(row) for row in rows]

    def list_for_date(self, family_id: str, settlement_date: date) -> List[SettlementRecord]:
        rows = (
            self.db.query(CreditSettlementRow)
            .filter(
                CreditSettlementRow.family_id == family_id,
                CreditSettlementRow.settlement_date == settlement_date,
            )
            .order_by(CreditSettlementRow.child_id)
            .all()
        )
        return [self._to_domain(row) for row in rows]


class ReportHistoryRepository:
    """Repository for the report/settlement audit trail"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self, family_id: str, report_type: ReportType, period_start: date):
        return self.db.query(ReportHistoryRow).filter(
            ReportHistoryRow.family_id == family_id,
            ReportHistoryRow.report_type == report_type.value,
            ReportHistoryRow.report_period_start == period_start,
        )

    def get(self, family_id: str, report_type: ReportType, period_start: date) -> Optional[AuditEntry]:
        try:
            row = self._query(family_id, report_type, period_start).first()
        except SQLAlchemyError as e:
            raise DataAccessError(f"Failed to read report history: {e}") from e
        if row is None:
            return None
        return AuditEntry(
            family_id=row.family_id,
            report_type=ReportType(row.report_type),
            period_start=row.report_period_start,
            period_end=row.report_period_end,
            status=AuditStatus(row.status),
            recipient=row.sent_to_email,
            sent_at=row.sent_at,
            error_message=row.error_message,
        )

    def exists(self, family_id: str, report_type: ReportType, period_start: date) -> bool:
        return self.get(family_id, report_type, period_start) is not None

    def claim(
        self, family_id: str, report_type: ReportType, period_start: date, period_end: date
    ) -> AuditEntry:
        """
        Insert a pending entry for the period.

        Raises:
            AlreadySettledError: Another run holds the period (unique constraint)
        """
        self.db.add(
            ReportHistoryRow(
                family_id=family_id,
                report_type=report_type.value,
                report_period_start=period_start,
                report_period_end=period_end,
                status=AuditStatus.PENDING.value,
            )
        )
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise AlreadySettledError(
                f"{report_type.value} for {family_id} on {period_start} already claimed"
            ) from e

        return AuditEntry(
            family_id=family_id,
            report_type=report_type,
            period_start=period_start,
            period_end=period_end,
            status=AuditStatus.PENDING,
        )

    def mark(
        self,
        family_id: str,
        report_type: ReportType,
        period_start: date,
        status: AuditStatus,
        recipient: Optional[str] = None,
        sent_at: Optional[datetime] = None,
        error_message: Optional[str] = None,
    ) -> None:
        self._query(family_id, report_type, period_start).update(
            {
                ReportHistoryRow.status: status.value,
                ReportHistoryRow.sent_to_email: recipient,
                ReportHistoryRow.sent_at: sent_at,
                ReportHistoryRow.error_message: error_message,
            }
        )

    def reopen(self, family_id: str, report_type: ReportType, period_start: date) -> bool:
        """Turn an incomplete entry back into a pending claim; False if another run got there first"""
        reopened = (
            self._query(family_id, report_type, period_start)
            .filter(ReportHistoryRow.status == AuditStatus.INCOMPLETE.value)
            .update({ReportHistoryRow.status: AuditStatus.PENDING.value}, synchronize_session=False)
        )
        return reopened == 1

    def release(self, family_id: str, report_type: ReportType, period_start: date) -> None:
        """Drop a pending claim so the period can be retried"""
        self._query(family_id, report_type, period_start).filter(
            ReportHistoryRow.status == AuditStatus.PENDING.value
        ).delete()
