"""SQLAlchemy ORM models for credit and settlement tables"""

import uuid
from sqlalchemy import (
    Column, String, BigInteger, Boolean, Numeric, DateTime, Date, Integer, ForeignKey, Text, JSON,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class FamilyRow(Base):
    """Family with its monthly settlement day"""

    __tablename__ = "families"
    __table_args__ = (
        CheckConstraint("settlement_day BETWEEN 0 AND 28", name="ck_families_settlement_day"),
    )

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    settlement_day = Column(Integer, nullable=False, default=1, index=True)  # 0 = last day of month
    parent_email = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    preferences = relationship("ReportPreferencesRow", back_populates="family", uselist=False)


class ReportPreferencesRow(Base):
    """Per-family notification preferences"""

    __tablename__ = "family_report_preferences"

    family_id = Column(Text, ForeignKey("families.id", ondelete="CASCADE"), primary_key=True)
    settlement_email_enabled = Column(Boolean, nullable=False, default=True)
    report_email = Column(Text, nullable=True)

    family = relationship("FamilyRow", back_populates="preferences")


class InterestTierRow(Base):
    """One bracket of a family's interest table"""

    __tablename__ = "credit_interest_tiers"
    __table_args__ = (UniqueConstraint("family_id", "tier_order", name="uq_interest_tier_order"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    family_id = Column(Text, ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    tier_order = Column(Integer, nullable=False)
    min_debt = Column(BigInteger, nullable=False)
    max_debt = Column(BigInteger, nullable=True)  # NULL = unlimited
    interest_rate = Column(Numeric(5, 4), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ChildCreditSettingsRow(Base):
    """Credit line of a child"""

    __tablename__ = "child_credit_settings"
    __table_args__ = (UniqueConstraint("family_id", "child_id", name="uq_credit_settings_child"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    family_id = Column(Text, ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    child_id = Column(Text, nullable=False, index=True)
    credit_enabled = Column(Boolean, nullable=False, default=False)
    credit_limit = Column(BigInteger, nullable=False, default=0)
    original_credit_limit = Column(BigInteger, nullable=False, default=0)
    max_credit_limit = Column(BigInteger, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class CreditSettlementRow(Base):
    """Immutable settlement snapshot"""

    __tablename__ = "credit_settlements"
    __table_args__ = (
        UniqueConstraint("family_id", "child_id", "settlement_date", name="uq_settlement_child_date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    family_id = Column(Text, ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    child_id = Column(Text, nullable=False, index=True)
    settlement_date = Column(Date, nullable=False)
    balance_before = Column(BigInteger, nullable=False)
    debt_amount = Column(BigInteger, nullable=False)
    interest_calculated = Column(BigInteger, nullable=False)
    interest_breakdown = Column(JSON, nullable=True)
    credit_limit_before = Column(BigInteger, nullable=False)
    credit_limit_after = Column(BigInteger, nullable=False)
    credit_limit_adjustment = Column(BigInteger, nullable=False)
    settled_at = Column(DateTime(timezone=True), nullable=False)


class ReportHistoryRow(Base):
    """Audit trail and idempotency guard for reports and settlements"""

    __tablename__ = "report_history"
    __table_args__ = (
        UniqueConstraint("family_id", "report_type", "report_period_start", name="uq_report_history_period"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    family_id = Column(Text, ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    report_type = Column(String(16), nullable=False)
    report_period_start = Column(Date, nullable=False)
    report_period_end = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    sent_to_email = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
