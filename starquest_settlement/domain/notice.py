"""Settlement notice content and recipient resolution"""

from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple
from starquest_settlement.domain.models import Child, Family, ReportPreferences, SettlementRecord
from starquest_settlement.domain.interest import format_debt_range, format_interest_rate

SUBJECT = "StarQuest Credit Settlement Notice"
UNKNOWN_CHILD = "Unknown"


def resolve_recipient(family: Family, preferences: Optional[ReportPreferences]) -> Optional[str]:
    """Preference override first, then the family's parent address"""
    if preferences and preferences.report_email:
        return preferences.report_email
    return family.parent_email or None


def display_name(child: Optional[Child]) -> str:
    if child is None or not child.name:
        return UNKNOWN_CHILD
    return child.name


def _format_change(change: int) -> str:
    return f"+{change}" if change > 0 else str(change)


def _child_section(record: SettlementRecord, name: str) -> List[str]:
    lines = [
        f"{name}",
        f"  Debt amount: {record.debt_amount} stars",
        f"  Interest charged: {record.interest_calculated} stars",
        f"  Credit limit: {record.credit_limit_before} -> {record.credit_limit_after}"
        f" ({_format_change(record.credit_limit_adjustment)})",
    ]
    if record.interest_breakdown:
        lines.append("  Interest breakdown:")
        for item in record.interest_breakdown:
            lines.append(
                f"    Tier {item.tier_order} ({format_debt_range(item.min_debt, item.max_debt)}"
                f" @ {format_interest_rate(item.rate)}): {item.debt_in_tier} in tier"
                f" -> {item.interest_amount}"
            )
    return lines


def build_settlement_notice(
    family: Family,
    records: Sequence[SettlementRecord],
    settlement_date: date,
    children: Optional[Dict[str, Child]] = None,
) -> Tuple[str, str]:
    """
    Build subject and plain-text body for a family's settlement notice.

    No-op records (no interest, no limit change) are left out of the
    per-child summary; when every record is a no-op the body says so.
    """
    children = children or {}
    subject = f"{SUBJECT} - {family.name} - {settlement_date.isoformat()}"

    lines = [
        "Credit Settlement Completed",
        f"Family: {family.name}",
        f"Settlement date: {settlement_date.isoformat()}",
        "",
    ]

    changed = [record for record in records if not record.is_noop]
    if not changed:
        lines.append("No interest was charged and no credit limits changed this period.")
    else:
        for record in changed:
            lines.extend(_child_section(record, display_name(children.get(record.child_id))))
            lines.append("")

    total_interest = sum(record.interest_calculated for record in records)
    lines.append(f"Total interest charged: {total_interest} stars")
    lines.append("")
    lines.append(
        "Interest is calculated on each child's negative balance at settlement time. "
        "Credit limits may be adjusted based on repayment."
    )

    return subject, "\n".join(lines)
