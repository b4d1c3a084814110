"""Settlement scheduling: which families are due on a given day"""

from datetime import date
from typing import List
from starquest_settlement.utils.date_utils import is_last_day_of_month

LAST_DAY_OF_MONTH = 0
MAX_SETTLEMENT_DAY = 28


def validate_settlement_day(settlement_day: int) -> int:
    """Settlement day must be 0 (last day of month) or 1..28"""
    if not LAST_DAY_OF_MONTH <= settlement_day <= MAX_SETTLEMENT_DAY:
        raise ValueError(f"settlement_day must be between 0 and 28, got {settlement_day}")
    return settlement_day


def is_family_due(settlement_day: int, today: date) -> bool:
    if settlement_day == LAST_DAY_OF_MONTH:
        return is_last_day_of_month(today)
    return settlement_day == today.day


def due_settlement_days(today: date) -> List[int]:
    """
    Settlement-day values that are due today.

    Jan 31 -> [31, 0], Feb 28 (non-leap) -> [28, 0], Jan 30 -> [30]
    """
    days = [today.day]
    if is_last_day_of_month(today):
        days.append(LAST_DAY_OF_MONTH)
    return days
