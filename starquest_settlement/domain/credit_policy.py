"""Credit limit adjustment policy and credit line helpers"""

from dataclasses import dataclass
from decimal import Decimal
from starquest_settlement.domain.models import CreditSettings
from starquest_settlement.domain.interest import round_half_up


@dataclass(frozen=True)
class CreditLimitPolicy:
    """
    Rule for moving a child's credit limit at settlement.

    - Debt-free at settlement: limit rises by increase_rate of the original
      limit (at least 1 star), rewarding repayment.
    - In debt: limit falls by decrease_rate of the outstanding debt.
    - Result is clamped to [0, ceiling].
    """

    increase_rate: Decimal = Decimal("0.10")
    decrease_rate: Decimal = Decimal("0.20")
    ceiling_multiplier: Decimal = Decimal("2.0")

    @classmethod
    def from_settings(cls, settings) -> "CreditLimitPolicy":
        return cls(
            increase_rate=Decimal(str(settings.credit_limit_increase_rate)),
            decrease_rate=Decimal(str(settings.credit_limit_decrease_rate)),
            ceiling_multiplier=Decimal(str(settings.credit_limit_ceiling_multiplier)),
        )


def resolve_credit_ceiling(credit: CreditSettings, policy: CreditLimitPolicy) -> int:
    """Administrator ceiling if set, otherwise a multiple of the original limit"""
    if credit.max_credit_limit is not None:
        return max(credit.max_credit_limit, 0)
    return round_half_up(credit.original_credit_limit * policy.ceiling_multiplier)


def adjust_credit_limit(credit: CreditSettings, debt: int, policy: CreditLimitPolicy) -> int:
    """Return the new credit limit after a settlement with the given debt"""
    ceiling = resolve_credit_ceiling(credit, policy)
    current = credit.credit_limit

    if debt == 0:
        step = max(1, round_half_up(credit.original_credit_limit * policy.increase_rate))
        proposed = current + step
    else:
        proposed = current - round_half_up(debt * policy.decrease_rate)

    return max(0, min(proposed, ceiling))


def get_credit_used(balance: int) -> int:
    return abs(balance) if balance < 0 else 0


def get_available_credit(balance: int, credit_limit: int, credit_enabled: bool) -> int:
    if not credit_enabled:
        return 0
    return max(credit_limit - get_credit_used(balance), 0)


def calculate_total_spendable(balance: int, credit_enabled: bool, available_credit: int) -> int:
    """Stars a child can spend right now, counting unused credit"""
    if not credit_enabled:
        return max(balance, 0)
    return max(balance, 0) + available_credit
