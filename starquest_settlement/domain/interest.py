"""Progressive (bracket-based) interest calculation"""

from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence
from starquest_settlement.domain.models import InterestTier, InterestBreakdownItem, InterestCalculation
from starquest_settlement.domain.exceptions import TierConfigurationError

EXCESS_IGNORE = "ignore"
EXCESS_TOP_RATE = "top_rate"

# Table given to families that have not configured their own
DEFAULT_INTEREST_TIERS = [
    InterestTier(order=1, min_debt=0, max_debt=19, rate=Decimal("0.05")),
    InterestTier(order=2, min_debt=20, max_debt=49, rate=Decimal("0.10")),
    InterestTier(order=3, min_debt=50, max_debt=None, rate=Decimal("0.15")),
]


def round_half_up(value: Decimal) -> int:
    """Round to whole stars, halves away from zero"""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_tiers(tiers: Sequence[InterestTier]) -> List[InterestTier]:
    """
    Check a family's tier table and return it sorted by order.

    Rules:
    - orders are unique and >= 1
    - 0 <= min_debt <= max_debt, 0 <= rate <= 1
    - brackets are contiguous: min_debt(n+1) == max_debt(n) + 1
    - only the highest-order tier may be unlimited

    Raises:
        TierConfigurationError: On the first rule violated
    """
    ordered = sorted(tiers, key=lambda t: t.order)

    orders = [t.order for t in ordered]
    if len(set(orders)) != len(orders):
        raise TierConfigurationError(f"Duplicate tier order in {orders}")

    for index, tier in enumerate(ordered):
        if tier.order < 1:
            raise TierConfigurationError(f"Tier order must be >= 1, got {tier.order}")
        if tier.min_debt < 0:
            raise TierConfigurationError(f"Tier {tier.order}: min_debt must be >= 0")
        if tier.rate < 0 or tier.rate > 1:
            raise TierConfigurationError(f"Tier {tier.order}: rate {tier.rate} outside [0, 1]")
        if tier.max_debt is not None and tier.max_debt < tier.min_debt:
            raise TierConfigurationError(f"Tier {tier.order}: max_debt below min_debt")
        if tier.unlimited and index != len(ordered) - 1:
            raise TierConfigurationError(f"Tier {tier.order}: only the highest tier may be unlimited")

        if index > 0:
            previous = ordered[index - 1]
            if tier.min_debt != previous.max_debt + 1:
                raise TierConfigurationError(
                    f"Tier {tier.order} starts at {tier.min_debt}, expected {previous.max_debt + 1}"
                )

    return ordered


def _debt_in_tier(debt: int, tier: InterestTier, upper: Optional[int]) -> int:
    # Tier [min, max] covers debt units max(min, 1)..max, so [0,19] holds 19 units
    ceiling = debt if upper is None else min(debt, upper)
    return max(0, ceiling - max(tier.min_debt - 1, 0))


def _reconcile(amounts: List[int], total: int) -> List[int]:
    """Shift the rounding gap onto the last tiers so the breakdown sums to total"""
    gap = total - sum(amounts)
    if gap > 0:
        amounts[-1] += gap
        return amounts

    for index in reversed(range(len(amounts))):
        if gap == 0:
            break
        taken = min(-gap, amounts[index])
        amounts[index] -= taken
        gap += taken

    return amounts


def compute_interest(
    debt: int,
    tiers: Sequence[InterestTier],
    excess_policy: str = EXCESS_IGNORE,
) -> InterestCalculation:
    """
    Calculate interest on outstanding debt, tax-bracket style.

    Each tier charges its rate only on the part of the debt that falls inside
    the bracket. The exact total is rounded once (half-up); per-tier amounts
    are rounded individually and then reconciled against that total.

    Args:
        debt: Outstanding debt in stars (>= 0)
        tiers: Family tier table, any order
        excess_policy: "ignore" leaves debt above a finite table uncharged,
            "top_rate" charges the highest tier's rate on it

    Returns:
        InterestCalculation with total and per-tier breakdown

    Example:
        [0,19]@5%, [20,49]@10%, [50,inf)@15%, debt 35
        19 * 0.05 + 16 * 0.10 = 2.55 -> 3, breakdown [1, 2]
    """
    if debt < 0:
        raise ValueError(f"Debt must be non-negative, got {debt}")
    if excess_policy not in (EXCESS_IGNORE, EXCESS_TOP_RATE):
        raise ValueError(f"Unknown excess debt policy: {excess_policy}")

    # No debt or no table: nothing to charge
    if debt == 0 or not tiers:
        return InterestCalculation(total_interest=0, breakdown=[])

    ordered = validate_tiers(tiers)
    top = ordered[-1]

    contributions = []
    for tier in ordered:
        upper = tier.max_debt
        if tier is top and excess_policy == EXCESS_TOP_RATE:
            upper = None

        debt_in_tier = _debt_in_tier(debt, tier, upper)
        if debt_in_tier == 0:
            continue
        contributions.append((tier, debt_in_tier, debt_in_tier * tier.rate))

    if not contributions:
        return InterestCalculation(total_interest=0, breakdown=[])

    exact_total = sum((interest for _, _, interest in contributions), Decimal(0))
    total = round_half_up(exact_total)
    amounts = _reconcile([round_half_up(interest) for _, _, interest in contributions], total)

    breakdown = [
        InterestBreakdownItem(
            tier_order=tier.order,
            min_debt=tier.min_debt,
            max_debt=tier.max_debt,
            debt_in_tier=debt_in_tier,
            rate=tier.rate,
            interest_amount=amount,
        )
        for (tier, debt_in_tier, _), amount in zip(contributions, amounts)
    ]

    return InterestCalculation(total_interest=total, breakdown=breakdown)


def format_interest_rate(rate: Decimal) -> str:
    return f"{rate * 100:.0f}%"


def format_debt_range(min_debt: int, max_debt: Optional[int]) -> str:
    if max_debt is None:
        return f"{min_debt}+"
    return f"{min_debt}-{max_debt}"
