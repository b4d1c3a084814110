"""Unit tests for progressive interest calculation"""

import pytest
from decimal import Decimal
from starquest_settlement.domain.interest import (
    DEFAULT_INTEREST_TIERS,
    EXCESS_TOP_RATE,
    compute_interest,
    format_debt_range,
    format_interest_rate,
    round_half_up,
    validate_tiers,
)
from starquest_settlement.domain.exceptions import TierConfigurationError
from starquest_settlement.domain.models import InterestTier


def tier(order, min_debt, max_debt, rate):
    return InterestTier(order=order, min_debt=min_debt, max_debt=max_debt, rate=Decimal(rate))


def _amounts(calculation):
    return [item.interest_amount for item in calculation.breakdown]


def test_debt_within_first_tier():
    """19 stars at 5% = 0.95 -> 1"""
    calculation = compute_interest(19, DEFAULT_INTEREST_TIERS)

    assert calculation.total_interest == 1
    assert len(calculation.breakdown) == 1
    assert calculation.breakdown[0].debt_in_tier == 19


def test_debt_spanning_two_tiers():
    """19 * 0.05 + 11 * 0.10 = 2.05 -> 2"""
    calculation = compute_interest(30, DEFAULT_INTEREST_TIERS)

    assert calculation.total_interest == 2
    assert [item.debt_in_tier for item in calculation.breakdown] == [19, 11]


def test_breakdown_rounded_per_tier():
    """19 * 0.05 + 16 * 0.10 = 2.55 -> 3, tiers contribute [1, 2]"""
    calculation = compute_interest(35, DEFAULT_INTEREST_TIERS)

    assert calculation.total_interest == 3
    assert _amounts(calculation) == [1, 2]
    assert [item.tier_order for item in calculation.breakdown] == [1, 2]
    assert calculation.breakdown[1].rate == Decimal("0.10")


def test_debt_reaching_unlimited_tier():
    """0.95 + 3.0 + 51 * 0.15 = 11.6 -> 12"""
    calculation = compute_interest(100, DEFAULT_INTEREST_TIERS)

    assert calculation.total_interest == 12
    assert [item.debt_in_tier for item in calculation.breakdown] == [19, 30, 51]
    assert calculation.breakdown[2].max_debt is None
    assert sum(_amounts(calculation)) == 12


def test_zero_debt_charges_nothing():
    calculation = compute_interest(0, DEFAULT_INTEREST_TIERS)

    assert calculation.total_interest == 0
    assert calculation.breakdown == []


def test_empty_tier_table_charges_nothing():
    calculation = compute_interest(500, [])

    assert calculation.total_interest == 0
    assert calculation.breakdown == []


def test_tiers_accepted_in_any_order():
    shuffled = list(reversed(DEFAULT_INTEREST_TIERS))

    assert compute_interest(35, shuffled) == compute_interest(35, DEFAULT_INTEREST_TIERS)


def test_single_unlimited_tier():
    calculation = compute_interest(1000, [tier(1, 0, None, "0.10")])

    assert calculation.total_interest == 100


def test_excess_debt_ignored_by_default():
    """Debt above a finite table's top bracket is not charged"""
    finite = [tier(1, 0, 19, "0.05"), tier(2, 20, 49, "0.10")]

    calculation = compute_interest(100, finite)

    # 0.95 + 30 * 0.10 = 3.95 -> 4
    assert calculation.total_interest == 4
    assert calculation.breakdown[-1].debt_in_tier == 30


def test_excess_debt_at_top_rate():
    finite = [tier(1, 0, 19, "0.05"), tier(2, 20, 49, "0.10")]

    calculation = compute_interest(100, finite, excess_policy=EXCESS_TOP_RATE)

    # 0.95 + 81 * 0.10 = 9.05 -> 9
    assert calculation.total_interest == 9
    assert calculation.breakdown[-1].debt_in_tier == 81


def test_rounding_surplus_taken_from_last_tier():
    """0.5 + 0.5 = 1.0 -> 1, but each tier alone rounds up to 1"""
    tiers = [tier(1, 0, 10, "0.05"), tier(2, 11, 20, "0.05")]

    calculation = compute_interest(20, tiers)

    assert calculation.total_interest == 1
    assert _amounts(calculation) == [1, 0]


def test_rounding_shortfall_added_to_last_tier():
    """0.4 + 0.4 = 0.8 -> 1, each tier alone rounds down to 0"""
    tiers = [tier(1, 0, 8, "0.05"), tier(2, 9, 16, "0.05")]

    calculation = compute_interest(16, tiers)

    assert calculation.total_interest == 1
    assert _amounts(calculation) == [0, 1]


def test_interest_monotonic_in_debt():
    previous = 0
    for debt in range(0, 250):
        total = compute_interest(debt, DEFAULT_INTEREST_TIERS).total_interest
        assert total >= previous, f"interest dropped at debt {debt}"
        previous = total


def test_breakdown_always_sums_to_total():
    for debt in range(0, 250):
        calculation = compute_interest(debt, DEFAULT_INTEREST_TIERS)
        assert sum(_amounts(calculation)) == calculation.total_interest
        assert all(amount >= 0 for amount in _amounts(calculation))


def test_negative_debt_rejected():
    with pytest.raises(ValueError):
        compute_interest(-1, DEFAULT_INTEREST_TIERS)


def test_unknown_excess_policy_rejected():
    with pytest.raises(ValueError):
        compute_interest(10, DEFAULT_INTEREST_TIERS, excess_policy="cap")


@pytest.mark.parametrize(
    "tiers",
    [
        [tier(1, 0, 19, "0.05"), tier(2, 25, None, "0.10")],  # gap
        [tier(1, 0, 19, "0.05"), tier(2, 15, None, "0.10")],  # overlap
        [tier(1, 0, None, "0.05"), tier(2, 20, None, "0.10")],  # unlimited below the top
        [tier(1, 0, 19, "0.05"), tier(1, 20, None, "0.10")],  # duplicate order
        [tier(1, 0, 19, "1.5")],  # rate above 100%
        [tier(1, 10, 5, "0.05")],  # max below min
        [tier(0, 0, 19, "0.05")],  # order below 1
    ],
)
def test_invalid_tier_tables_rejected(tiers):
    with pytest.raises(TierConfigurationError):
        validate_tiers(tiers)


def test_validate_tiers_sorts_by_order():
    ordered = validate_tiers(list(reversed(DEFAULT_INTEREST_TIERS)))

    assert [t.order for t in ordered] == [1, 2, 3]


def test_round_half_up():
    assert round_half_up(Decimal("0.5")) == 1
    assert round_half_up(Decimal("2.5")) == 3
    assert round_half_up(Decimal("2.49")) == 2


def test_formatters():
    assert format_interest_rate(Decimal("0.05")) == "5%"
    assert format_interest_rate(Decimal("0.15")) == "15%"
    assert format_debt_range(0, 19) == "0-19"
    assert format_debt_range(50, None) == "50+"
