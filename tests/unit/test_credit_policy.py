"""Unit tests for credit limit adjustment and credit line helpers"""

import pytest
from decimal import Decimal
from types import SimpleNamespace
from starquest_settlement.domain.models import CreditSettings
from starquest_settlement.domain.credit_policy import (
    CreditLimitPolicy,
    adjust_credit_limit,
    calculate_total_spendable,
    get_available_credit,
    get_credit_used,
    resolve_credit_ceiling,
)


def _credit(limit: int = 40, original: int = 50, max_limit=None) -> CreditSettings:
    return CreditSettings(
        family_id="fam_1",
        child_id="kid_1",
        enabled=True,
        credit_limit=limit,
        original_credit_limit=original,
        max_credit_limit=max_limit,
    )


@pytest.fixture
def policy() -> CreditLimitPolicy:
    return CreditLimitPolicy()


def test_debt_free_child_gets_increase(policy):
    """10% of the original 50 -> +5"""
    assert adjust_credit_limit(_credit(40, 50), 0, policy) == 45


def test_increase_is_at_least_one_star(policy):
    assert adjust_credit_limit(_credit(3, 3), 0, policy) == 4


def test_debt_reduces_limit(policy):
    """20% of 35 debt = 7"""
    assert adjust_credit_limit(_credit(40, 50), 35, policy) == 33


def test_limit_never_negative(policy):
    assert adjust_credit_limit(_credit(40, 50), 300, policy) == 0


def test_increase_capped_at_default_ceiling(policy):
    """Ceiling defaults to twice the original limit"""
    assert adjust_credit_limit(_credit(98, 50), 0, policy) == 100


def test_increase_capped_at_configured_ceiling(policy):
    assert adjust_credit_limit(_credit(40, 50, max_limit=42), 0, policy) == 42


def test_limit_above_ceiling_pulled_down(policy):
    assert adjust_credit_limit(_credit(120, 50), 0, policy) == 100


def test_resolve_credit_ceiling(policy):
    assert resolve_credit_ceiling(_credit(original=50), policy) == 100
    assert resolve_credit_ceiling(_credit(max_limit=75), policy) == 75


def test_policy_from_settings():
    settings = SimpleNamespace(
        credit_limit_increase_rate=0.25,
        credit_limit_decrease_rate=0.5,
        credit_limit_ceiling_multiplier=3.0,
    )

    policy = CreditLimitPolicy.from_settings(settings)

    assert policy.increase_rate == Decimal("0.25")
    assert adjust_credit_limit(_credit(40, 50), 10, policy) == 35
    assert adjust_credit_limit(_credit(140, 50), 0, policy) == 150


def test_credit_used():
    assert get_credit_used(-20) == 20
    assert get_credit_used(0) == 0
    assert get_credit_used(15) == 0


def test_available_credit():
    assert get_available_credit(-20, 50, True) == 30
    assert get_available_credit(-60, 50, True) == 0
    assert get_available_credit(10, 50, True) == 50
    assert get_available_credit(-20, 50, False) == 0


def test_total_spendable():
    assert calculate_total_spendable(10, True, 50) == 60
    assert calculate_total_spendable(-5, True, 30) == 30
    assert calculate_total_spendable(10, False, 0) == 10
    assert calculate_total_spendable(-5, False, 0) == 0
