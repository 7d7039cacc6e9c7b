"""Unit tests for the payment-mode policy engine"""

import pytest
from datetime import datetime, timedelta
from deposit_ledger.domain.exceptions import (
    ConfigurationDefect,
    PolicyRejection,
    ReasonCode,
)
from deposit_ledger.domain.models import AccountTerms, PaymentMode, PeriodTotals
from deposit_ledger.domain.policy import (
    PolicyDecision,
    check_maturity,
    check_total_payable,
    collection_period,
    evaluate_deposit,
)

NOW = datetime(2025, 3, 15, 10, 30)


def monthly_terms(**overrides) -> AccountTerms:
    fields = dict(payment_mode=PaymentMode.MONTHLY, total_payable_cents=120_000, installment_cents=10_000)
    fields.update(overrides)
    return AccountTerms(**fields)


def daily_terms(**overrides) -> AccountTerms:
    fields = dict(payment_mode=PaymentMode.DAILY, total_payable_cents=360_000, monthly_target_cents=30_000)
    fields.update(overrides)
    return AccountTerms(**fields)


def yearly_terms(**overrides) -> AccountTerms:
    fields = dict(payment_mode=PaymentMode.YEARLY, total_payable_cents=500_000)
    fields.update(overrides)
    return AccountTerms(**fields)


def test_total_payable_cap_allows_exact_fill():
    """Test deposit reaching the payable total exactly is admitted"""
    decision = check_total_payable(monthly_terms(), 10_000, 110_000)
    assert decision.admissible is True


def test_total_payable_cap_rejects_overflow():
    """Test deposit pushing collected beyond payable total"""
    decision = check_total_payable(monthly_terms(), 10_000, 115_000)
    assert decision.admissible is False
    assert decision.reason == ReasonCode.TOTAL_PAYABLE_EXCEEDED
    assert decision.details["collected_cents"] == 115_000


@pytest.mark.parametrize("total_payable", [None, 0, -100])
def test_missing_total_payable_is_configuration_defect(total_payable):
    """Test absent or non-positive payable total"""
    decision = check_total_payable(monthly_terms(total_payable_cents=total_payable), 10_000, 0)
    assert decision.reason == ReasonCode.MISSING_TOTAL_PAYABLE
    assert isinstance(decision.to_error(), ConfigurationDefect)


def test_total_payable_checked_before_mode_rules():
    """Test the global cap wins over a mode-specific violation"""
    decision = evaluate_deposit(monthly_terms(), 25_000, PeriodTotals(collected_cents=110_000), NOW)
    assert decision.reason == ReasonCode.TOTAL_PAYABLE_EXCEEDED


def test_maturity_boundary_is_inclusive():
    """Test deposit at exactly the maturity moment is rejected"""
    assert check_maturity(monthly_terms(maturity_date=NOW), NOW).reason == ReasonCode.ACCOUNT_MATURED
    assert check_maturity(monthly_terms(maturity_date=NOW + timedelta(seconds=1)), NOW).admissible


def test_maturity_not_checked_on_update():
    """Test edits to a matured account's deposits skip the maturity gate"""
    terms = monthly_terms(maturity_date=NOW - timedelta(days=1))
    assert evaluate_deposit(terms, 10_000, PeriodTotals(), NOW).reason == ReasonCode.ACCOUNT_MATURED
    assert evaluate_deposit(terms, 10_000, PeriodTotals(), NOW, is_update=True).admissible


def test_monthly_requires_exact_installment():
    """Test monthly installment amount mismatch"""
    decision = evaluate_deposit(monthly_terms(), 9_999, PeriodTotals(), NOW)
    assert decision.reason == ReasonCode.MONTHLY_AMOUNT_MISMATCH
    assert isinstance(decision.to_error(), PolicyRejection)


def test_monthly_second_deposit_same_month():
    """Test one installment per calendar month, with distinct codes for create and update"""
    totals = PeriodTotals(collected_cents=10_000, period_collected_cents=10_000, period_deposit_count=1)
    assert evaluate_deposit(monthly_terms(), 10_000, totals, NOW).reason == ReasonCode.MONTHLY_ALREADY_PAID
    assert (
        evaluate_deposit(monthly_terms(), 10_000, totals, NOW, is_update=True).reason
        == ReasonCode.MONTHLY_MULTIPLE_DEPOSITS
    )


def test_monthly_missing_installment():
    """Test Monthly account without an installment amount"""
    decision = evaluate_deposit(monthly_terms(installment_cents=None), 10_000, PeriodTotals(), NOW)
    assert decision.reason == ReasonCode.MISSING_INSTALLMENT_AMOUNT


def test_daily_target_reached_exactly():
    """Test daily deposits may fill the monthly target to the cent"""
    totals = PeriodTotals(collected_cents=20_000, period_collected_cents=20_000, period_deposit_count=2)
    assert evaluate_deposit(daily_terms(), 10_000, totals, NOW).admissible


def test_daily_target_exceeded():
    """Test daily deposit beyond the monthly target"""
    totals = PeriodTotals(collected_cents=30_000, period_collected_cents=30_000, period_deposit_count=3)
    decision = evaluate_deposit(daily_terms(), 5_000, totals, NOW)
    assert decision.reason == ReasonCode.DAILY_MONTHLY_TARGET_EXCEEDED
    assert decision.details["monthly_target_cents"] == 30_000


def test_daily_missing_target():
    """Test Daily account without a monthly target"""
    decision = evaluate_deposit(daily_terms(monthly_target_cents=0), 1_000, PeriodTotals(), NOW)
    assert decision.reason == ReasonCode.MISSING_MONTHLY_TARGET


def test_yearly_amount_defaults_to_total_payable():
    """Test yearly required amount falls back to the payable total"""
    assert evaluate_deposit(yearly_terms(), 500_000, PeriodTotals(), NOW).admissible

    decision = evaluate_deposit(yearly_terms(), 250_000, PeriodTotals(), NOW)
    assert decision.reason == ReasonCode.YEARLY_AMOUNT_MISMATCH
    assert decision.details["required_cents"] == 500_000


def test_yearly_explicit_amount():
    """Test explicit yearly amount overrides the payable total"""
    terms = yearly_terms(yearly_amount_cents=400_000)
    assert evaluate_deposit(terms, 400_000, PeriodTotals(), NOW).admissible
    assert evaluate_deposit(terms, 500_000, PeriodTotals(), NOW).reason == ReasonCode.YEARLY_AMOUNT_MISMATCH


def test_yearly_already_paid_only_blocks_create():
    """Test fully paid Yearly account rejects new deposits but allows edits"""
    terms = yearly_terms(yearly_amount_cents=400_000, is_fully_paid=True)
    assert evaluate_deposit(terms, 400_000, PeriodTotals(), NOW).reason == ReasonCode.YEARLY_ALREADY_PAID
    assert evaluate_deposit(terms, 400_000, PeriodTotals(), NOW, is_update=True).admissible


def test_admissible_decision_has_no_error():
    with pytest.raises(ValueError):
        PolicyDecision.admit().to_error()


def test_collection_period_by_mode():
    """Test Daily collects per day, Monthly per month and Yearly once"""
    assert collection_period(PaymentMode.DAILY, NOW) == (datetime(2025, 3, 15), datetime(2025, 3, 16))
    assert collection_period(PaymentMode.MONTHLY, NOW) == (datetime(2025, 3, 1), datetime(2025, 4, 1))
    assert collection_period(PaymentMode.YEARLY, NOW) == (None, None)
