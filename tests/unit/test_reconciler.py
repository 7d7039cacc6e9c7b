"""Unit tests for ledger reconciliation"""

import pytest
from datetime import datetime
from deposit_ledger.domain.models import AccountStatus, AccountTerms, DepositEntry, Mutation, PaymentMode
from deposit_ledger.domain.reconciler import reconcile

ANCHOR = datetime(2025, 3, 15, 10, 30)


def entries(*pairs) -> list[DepositEntry]:
    return [DepositEntry(amount_cents=amount, date=date) for amount, date in pairs]


def test_balance_is_sum_of_history():
    """Test balance derives from the full history, across months"""
    terms = AccountTerms(PaymentMode.MONTHLY, total_payable_cents=120_000, installment_cents=10_000)
    history = entries((10_000, datetime(2025, 1, 5)), (10_000, datetime(2025, 2, 5)), (10_000, ANCHOR))

    result = reconcile(terms, history, ANCHOR)

    assert result.balance_cents == 30_000
    assert result.total_collected_cents == 30_000
    assert result.status == AccountStatus.ACTIVE
    assert result.is_fully_paid is False


def test_reconcile_is_idempotent():
    """Test running reconciliation twice over unchanged history yields the same result"""
    terms = AccountTerms(PaymentMode.DAILY, total_payable_cents=360_000, monthly_target_cents=30_000)
    history = entries((10_000, datetime(2025, 3, 1)), (5_000, datetime(2025, 3, 2)))

    first = reconcile(terms, history, ANCHOR)
    terms.status = first.status
    second = reconcile(terms, history, ANCHOR)

    assert first == second


def test_monthly_pending_without_deposit_this_month():
    """Test Monthly account falls back to Pending when the anchor month is empty"""
    terms = AccountTerms(
        PaymentMode.MONTHLY, total_payable_cents=120_000, installment_cents=10_000, status=AccountStatus.ACTIVE
    )
    result = reconcile(terms, entries((10_000, datetime(2025, 2, 5))), ANCHOR)
    assert result.status == AccountStatus.PENDING


def test_monthly_pending_becomes_active_with_deposit_this_month():
    terms = AccountTerms(
        PaymentMode.MONTHLY, total_payable_cents=120_000, installment_cents=10_000, status=AccountStatus.PENDING
    )
    result = reconcile(terms, entries((10_000, datetime(2025, 2, 5)), (10_000, ANCHOR)), ANCHOR, Mutation.CREATE)
    assert result.status == AccountStatus.ACTIVE


def test_daily_on_track_when_month_hits_target():
    """Test Daily status flips to OnTrack once the month reaches the target"""
    terms = AccountTerms(PaymentMode.DAILY, total_payable_cents=360_000, monthly_target_cents=30_000)

    partial = reconcile(terms, entries((10_000, ANCHOR), (10_000, ANCHOR)), ANCHOR)
    assert partial.status == AccountStatus.PENDING

    full = reconcile(terms, entries((10_000, ANCHOR), (10_000, ANCHOR), (10_000, ANCHOR)), ANCHOR)
    assert full.status == AccountStatus.ON_TRACK


def test_daily_previous_month_does_not_count():
    """Test Daily target is measured in the anchor's month only"""
    terms = AccountTerms(PaymentMode.DAILY, total_payable_cents=360_000, monthly_target_cents=30_000)
    result = reconcile(terms, entries((30_000, datetime(2025, 2, 28, 23, 59))), ANCHOR)
    assert result.status == AccountStatus.PENDING


def test_yearly_fully_paid():
    """Test Yearly account paid in one go"""
    terms = AccountTerms(PaymentMode.YEARLY, total_payable_cents=500_000)
    result = reconcile(terms, entries((500_000, ANCHOR)), ANCHOR)
    assert result.is_fully_paid is True
    assert result.status == AccountStatus.ON_TRACK


def test_yearly_create_below_payable_marks_fully_paid():
    """Test a create collecting the yearly amount sets fully paid while below the payable total"""
    terms = AccountTerms(PaymentMode.YEARLY, total_payable_cents=1_000_000, yearly_amount_cents=400_000)
    result = reconcile(terms, entries((400_000, ANCHOR)), ANCHOR, Mutation.CREATE)
    assert result.is_fully_paid is True
    assert result.balance_cents == 400_000
    assert result.status == AccountStatus.ACTIVE


@pytest.mark.parametrize("mutation", [Mutation.UPDATE, Mutation.DELETE])
def test_yearly_edit_below_payable_clears_fully_paid(mutation):
    """Test update and delete below the payable total leave the account not fully paid"""
    terms = AccountTerms(
        PaymentMode.YEARLY,
        total_payable_cents=1_000_000,
        yearly_amount_cents=400_000,
        is_fully_paid=True,
        status=AccountStatus.ON_TRACK,
    )
    result = reconcile(terms, entries((400_000, ANCHOR)), ANCHOR, mutation)
    assert result.is_fully_paid is False
    assert result.status == AccountStatus.ACTIVE


def test_yearly_standalone_reconcile_keeps_flag():
    terms = AccountTerms(
        PaymentMode.YEARLY, total_payable_cents=1_000_000, yearly_amount_cents=400_000, is_fully_paid=True
    )
    assert reconcile(terms, entries((400_000, ANCHOR)), ANCHOR).is_fully_paid is True

    terms.is_fully_paid = False
    assert reconcile(terms, entries((400_000, ANCHOR)), ANCHOR).is_fully_paid is False


def test_payable_reached_marks_on_track():
    """Test any mode reaching the payable total is OnTrack"""
    terms = AccountTerms(PaymentMode.MONTHLY, total_payable_cents=20_000, installment_cents=10_000)
    result = reconcile(terms, entries((10_000, datetime(2025, 1, 5)), (10_000, datetime(2025, 2, 5))), ANCHOR)
    assert result.status == AccountStatus.ON_TRACK
    assert result.is_fully_paid is False


def test_matured_status_is_sticky():
    """Test reconciliation never revives a Matured account"""
    terms = AccountTerms(
        PaymentMode.MONTHLY, total_payable_cents=120_000, installment_cents=10_000, status=AccountStatus.MATURED
    )
    result = reconcile(terms, entries((10_000, ANCHOR)), ANCHOR)
    assert result.status == AccountStatus.MATURED


def test_empty_history_keeps_inactive():
    terms = AccountTerms(PaymentMode.MONTHLY, total_payable_cents=120_000, installment_cents=10_000)
    result = reconcile(terms, [], ANCHOR)
    assert result.balance_cents == 0
    assert result.status == AccountStatus.INACTIVE
