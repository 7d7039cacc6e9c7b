"""Ledger reconciler - derives account balance and status from the deposit history"""

from datetime import datetime
from typing import Iterable

from deposit_ledger.domain.models import (
    AccountStatus,
    AccountTerms,
    DepositEntry,
    Mutation,
    PaymentMode,
    Reconciliation,
)
from deposit_ledger.utils.date_utils import month_bounds


def _sum_in_month(deposits: list[DepositEntry], anchor: datetime) -> tuple[int, int]:
    start, end = month_bounds(anchor)
    in_month = [d.amount_cents for d in deposits if start <= d.date < end]
    return sum(in_month), len(in_month)


def _yearly_fully_paid(terms: AccountTerms, balance: int, mutation: Mutation) -> bool:
    """Fully-paid flag of a Yearly account still below its payable total"""
    required = terms.required_yearly_cents
    collected_required = bool(required) and balance >= required
    if mutation == Mutation.CREATE:
        return collected_required
    if mutation == Mutation.RECONCILE:
        return terms.is_fully_paid and collected_required
    # Update or delete below the payable total clears the flag
    return False


def reconcile(
    terms: AccountTerms,
    deposits: Iterable[DepositEntry],
    anchor: datetime,
    mutation: Mutation = Mutation.RECONCILE,
) -> Reconciliation:
    """
    Recompute balance, status and fully-paid flag from the full deposit history.

    The balance is never trusted as a running counter: the result depends only
    on the history, the account's schedule, the anchor and the triggering
    mutation, so calling it twice yields the same answer.

    Rules:
    - balance = sum of all deposits (floored at 0)
    - balance >= total payable: OnTrack, and Yearly accounts are fully paid
    - otherwise by mode, looking at the calendar month of `anchor`:
        Daily   -> OnTrack when the month reaches the monthly target, else Pending
        Monthly -> Active when the month holds a deposit, else Pending
        Yearly  -> Active/Inactive by positive balance; fully paid is set by a
                   create that collects the yearly amount, cleared by an update
                   or delete, and kept by a standalone reconcile while the
                   balance still covers the yearly amount
    - Matured accounts stay Matured; an Inactive account with nothing collected stays Inactive

    Args:
        terms: Account schedule and current derived state
        deposits: Every deposit recorded against the account
        anchor: Moment whose month drives the Daily/Monthly status
        mutation: Operation being reconciled
    """
    history = list(deposits)
    total = sum(d.amount_cents for d in history)
    balance = max(0, total)
    total_payable = terms.total_payable_cents or 0

    is_fully_paid = False
    if total_payable and balance >= total_payable:
        status = AccountStatus.ON_TRACK
        is_fully_paid = terms.payment_mode == PaymentMode.YEARLY
    elif terms.payment_mode == PaymentMode.DAILY:
        month_total, _ = _sum_in_month(history, anchor)
        target = terms.monthly_target_cents
        status = AccountStatus.ON_TRACK if target and month_total >= target else AccountStatus.PENDING
    elif terms.payment_mode == PaymentMode.MONTHLY:
        _, month_count = _sum_in_month(history, anchor)
        status = AccountStatus.ACTIVE if month_count > 0 else AccountStatus.PENDING
    else:
        is_fully_paid = _yearly_fully_paid(terms, balance, mutation)
        status = AccountStatus.ACTIVE if balance > 0 else AccountStatus.INACTIVE

    if terms.status == AccountStatus.MATURED:
        status = AccountStatus.MATURED
    elif terms.status == AccountStatus.INACTIVE and balance == 0:
        status = AccountStatus.INACTIVE

    return Reconciliation(
        balance_cents=balance,
        status=status,
        is_fully_paid=is_fully_paid,
        total_collected_cents=total,
    )
