"""Payment-mode policy engine - decides whether a proposed deposit is admissible"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from deposit_ledger.domain.exceptions import DepositError, ReasonCode, error_for
from deposit_ledger.domain.models import AccountTerms, PaymentMode, PeriodTotals
from deposit_ledger.utils.date_utils import day_bounds, month_bounds


@dataclass
class PolicyDecision:
    """Admissible, or rejected with a specific reason"""

    admissible: bool
    reason: Optional[ReasonCode] = None
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def admit(cls) -> "PolicyDecision":
        return cls(admissible=True)

    @classmethod
    def reject(cls, reason: ReasonCode, message: str, **details: Any) -> "PolicyDecision":
        return cls(admissible=False, reason=reason, message=message, details=details)

    def to_error(self) -> DepositError:
        if self.admissible:
            raise ValueError("An admissible decision has no error")
        return error_for(self.reason, self.message, self.details)


def check_total_payable(terms: AccountTerms, amount_cents: int, collected_cents: int) -> PolicyDecision:
    """
    Global cross-mode cap: recorded deposits may never exceed the payable total.

    collected_cents is the sum of every deposit on the account, excluding
    the deposit being edited on update.
    """
    total_payable = terms.total_payable_cents
    if not isinstance(total_payable, int) or total_payable <= 0:
        return PolicyDecision.reject(
            ReasonCode.MISSING_TOTAL_PAYABLE,
            "Account configuration invalid (missing totalPayableAmount)",
        )

    if collected_cents + amount_cents > total_payable:
        return PolicyDecision.reject(
            ReasonCode.TOTAL_PAYABLE_EXCEEDED,
            f"Total payable exceeded: already {collected_cents}, trying to add {amount_cents}, "
            f"total allowed {total_payable}",
            collected_cents=collected_cents,
            total_payable_cents=total_payable,
        )

    return PolicyDecision.admit()


def check_maturity(terms: AccountTerms, now: datetime) -> PolicyDecision:
    """Reject new deposits once the account has reached its maturity date"""
    if terms.maturity_date is not None and now >= terms.maturity_date:
        return PolicyDecision.reject(
            ReasonCode.ACCOUNT_MATURED,
            "Account has matured, no more deposits allowed",
            maturity_date=terms.maturity_date.isoformat(),
        )
    return PolicyDecision.admit()


def _check_yearly(terms: AccountTerms, amount_cents: int, is_update: bool) -> PolicyDecision:
    required = terms.required_yearly_cents
    if not is_update and terms.is_fully_paid:
        return PolicyDecision.reject(ReasonCode.YEARLY_ALREADY_PAID, "Yearly account already paid in full")

    if amount_cents != required:
        return PolicyDecision.reject(
            ReasonCode.YEARLY_AMOUNT_MISMATCH,
            f"Yearly account requires a single payment of {required}",
            required_cents=required,
        )
    return PolicyDecision.admit()


def _check_monthly(
    terms: AccountTerms, amount_cents: int, totals: PeriodTotals, is_update: bool
) -> PolicyDecision:
    required = terms.installment_cents
    if not required or required <= 0:
        return PolicyDecision.reject(
            ReasonCode.MISSING_INSTALLMENT_AMOUNT,
            "Account configuration invalid (missing installmentAmount)",
        )

    if amount_cents != required:
        return PolicyDecision.reject(
            ReasonCode.MONTHLY_AMOUNT_MISMATCH,
            f"Monthly account requires fixed installment of {required}",
            required_cents=required,
        )

    if totals.period_deposit_count > 0:
        if is_update:
            return PolicyDecision.reject(
                ReasonCode.MONTHLY_MULTIPLE_DEPOSITS,
                "Monthly account can only have one deposit per month",
            )
        return PolicyDecision.reject(ReasonCode.MONTHLY_ALREADY_PAID, "This month's installment already paid")

    return PolicyDecision.admit()


def _check_daily(terms: AccountTerms, amount_cents: int, totals: PeriodTotals) -> PolicyDecision:
    target = terms.monthly_target_cents
    if not target or target <= 0:
        return PolicyDecision.reject(
            ReasonCode.MISSING_MONTHLY_TARGET,
            "Daily account must have a monthlyTarget set",
        )

    collected = totals.period_collected_cents
    if collected + amount_cents > target:
        return PolicyDecision.reject(
            ReasonCode.DAILY_MONTHLY_TARGET_EXCEEDED,
            f"Daily account limit exceeded: monthly target is {target}, already collected {collected}",
            collected_cents=collected,
            monthly_target_cents=target,
        )
    return PolicyDecision.admit()


def check_payment_mode(
    terms: AccountTerms, amount_cents: int, totals: PeriodTotals, is_update: bool = False
) -> PolicyDecision:
    """
    Apply the rules of the account's payment mode.

    Requirements:
    - Yearly: exactly the yearly amount (defaults to total payable); no new
      deposit once fully paid
    - Monthly: exactly the installment; at most one deposit per calendar month
    - Daily: cumulative month total capped at the monthly target

    totals must describe the calendar month of the deposit's (effective) date.
    """
    if terms.payment_mode == PaymentMode.YEARLY:
        return _check_yearly(terms, amount_cents, is_update)
    if terms.payment_mode == PaymentMode.MONTHLY:
        return _check_monthly(terms, amount_cents, totals, is_update)
    if terms.payment_mode == PaymentMode.DAILY:
        return _check_daily(terms, amount_cents, totals)
    raise ValueError(f"Unknown payment mode: {terms.payment_mode}")


def evaluate_deposit(
    terms: AccountTerms,
    amount_cents: int,
    totals: PeriodTotals,
    now: datetime,
    is_update: bool = False,
) -> PolicyDecision:
    """
    Main entry point: run every check a deposit must pass, in order.

    Order: global payable cap, maturity gate (create only), payment-mode rules.
    The first rejection wins.
    """
    decision = check_total_payable(terms, amount_cents, totals.collected_cents)
    if not decision.admissible:
        return decision

    if not is_update:
        decision = check_maturity(terms, now)
        if not decision.admissible:
            return decision

    return check_payment_mode(terms, amount_cents, totals, is_update)


def collection_period(mode: PaymentMode, now: datetime) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Period in which an account expects its next deposit.

    Daily accounts collect once per day, Monthly once per month and Yearly
    once ever, so Yearly returns an unbounded (None, None) range.
    """
    if mode == PaymentMode.DAILY:
        return day_bounds(now)
    if mode == PaymentMode.MONTHLY:
        return month_bounds(now)
    return None, None
