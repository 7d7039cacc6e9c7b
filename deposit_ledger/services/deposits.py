"""Deposit mutation orchestrator - validate, commit, reconcile and audit every deposit change"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from deposit_ledger.config import settings
from deposit_ledger.domain.exceptions import (
    DepositError,
    ForbiddenError,
    NotFoundError,
    PolicyRejection,
    ReasonCode,
    error_for,
)
from deposit_ledger.domain.models import (
    AccountStatus,
    BulkItem,
    BulkResult,
    Caller,
    Mutation,
    PaymentMode,
    PeriodTotals,
    Reconciliation,
    Role,
    Scope,
)
from deposit_ledger.domain.policy import collection_period, evaluate_deposit
from deposit_ledger.domain.reconciler import reconcile
from deposit_ledger.infrastructure.database.models import Account, Deposit
from deposit_ledger.infrastructure.database.repositories import (
    AccountRepository,
    DepositRepository,
    UserRepository,
    account_terms,
)
from deposit_ledger.infrastructure.observability.logging import log_deposit_outcome
from deposit_ledger.infrastructure.observability.metrics import (
    bulk_failure_counter,
    bulk_items_histogram,
    reconciliation_counter,
    record_deposit_outcome,
)
from deposit_ledger.services.audit import AuditRecorder
from deposit_ledger.services.scope import ScopeResolver
from deposit_ledger.utils.date_utils import month_bounds, parse_datetime, utcnow

CREATE_DEPOSIT = "CREATE_DEPOSIT"
UPDATE_DEPOSIT = "UPDATE_DEPOSIT"
DELETE_DEPOSIT = "DELETE_DEPOSIT"
BULK_CREATE_DEPOSIT = "BULK_CREATE_DEPOSIT"
RECONCILE_ACCOUNT = "RECONCILE_ACCOUNT"

_OPERATIONS = {
    CREATE_DEPOSIT: "create",
    UPDATE_DEPOSIT: "update",
    DELETE_DEPOSIT: "delete",
    BULK_CREATE_DEPOSIT: "bulk_create",
    RECONCILE_ACCOUNT: "reconcile",
}

# Friendlier messages for the bulk duplicate-period pre-check
_ALREADY_COLLECTED = {
    PaymentMode.DAILY: (ReasonCode.DAILY_ALREADY_RECORDED, "Today's deposit already recorded"),
    PaymentMode.MONTHLY: (ReasonCode.MONTHLY_ALREADY_PAID, "This month's deposit already recorded"),
    PaymentMode.YEARLY: (ReasonCode.YEARLY_ALREADY_PAID, "Yearly account already paid in full"),
}


@dataclass
class DepositOutcome:
    """Result of a committed deposit mutation"""

    account: Account
    reconciliation: Reconciliation
    deposit: Optional[Deposit] = None
    previous_balance_cents: Optional[int] = None


def _deposit_snapshot(deposit: Deposit) -> Dict[str, Any]:
    return {
        "amount_cents": deposit.amount_cents,
        "date": deposit.date,
        "scheme_type": deposit.scheme_type,
    }


class DepositService:
    """
    Orchestrates create/update/delete/bulk deposit operations.

    Every operation runs validation, policy checks, the mutation,
    reconciliation and audit emission in a single transaction. Rejections
    are audited and committed before the typed error is raised, so the
    audit trail holds one event per attempt.

    Accounts are loaded with SELECT ... FOR UPDATE, which serialises
    concurrent mutations of the same account on PostgreSQL.
    """

    CREATE_ROLES = (Role.ADMIN, Role.MANAGER, Role.AGENT)

    def __init__(
        self,
        db: Session,
        scope_resolver: Optional[ScopeResolver] = None,
        clock: Callable[[], datetime] = utcnow,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.accounts = AccountRepository(db)
        self.deposits = DepositRepository(db)
        self.users = UserRepository(db)
        self.audit = AuditRecorder(db)
        self.scope_resolver = scope_resolver or ScopeResolver(db)
        self.clock = clock
        self.batch_size = batch_size or settings.bulk_batch_size

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _reject(self, action: str, caller: Caller, error: DepositError, context: Dict[str, Any]) -> DepositError:
        """Audit a rejected attempt, commit it, and hand the error back for raising"""
        self.audit.record_failure(action, error, context, caller.id)
        self.db.commit()

        operation = _OPERATIONS[action]
        record_deposit_outcome(operation, error.reason.value)
        log_deposit_outcome(operation, caller.id, error.reason.value, account_id=context.get("account_id"))
        return error

    def _reconcile(self, account: Account, anchor: datetime, mutation: Mutation) -> Reconciliation:
        """Overwrite the account's derived fields with a fresh recomputation"""
        result = reconcile(account_terms(account), self.deposits.history(account.id), anchor, mutation)
        account.balance_cents = result.balance_cents
        account.status = result.status.value
        account.is_fully_paid = result.is_fully_paid
        self.db.flush()

        reconciliation_counter.labels(status=result.status.value).inc()
        return result

    def _period_totals(self, account_id: str, moment: datetime, exclude_id: Optional[str] = None) -> PeriodTotals:
        start, end = month_bounds(moment)
        return PeriodTotals(
            collected_cents=self.deposits.sum_for_account(account_id, exclude_id=exclude_id),
            period_collected_cents=self.deposits.sum_for_account(account_id, start, end, exclude_id),
            period_deposit_count=self.deposits.count_for_account(account_id, start, end, exclude_id),
        )

    def _succeed(self, action: str, caller: Caller, outcome: DepositOutcome, amount_cents: Optional[int] = None) -> DepositOutcome:
        self.db.commit()

        operation = _OPERATIONS[action]
        record_deposit_outcome(operation, "success", amount_cents)
        log_deposit_outcome(
            operation,
            caller.id,
            "success",
            account_id=outcome.account.id,
            deposit_id=outcome.deposit.id if outcome.deposit is not None else None,
            balance_cents=outcome.reconciliation.balance_cents,
        )
        return outcome

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_deposit(self, caller: Caller, account_id: str, user_id: str, amount_cents: int) -> DepositOutcome:
        """
        Record a new deposit dated now.

        Flow:
        1. Role (Admin/Manager/Agent) and amount checks
        2. Account lookup (row-locked) and client match
        3. Scope check for Agents and Managers
        4. Global payable cap, maturity gate, payment-mode rules
        5. Persist, reconcile, audit

        Raises:
            DepositError: Subclass matching the rejection (already audited)
        """
        context = {"account_id": account_id, "user_id": user_id, "amount_cents": amount_cents}

        def reject(reason: ReasonCode, message: str, **details: Any) -> DepositError:
            return self._reject(CREATE_DEPOSIT, caller, error_for(reason, message, details), context)

        if caller.role not in self.CREATE_ROLES:
            raise reject(ReasonCode.ROLE_NOT_ALLOWED, "Only Admin, Manager, or Agents can create deposits")

        if not isinstance(amount_cents, int) or amount_cents <= 0:
            raise reject(ReasonCode.INVALID_AMOUNT, "Amount must be greater than 0")

        account = self.accounts.get_for_update(account_id)
        if account is None:
            raise reject(ReasonCode.ACCOUNT_NOT_FOUND, "Account not found")

        if account.user_id != user_id:
            raise reject(ReasonCode.USER_ACCOUNT_MISMATCH, "User does not match account")

        if caller.role == Role.AGENT:
            client = self.users.get(user_id)
            if client is None or client.assigned_to != caller.id:
                raise reject(ReasonCode.AGENT_SCOPE_VIOLATION, "You can only deposit for your own clients")
        elif caller.role == Role.MANAGER:
            if user_id not in self.scope_resolver.scope_for(caller).clients:
                raise reject(
                    ReasonCode.MANAGER_SCOPE_VIOLATION,
                    "You can only deposit for clients under your agents",
                )

        now = self.clock()
        totals = self._period_totals(account.id, now)
        decision = evaluate_deposit(account_terms(account), amount_cents, totals, now)
        if not decision.admissible:
            if decision.reason == ReasonCode.ACCOUNT_MATURED:
                # Committed together with the failure event
                account.status = AccountStatus.MATURED.value
            raise self._reject(CREATE_DEPOSIT, caller, decision.to_error(), context)

        deposit = self.deposits.add(
            account_id=account.id,
            user_id=user_id,
            collected_by=caller.id,
            amount_cents=amount_cents,
            date=now,
            scheme_type=account.scheme_type,
        )
        result = self._reconcile(account, anchor=now, mutation=Mutation.CREATE)

        self.audit.record(
            CREATE_DEPOSIT,
            "Deposit",
            deposit.id,
            {
                "amount_cents": amount_cents,
                "scheme_type": account.scheme_type,
                "account_id": account.id,
                "user_id": user_id,
                "account_balance_cents": result.balance_cents,
                "total_collected_cents": result.total_collected_cents,
                "total_payable_cents": account.total_payable_cents,
            },
            caller.id,
        )
        return self._succeed(
            CREATE_DEPOSIT,
            caller,
            DepositOutcome(account=account, reconciliation=result, deposit=deposit),
            amount_cents,
        )

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_deposit(
        self,
        caller: Caller,
        deposit_id: str,
        amount_cents: Optional[int] = None,
        date: Optional[str | datetime] = None,
    ) -> DepositOutcome:
        """
        Change a deposit's amount and/or date (Admin only).

        The edited deposit is re-validated in full against the period of its
        effective date, with its own current record excluded from every
        aggregate. scheme_type is re-synced from the account.
        """
        context: Dict[str, Any] = {"deposit_id": deposit_id, "amount_cents": amount_cents, "date": date}

        def reject(reason: ReasonCode, message: str, **details: Any) -> DepositError:
            return self._reject(UPDATE_DEPOSIT, caller, error_for(reason, message, details), context)

        if caller.role != Role.ADMIN:
            raise reject(ReasonCode.ROLE_NOT_ALLOWED, "Only Admin can update deposits")

        deposit = self.deposits.get(deposit_id)
        if deposit is None:
            raise reject(ReasonCode.DEPOSIT_NOT_FOUND, "Deposit not found")

        account = self.accounts.get_for_update(deposit.account_id)
        if account is None:
            raise reject(ReasonCode.ACCOUNT_NOT_FOUND, "Associated account not found")
        context["account_id"] = account.id

        if amount_cents is not None and (not isinstance(amount_cents, int) or amount_cents <= 0):
            raise reject(ReasonCode.INVALID_AMOUNT, "Amount must be a positive number")

        new_date = None
        if date:
            try:
                new_date = parse_datetime(date)
            except (TypeError, ValueError):
                raise reject(ReasonCode.INVALID_DATE, "Invalid date format") from None

        new_amount = amount_cents if amount_cents is not None else deposit.amount_cents
        effective_date = new_date or deposit.date

        totals = self._period_totals(account.id, effective_date, exclude_id=deposit.id)
        decision = evaluate_deposit(account_terms(account), new_amount, totals, self.clock(), is_update=True)
        if not decision.admissible:
            raise self._reject(UPDATE_DEPOSIT, caller, decision.to_error(), context)

        old_values = _deposit_snapshot(deposit)
        deposit.amount_cents = new_amount
        deposit.date = effective_date
        deposit.scheme_type = account.scheme_type
        self.db.flush()

        result = self._reconcile(account, anchor=effective_date, mutation=Mutation.UPDATE)

        self.audit.record(
            UPDATE_DEPOSIT,
            "Deposit",
            deposit.id,
            {
                "old": old_values,
                "new": _deposit_snapshot(deposit),
                "account_id": account.id,
                "account_balance_cents": result.balance_cents,
                "total_collected_cents": result.total_collected_cents,
                "total_payable_cents": account.total_payable_cents,
            },
            caller.id,
        )
        return self._succeed(
            UPDATE_DEPOSIT,
            caller,
            DepositOutcome(account=account, reconciliation=result, deposit=deposit),
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_deposit(self, caller: Caller, deposit_id: str) -> DepositOutcome:
        """
        Remove a deposit (Admin only) and re-derive the account.

        The only remaining deposit of a Yearly account can never be deleted.
        A DELETE_DEPOSIT_ATTEMPT event precedes the removal inside the same
        transaction.
        """
        context: Dict[str, Any] = {"deposit_id": deposit_id}

        def reject(reason: ReasonCode, message: str, **details: Any) -> DepositError:
            return self._reject(DELETE_DEPOSIT, caller, error_for(reason, message, details), context)

        if caller.role != Role.ADMIN:
            raise reject(ReasonCode.ROLE_NOT_ALLOWED, "Only Admin can delete deposits")

        deposit = self.deposits.get(deposit_id)
        if deposit is None:
            raise reject(ReasonCode.DEPOSIT_NOT_FOUND, "Deposit not found")

        account = self.accounts.get_for_update(deposit.account_id)
        if account is None:
            raise reject(ReasonCode.ACCOUNT_NOT_FOUND, "Associated account not found")
        context["account_id"] = account.id

        collected_all = self.deposits.sum_for_account(account.id)

        if account.payment_mode == PaymentMode.YEARLY.value and self.deposits.count_for_account(account.id) == 1:
            raise reject(
                ReasonCode.CANNOT_DELETE_ONLY_YEARLY_DEPOSIT,
                "Cannot delete the only yearly deposit, account would become invalid",
            )

        snapshot = _deposit_snapshot(deposit)
        removed_id = deposit.id
        removed_user = deposit.user_id
        anchor = deposit.date

        self.audit.record(
            "DELETE_DEPOSIT_ATTEMPT",
            "Deposit",
            removed_id,
            {
                "reason": "DELETE_REQUEST",
                "account_id": account.id,
                "deposit_amount_cents": deposit.amount_cents,
                "old_collected_total_cents": collected_all,
                "expected_new_total_cents": collected_all - deposit.amount_cents,
                "payment_mode": account.payment_mode,
            },
            caller.id,
        )

        self.deposits.delete(deposit)
        result = self._reconcile(account, anchor=anchor, mutation=Mutation.DELETE)

        self.audit.record(
            DELETE_DEPOSIT,
            "Deposit",
            removed_id,
            {
                **snapshot,
                "account_id": account.id,
                "user_id": removed_user,
                "old_balance_cents": collected_all,
                "new_balance_cents": result.balance_cents,
                "account_status": result.status,
            },
            caller.id,
        )
        return self._succeed(
            DELETE_DEPOSIT,
            caller,
            DepositOutcome(account=account, reconciliation=result, previous_balance_cents=collected_all),
        )

    # ------------------------------------------------------------------
    # Bulk create
    # ------------------------------------------------------------------

    def bulk_create(self, caller: Caller, items: List[BulkItem]) -> BulkResult:
        """
        Record a batch of today's collections for an Agent.

        Items are processed in order, in sub-batches of `batch_size`. Each
        item is validated and committed on its own: a failing item is
        reported in the result and never aborts its siblings.
        """
        if caller.role != Role.AGENT:
            raise self._reject(
                BULK_CREATE_DEPOSIT,
                caller,
                ForbiddenError(ReasonCode.ROLE_NOT_ALLOWED, "Only Agents can perform bulk deposits"),
                {"item_count": len(items)},
            )

        result = BulkResult(total=len(items))
        bulk_items_histogram.observe(len(items))
        now = self.clock()

        for offset in range(0, len(items), self.batch_size):
            batch = items[offset:offset + self.batch_size]
            for item in batch:
                entry: Dict[str, Any] = {"account_id": item.account_id, "amount_cents": item.amount_cents}
                try:
                    self._collect_item(caller, item, now, entry)
                except DepositError as e:
                    bulk_failure_counter.inc()
                    result.record_failure({**entry, "reason": e.reason.value}, e.message)
                except Exception as e:
                    # One item's fault must not abort the rest of the batch
                    self.db.rollback()
                    bulk_failure_counter.inc()
                    logging.exception(
                        "Bulk item failed unexpectedly",
                        extra={"caller_id": caller.id, "account_id": item.account_id},
                    )
                    result.record_failure(entry, str(e) or "Unknown error")
                else:
                    result.record_success(entry)

            logging.info(
                "Bulk batch processed",
                extra={
                    "step": "bulk_batch",
                    "caller_id": caller.id,
                    "batch_offset": offset,
                    "batch_size": len(batch),
                    "success_count": result.success_count,
                    "failed_count": result.failed_count,
                },
            )

        return result

    def _collect_item(self, caller: Caller, item: BulkItem, now: datetime, entry: Dict[str, Any]) -> None:
        context = {"account_id": item.account_id, "amount_cents": item.amount_cents, "collected_by": item.collected_by}

        if item.collected_by != caller.id:
            raise self._reject(
                CREATE_DEPOSIT,
                caller,
                PolicyRejection(ReasonCode.COLLECTED_BY_MISMATCH, "Deposit must be collected by the logged-in agent"),
                context,
            )

        account = self.accounts.get(item.account_id)
        if account is None:
            raise self._reject(
                CREATE_DEPOSIT,
                caller,
                NotFoundError(ReasonCode.ACCOUNT_NOT_FOUND, "Account not found"),
                context,
            )
        entry["account_number"] = account.account_number
        entry["client_name"] = account.client_name

        mode = PaymentMode(account.payment_mode)
        start, end = collection_period(mode, now)
        if self.deposits.count_for_account(account.id, start, end) > 0:
            reason, message = _ALREADY_COLLECTED[mode]
            raise self._reject(CREATE_DEPOSIT, caller, PolicyRejection(reason, message), context)

        self.create_deposit(caller, account.id, account.user_id, item.amount_cents)

    # ------------------------------------------------------------------
    # Eligible accounts & reconciliation
    # ------------------------------------------------------------------

    def _accounts_in_scope(self, caller: Caller, scope: Scope) -> List[Account]:
        if scope.is_all:
            return self.accounts.list_filtered()
        if caller.role == Role.MANAGER:
            return self.accounts.list_filtered(assigned_agents=scope.agents)
        if caller.role == Role.AGENT:
            return self.accounts.list_filtered(assigned_agents=[caller.id])
        return self.accounts.list_filtered(user_id=caller.id)

    def eligible_accounts(self, caller: Caller) -> List[Account]:
        """
        Accounts in the caller's scope still expecting a deposit this period.

        Excludes Matured and fully paid accounts and any account that already
        has a deposit for today (Daily), this month (Monthly) or ever (Yearly).
        Read-only; nothing is audited.
        """
        scope = self.scope_resolver.scope_for(caller)
        now = self.clock()

        eligible = []
        for account in self._accounts_in_scope(caller, scope):
            if account.status == AccountStatus.MATURED.value or account.is_fully_paid:
                continue
            start, end = collection_period(PaymentMode(account.payment_mode), now)
            if self.deposits.count_for_account(account.id, start, end) == 0:
                eligible.append(account)
        return eligible

    def reconcile_account(self, caller: Caller, account_id: str) -> DepositOutcome:
        """Re-derive an account from its deposit history on demand (Admin only)"""
        context = {"account_id": account_id}

        def reject(reason: ReasonCode, message: str) -> DepositError:
            return self._reject(RECONCILE_ACCOUNT, caller, error_for(reason, message), context)

        if caller.role != Role.ADMIN:
            raise reject(ReasonCode.ROLE_NOT_ALLOWED, "Only Admin can reconcile accounts")

        account = self.accounts.get_for_update(account_id)
        if account is None:
            raise reject(ReasonCode.ACCOUNT_NOT_FOUND, "Account not found")

        before = {
            "balance_cents": account.balance_cents,
            "status": account.status,
            "is_fully_paid": account.is_fully_paid,
        }
        result = self._reconcile(account, anchor=self.clock(), mutation=Mutation.RECONCILE)

        self.audit.record(
            RECONCILE_ACCOUNT,
            "Account",
            account.id,
            {
                "old": before,
                "new": {
                    "balance_cents": result.balance_cents,
                    "status": result.status,
                    "is_fully_paid": result.is_fully_paid,
                },
            },
            caller.id,
        )
        return self._succeed(
            RECONCILE_ACCOUNT,
            caller,
            DepositOutcome(account=account, reconciliation=result, previous_balance_cents=before["balance_cents"]),
        )
