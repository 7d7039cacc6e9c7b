"""Data access layer for ledger entities"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import func
from sqlalchemy.orm import Session, Query
from deposit_ledger.infrastructure.database.models import Account, AuditLog, Deposit, User
from deposit_ledger.domain.models import AccountStatus, AccountTerms, DepositEntry, PaymentMode


def account_terms(account: Account) -> AccountTerms:
    """Map an account row onto the policy engine's view of it"""
    return AccountTerms(
        payment_mode=PaymentMode(account.payment_mode),
        total_payable_cents=account.total_payable_cents,
        installment_cents=account.installment_cents,
        monthly_target_cents=account.monthly_target_cents,
        yearly_amount_cents=account.yearly_amount_cents,
        is_fully_paid=bool(account.is_fully_paid),
        maturity_date=account.maturity_date,
        status=AccountStatus(account.status),
    )


class UserRepository:
    """Repository for users and their assignment hierarchy"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)

    def ids_assigned_to(self, owner_ids: Sequence[str], role: str) -> List[str]:
        """IDs of users with the given role assigned to any of owner_ids"""
        if not owner_ids:
            return []
        rows = (
            self.db.query(User.id)
            .filter(User.assigned_to.in_(list(owner_ids)), User.role == role)
            .all()
        )
        return [row.id for row in rows]


class AccountRepository:
    """Repository for recurring-deposit accounts"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, account_id: str) -> Optional[Account]:
        return self.db.get(Account, account_id)

    def get_for_update(self, account_id: str) -> Optional[Account]:
        """Fetch account holding a row lock until the transaction ends"""
        return (
            self.db.query(Account)
            .filter(Account.id == account_id)
            .with_for_update()
            .first()
        )

    def list_filtered(
        self,
        assigned_agents: Optional[Sequence[str]] = None,
        user_id: Optional[str] = None,
    ) -> List[Account]:
        """Accounts restricted to the given agents and/or owning client"""
        query = self.db.query(Account)
        if assigned_agents is not None:
            query = query.filter(Account.assigned_agent.in_(list(assigned_agents)))
        if user_id is not None:
            query = query.filter(Account.user_id == user_id)
        return query.order_by(Account.account_number).all()

    def list_due_for_maturity(self, now: datetime) -> List[Account]:
        """Accounts past their maturity date not yet marked Matured"""
        return (
            self.db.query(Account)
            .filter(
                Account.maturity_date.isnot(None),
                Account.maturity_date <= now,
                Account.status != AccountStatus.MATURED.value,
            )
            .all()
        )


class DepositRepository:
    """Repository for deposits with aggregate queries"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, deposit_id: str) -> Optional[Deposit]:
        return self.db.get(Deposit, deposit_id)

    def add(
        self,
        account_id: str,
        user_id: str,
        collected_by: str,
        amount_cents: int,
        date: datetime,
        scheme_type: str,
    ) -> Deposit:
        """Persist a deposit (flushed, not committed)"""
        deposit = Deposit(
            account_id=account_id,
            user_id=user_id,
            collected_by=collected_by,
            amount_cents=amount_cents,
            date=date,
            scheme_type=scheme_type,
        )
        self.db.add(deposit)
        self.db.flush()
        return deposit

    def delete(self, deposit: Deposit) -> None:
        self.db.delete(deposit)
        self.db.flush()

    def _scoped(
        self,
        query: Query,
        account_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
        exclude_id: Optional[str],
    ) -> Query:
        query = query.filter(Deposit.account_id == account_id)
        if start is not None:
            query = query.filter(Deposit.date >= start)
        if end is not None:
            query = query.filter(Deposit.date < end)
        if exclude_id is not None:
            query = query.filter(Deposit.id != exclude_id)
        return query

    def sum_for_account(
        self,
        account_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        exclude_id: Optional[str] = None,
    ) -> int:
        """Sum of deposit amounts, optionally bounded to [start, end) and excluding one deposit"""
        query = self._scoped(
            self.db.query(func.coalesce(func.sum(Deposit.amount_cents), 0)),
            account_id,
            start,
            end,
            exclude_id,
        )
        return int(query.scalar() or 0)

    def count_for_account(
        self,
        account_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        exclude_id: Optional[str] = None,
    ) -> int:
        query = self._scoped(self.db.query(func.count(Deposit.id)), account_id, start, end, exclude_id)
        return int(query.scalar() or 0)

    def history(self, account_id: str) -> List[DepositEntry]:
        """Every deposit on the account, oldest first"""
        rows = (
            self.db.query(Deposit.id, Deposit.amount_cents, Deposit.date)
            .filter(Deposit.account_id == account_id)
            .order_by(Deposit.date)
            .all()
        )
        return [DepositEntry(amount_cents=r.amount_cents, date=r.date, deposit_id=r.id) for r in rows]

    def list_filtered(
        self,
        account_id: Optional[str] = None,
        collected_by: Optional[Sequence[str]] = None,
        user_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Deposit]:
        """Deposits matching the filters within [start, end)"""
        query = self.db.query(Deposit)
        if account_id is not None:
            query = query.filter(Deposit.account_id == account_id)
        if collected_by is not None:
            query = query.filter(Deposit.collected_by.in_(list(collected_by)))
        if user_id is not None:
            query = query.filter(Deposit.user_id == user_id)
        if start is not None:
            query = query.filter(Deposit.date >= start)
        if end is not None:
            query = query.filter(Deposit.date < end)
        return query.order_by(Deposit.date.desc()).all()


class AuditRepository:
    """Repository for the append-only audit trail"""

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        action: str,
        entity_type: str,
        details: Dict[str, Any],
        performed_by: Optional[str],
        entity_id: Optional[str] = None,
    ) -> AuditLog:
        entry = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            performed_by=performed_by,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_events(
        self,
        action: Optional[str] = None,
        entity_id: Optional[str] = None,
        performed_by: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditLog]:
        """Most recent audit events first"""
        query = self.db.query(AuditLog)
        if action is not None:
            query = query.filter(AuditLog.action == action)
        if entity_id is not None:
            query = query.filter(AuditLog.entity_id == entity_id)
        if performed_by is not None:
            query = query.filter(AuditLog.performed_by == performed_by)
        return query.order_by(AuditLog.id.desc()).limit(limit).all()
