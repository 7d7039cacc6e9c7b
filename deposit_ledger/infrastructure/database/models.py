"""SQLAlchemy ORM models for users, accounts, deposits and the audit trail"""

import uuid
from sqlalchemy import Column, String, BigInteger, Boolean, DateTime, ForeignKey, Integer, Text, JSON, event
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from deposit_ledger.domain.exceptions import AuditImmutableError

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Admin, manager, agent or client; assigned_to links client -> agent -> manager"""

    __tablename__ = "app_user"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    role = Column(Text, nullable=False, index=True)
    assigned_to = Column(String(36), ForeignKey("app_user.id"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class Account(Base):
    """Recurring-deposit account with its payment schedule and derived balance"""

    __tablename__ = "account"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_number = Column(Text, nullable=False, unique=True)
    client_name = Column(Text, nullable=True)
    user_id = Column(String(36), ForeignKey("app_user.id"), nullable=False, index=True)
    assigned_agent = Column(String(36), ForeignKey("app_user.id"), nullable=True, index=True)
    scheme_type = Column(Text, nullable=False, default="RD")

    payment_mode = Column(Text, nullable=False)
    total_payable_cents = Column(BigInteger, nullable=True)
    installment_cents = Column(BigInteger, nullable=True)
    monthly_target_cents = Column(BigInteger, nullable=True)
    yearly_amount_cents = Column(BigInteger, nullable=True)

    # Derived from deposits; written only by reconciliation
    balance_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default="Inactive")
    is_fully_paid = Column(Boolean, nullable=False, default=False)
    maturity_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    deposits = relationship("Deposit", back_populates="account")


class Deposit(Base):
    """Single collected deposit"""

    __tablename__ = "deposit"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("account.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("app_user.id"), nullable=False, index=True)
    collected_by = Column(String(36), ForeignKey("app_user.id"), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    scheme_type = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    account = relationship("Account", back_populates="deposits")


class AuditLog(Base):
    """Append-only record of every attempted deposit mutation"""

    __tablename__ = "audit_log"

    # Insertion sequence; orders events written within one transaction
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    action = Column(Text, nullable=False, index=True)
    entity_type = Column(Text, nullable=False)
    entity_id = Column(String(36), nullable=True, index=True)
    details = Column(JSON, nullable=False, default=dict)
    performed_by = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


@event.listens_for(AuditLog, "before_update")
def prevent_audit_update(mapper, connection, target):
    raise AuditImmutableError(f"Audit record {target.id} is append-only and cannot be modified")


@event.listens_for(AuditLog, "before_delete")
def prevent_audit_delete(mapper, connection, target):
    raise AuditImmutableError(f"Audit record {target.id} is append-only and cannot be deleted")
