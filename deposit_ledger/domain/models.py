"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Role(str, Enum):
    """Caller roles, resolved upstream by the authentication layer"""

    ADMIN = "Admin"
    MANAGER = "Manager"
    AGENT = "Agent"
    USER = "User"


class PaymentMode(str, Enum):
    DAILY = "Daily"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


class AccountStatus(str, Enum):
    INACTIVE = "Inactive"
    ACTIVE = "Active"
    PENDING = "Pending"
    ON_TRACK = "OnTrack"
    MATURED = "Matured"


class Mutation(str, Enum):
    """Change that triggered a reconciliation"""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RECONCILE = "reconcile"


@dataclass
class Caller:
    """Capability context of the user performing an operation"""

    id: str
    role: Role


@dataclass
class Scope:
    """Agents and clients a caller may act upon"""

    is_all: bool = False
    agents: List[str] = field(default_factory=list)
    clients: List[str] = field(default_factory=list)


@dataclass
class AccountTerms:
    """Schedule parameters and derived state of an account, as the policy sees them"""

    payment_mode: PaymentMode
    total_payable_cents: Optional[int]
    installment_cents: Optional[int] = None
    monthly_target_cents: Optional[int] = None
    yearly_amount_cents: Optional[int] = None
    is_fully_paid: bool = False
    maturity_date: Optional[datetime] = None
    status: AccountStatus = AccountStatus.INACTIVE

    @property
    def required_yearly_cents(self) -> Optional[int]:
        """Single payment a Yearly account expects"""
        if self.yearly_amount_cents is not None:
            return self.yearly_amount_cents
        return self.total_payable_cents


@dataclass
class DepositEntry:
    """A recorded deposit as seen by the reconciler"""

    amount_cents: int
    date: datetime
    deposit_id: Optional[str] = None


@dataclass
class PeriodTotals:
    """
    Aggregates a policy check runs against.

    On update every figure excludes the deposit being edited.
    """

    collected_cents: int = 0
    period_collected_cents: int = 0
    period_deposit_count: int = 0


@dataclass
class Reconciliation:
    """Derived account fields recomputed from the deposit history"""

    balance_cents: int
    status: AccountStatus
    is_fully_paid: bool
    total_collected_cents: int


@dataclass
class BulkItem:
    """Single entry in a bulk collection batch"""

    account_id: str
    amount_cents: int
    collected_by: str


@dataclass
class BulkResult:
    """Outcome of a bulk collection run"""

    total: int = 0
    success_accounts: List[Dict[str, Any]] = field(default_factory=list)
    failed_accounts: List[Dict[str, Any]] = field(default_factory=list)
    failure_summary: Dict[str, int] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.success_accounts)

    @property
    def failed_count(self) -> int:
        return len(self.failed_accounts)

    def record_success(self, entry: Dict[str, Any]) -> None:
        self.success_accounts.append(entry)

    def record_failure(self, entry: Dict[str, Any], message: str) -> None:
        self.failed_accounts.append({**entry, "error": message})
        self.failure_summary[message] = self.failure_summary.get(message, 0) + 1
