"""Domain-specific exceptions"""

from enum import Enum
from typing import Any, Dict, Optional


class ReasonCode(str, Enum):
    """Machine-readable rejection reasons, recorded in audit details and returned to callers"""

    ROLE_NOT_ALLOWED = "ROLE_NOT_ALLOWED"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_DATE = "INVALID_DATE"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    DEPOSIT_NOT_FOUND = "DEPOSIT_NOT_FOUND"
    USER_ACCOUNT_MISMATCH = "USER_ACCOUNT_MISMATCH"
    AGENT_SCOPE_VIOLATION = "AGENT_SCOPE_VIOLATION"
    MANAGER_SCOPE_VIOLATION = "MANAGER_SCOPE_VIOLATION"
    COLLECTED_BY_MISMATCH = "COLLECTED_BY_MISMATCH"
    MISSING_TOTAL_PAYABLE = "MISSING_TOTAL_PAYABLE"
    TOTAL_PAYABLE_EXCEEDED = "TOTAL_PAYABLE_EXCEEDED"
    ACCOUNT_MATURED = "ACCOUNT_MATURED"
    YEARLY_ALREADY_PAID = "YEARLY_ALREADY_PAID"
    YEARLY_AMOUNT_MISMATCH = "YEARLY_AMOUNT_MISMATCH"
    CANNOT_DELETE_ONLY_YEARLY_DEPOSIT = "CANNOT_DELETE_ONLY_YEARLY_DEPOSIT"
    MISSING_INSTALLMENT_AMOUNT = "MISSING_INSTALLMENT_AMOUNT"
    MONTHLY_AMOUNT_MISMATCH = "MONTHLY_AMOUNT_MISMATCH"
    MONTHLY_ALREADY_PAID = "MONTHLY_ALREADY_PAID"
    MONTHLY_MULTIPLE_DEPOSITS = "MONTHLY_MULTIPLE_DEPOSITS"
    MISSING_MONTHLY_TARGET = "MISSING_MONTHLY_TARGET"
    DAILY_MONTHLY_TARGET_EXCEEDED = "DAILY_MONTHLY_TARGET_EXCEEDED"
    DAILY_ALREADY_RECORDED = "DAILY_ALREADY_RECORDED"


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class DepositError(DomainException):
    """
    A deposit operation was rejected.

    Carries the reason code, a human-readable message and the structured
    context that goes into the audit record.
    """

    def __init__(self, reason: ReasonCode, message: str, details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ForbiddenError(DepositError):
    """Caller's role or scope does not permit the operation"""

    pass


class PolicyRejection(DepositError):
    """Input or payment-plan rule violation (caller fault)"""

    pass


class NotFoundError(DepositError):
    """Referenced deposit or account does not exist"""

    pass


class ConfigurationDefect(DepositError):
    """Account was constructed inconsistently (server fault, not a user mistake)"""

    pass


_FORBIDDEN = {
    ReasonCode.ROLE_NOT_ALLOWED,
    ReasonCode.AGENT_SCOPE_VIOLATION,
    ReasonCode.MANAGER_SCOPE_VIOLATION,
}
_NOT_FOUND = {ReasonCode.ACCOUNT_NOT_FOUND, ReasonCode.DEPOSIT_NOT_FOUND}
_CONFIGURATION = {
    ReasonCode.MISSING_TOTAL_PAYABLE,
    ReasonCode.MISSING_INSTALLMENT_AMOUNT,
    ReasonCode.MISSING_MONTHLY_TARGET,
}


def error_for(reason: ReasonCode, message: str, details: Optional[Dict[str, Any]] = None) -> DepositError:
    """Build the exception class matching the kind of fault a reason code represents"""
    if reason in _FORBIDDEN:
        cls = ForbiddenError
    elif reason in _NOT_FOUND:
        cls = NotFoundError
    elif reason in _CONFIGURATION:
        cls = ConfigurationDefect
    else:
        cls = PolicyRejection
    return cls(reason, message, details)


class AuditImmutableError(DomainException):
    """Attempt to modify or delete an append-only audit record"""

    pass
