"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from deposit_ledger.domain.models import Caller, Role
from deposit_ledger.infrastructure.clients.audit_webhook import AuditWebhookClient
from deposit_ledger.infrastructure.database.session import get_db
from deposit_ledger.services.deposits import DepositService
from deposit_ledger.services.queries import DepositQueryService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_caller(
    x_caller_id: str = Header(..., description="Authenticated user id, set by the auth gateway"),
    x_caller_role: Role = Header(..., description="Authenticated user role, set by the auth gateway"),
) -> Caller:
    """Capability context resolved upstream by the authentication layer"""
    return Caller(id=x_caller_id, role=x_caller_role)


def get_deposit_service(db: Session = Depends(get_db)) -> DepositService:
    """Provide the deposit orchestrator bound to the request's session"""
    return DepositService(db)


def get_query_service(db: Session = Depends(get_db)) -> DepositQueryService:
    """Provide scope-filtered deposit queries"""
    return DepositQueryService(db)


def get_audit_client() -> AuditWebhookClient:
    """Provide compliance webhook client instance"""
    return AuditWebhookClient()
