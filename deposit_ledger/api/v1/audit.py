"""GET /v1/audit - Browse the audit trail"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from deposit_ledger.api.dependencies import get_caller
from deposit_ledger.api.v1.schemas import AuditEventSchema, AuditListResponse
from deposit_ledger.domain.exceptions import ForbiddenError, ReasonCode
from deposit_ledger.domain.models import Caller, Role
from deposit_ledger.infrastructure.database.repositories import AuditRepository
from deposit_ledger.infrastructure.database.session import get_db

router = APIRouter()


@router.get("/audit", response_model=AuditListResponse)
def list_audit_events(
    action: Optional[str] = Query(None, description="e.g. CREATE_DEPOSIT_FAILED"),
    entity_id: Optional[str] = Query(None),
    performed_by: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """
    Retrieve recent audit events (Admin only).

    Returns:
        Events newest first, optionally filtered by action, entity or actor
    """
    if caller.role != Role.ADMIN:
        raise ForbiddenError(ReasonCode.ROLE_NOT_ALLOWED, "Only Admin can read the audit trail")

    events = AuditRepository(db).list_events(
        action=action,
        entity_id=entity_id,
        performed_by=performed_by,
        limit=limit,
    )
    return AuditListResponse(
        count=len(events),
        events=[AuditEventSchema.model_validate(e) for e in events],
    )
