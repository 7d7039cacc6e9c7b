"""Audit recorder - one append-only event per attempted mutation"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from deposit_ledger.domain.exceptions import DepositError
from deposit_ledger.infrastructure.database.models import AuditLog
from deposit_ledger.infrastructure.database.repositories import AuditRepository


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class AuditRecorder:
    """Writes audit events into the caller's unit of work (flushed, not committed)"""

    def __init__(self, db: Session):
        self.repo = AuditRepository(db)

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[str],
        details: Dict[str, Any],
        performed_by: Optional[str],
    ) -> AuditLog:
        return self.repo.append(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=_jsonable(details),
            performed_by=performed_by,
        )

    def record_failure(
        self,
        action: str,
        error: DepositError,
        context: Dict[str, Any],
        performed_by: Optional[str],
    ) -> AuditLog:
        """Record a rejected attempt as <action>_FAILED with its reason code"""
        details = {"reason": error.reason.value, **context, **error.details}
        return self.record(f"{action}_FAILED", "DepositAttempt", None, details, performed_by)
