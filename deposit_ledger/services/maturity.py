"""Maturity sweep - marks accounts past their maturity date as Matured"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from deposit_ledger.domain.models import AccountStatus
from deposit_ledger.infrastructure.database.models import Account
from deposit_ledger.infrastructure.database.repositories import AccountRepository
from deposit_ledger.infrastructure.observability.metrics import matured_accounts_counter
from deposit_ledger.services.audit import AuditRecorder
from deposit_ledger.utils.date_utils import utcnow

SYSTEM_ACTOR = "system"


def sweep_matured_accounts(db: Session, now: Optional[datetime] = None, performed_by: str = SYSTEM_ACTOR) -> List[Account]:
    """
    Transition every account whose maturity date has passed to Matured.

    Intended to run periodically; already Matured accounts are skipped so
    repeated runs are no-ops. Emits one ACCOUNT_MATURED audit event per
    transitioned account and commits once at the end.
    """
    now = now or utcnow()
    accounts = AccountRepository(db)
    audit = AuditRecorder(db)

    matured = accounts.list_due_for_maturity(now)
    for account in matured:
        previous_status = account.status
        account.status = AccountStatus.MATURED.value
        audit.record(
            "ACCOUNT_MATURED",
            "Account",
            account.id,
            {
                "old_status": previous_status,
                "maturity_date": account.maturity_date,
                "balance_cents": account.balance_cents,
            },
            performed_by,
        )

    db.commit()
    matured_accounts_counter.inc(len(matured))
    logging.info("Maturity sweep completed", extra={"step": "maturity_sweep", "matured_count": len(matured)})
    return matured
