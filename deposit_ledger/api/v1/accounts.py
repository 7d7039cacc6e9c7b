"""Account maintenance endpoints - on-demand reconciliation and maturity sweep"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from deposit_ledger.api.dependencies import get_caller, get_deposit_service
from deposit_ledger.api.v1.schemas import AccountSchema, MaturitySweepResponse, ReconcileResponse
from deposit_ledger.domain.exceptions import ForbiddenError, ReasonCode
from deposit_ledger.domain.models import Caller, Role
from deposit_ledger.infrastructure.database.session import get_db
from deposit_ledger.services.deposits import DepositService
from deposit_ledger.services.maturity import sweep_matured_accounts

router = APIRouter()


@router.post("/accounts/maturity-sweep", response_model=MaturitySweepResponse)
def run_maturity_sweep(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    """
    Mark every account past its maturity date as Matured.

    Meant to be triggered by an external scheduler (Admin only).
    """
    if caller.role != Role.ADMIN:
        raise ForbiddenError(ReasonCode.ROLE_NOT_ALLOWED, "Only Admin can run the maturity sweep")

    matured = sweep_matured_accounts(db, performed_by=caller.id)
    return MaturitySweepResponse(matured_count=len(matured), account_ids=[a.id for a in matured])


@router.post("/accounts/{account_id}/reconcile", response_model=ReconcileResponse)
def reconcile_account(
    account_id: str,
    caller: Caller = Depends(get_caller),
    service: DepositService = Depends(get_deposit_service),
):
    """Recompute an account's balance and status from its deposits (Admin only)"""
    outcome = service.reconcile_account(caller, account_id)
    return ReconcileResponse(
        account=AccountSchema.model_validate(outcome.account),
        previous_balance_cents=outcome.previous_balance_cents,
    )
