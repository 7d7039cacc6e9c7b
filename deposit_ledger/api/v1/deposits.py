"""Deposit endpoints - create, update, delete, bulk collection and listings"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from deposit_ledger.api.dependencies import (
    get_audit_client,
    get_caller,
    get_deposit_service,
    get_query_service,
    get_request_id,
)
from deposit_ledger.api.v1.schemas import (
    AccountSchema,
    BulkDepositRequest,
    BulkDepositResponse,
    DepositCreateRequest,
    DepositListResponse,
    DepositMutationResponse,
    DepositSchema,
    DepositUpdateRequest,
    ErrorResponse,
)
from deposit_ledger.domain.models import BulkItem, Caller
from deposit_ledger.infrastructure.clients.audit_webhook import AuditWebhookClient
from deposit_ledger.services.deposits import DepositOutcome, DepositService
from deposit_ledger.services.queries import DepositQueryService

# Rejections share one body shape; see api/errors.py
router = APIRouter(
    responses={code: {"model": ErrorResponse} for code in (400, 403, 404, 500)},
)


def _mutation_response(message: str, outcome: DepositOutcome) -> DepositMutationResponse:
    return DepositMutationResponse(
        message=message,
        deposit=DepositSchema.model_validate(outcome.deposit) if outcome.deposit is not None else None,
        account_balance_cents=outcome.reconciliation.balance_cents,
        account_status=outcome.reconciliation.status.value,
        is_fully_paid=outcome.reconciliation.is_fully_paid,
        previous_balance_cents=outcome.previous_balance_cents,
    )


def _mirror_event(
    background_tasks: BackgroundTasks,
    audit_client: AuditWebhookClient,
    request: Request,
    event: str,
    payload: Dict[str, Any],
) -> None:
    """Schedule delivery of a committed event to the compliance webhook, if configured"""
    if audit_client.enabled:
        background_tasks.add_task(
            audit_client.send_event,
            {"event": event, "request_id": get_request_id(request), **payload},
        )


@router.post("/deposits", response_model=DepositMutationResponse, status_code=201)
def create_deposit(
    request_body: DepositCreateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    caller: Caller = Depends(get_caller),
    service: DepositService = Depends(get_deposit_service),
    audit_client: AuditWebhookClient = Depends(get_audit_client),
):
    """
    Record a deposit against an account.

    Flow:
    1. Role, amount and scope checks
    2. Payable cap, maturity gate and payment-mode rules
    3. Persist deposit and reconcile the account
    4. Audit, then mirror the event to the compliance webhook
    """
    outcome = service.create_deposit(
        caller,
        account_id=request_body.account_id,
        user_id=request_body.user_id,
        amount_cents=request_body.amount_cents,
    )
    _mirror_event(
        background_tasks,
        audit_client,
        request,
        "DEPOSIT_CREATED",
        {
            "deposit_id": outcome.deposit.id,
            "account_id": outcome.account.id,
            "amount_cents": outcome.deposit.amount_cents,
            "balance_cents": outcome.reconciliation.balance_cents,
        },
    )
    return _mutation_response("Deposit created successfully", outcome)


@router.post("/deposits/bulk", response_model=BulkDepositResponse)
def bulk_create_deposits(
    request_body: BulkDepositRequest,
    caller: Caller = Depends(get_caller),
    service: DepositService = Depends(get_deposit_service),
):
    """
    Record today's collections for many accounts (Agent only).

    Partial failure is expected: every item is reported as a success or a
    failure with its reason, and failures are tallied by message.
    """
    items = [
        BulkItem(account_id=d.account_id, amount_cents=d.amount_cents, collected_by=d.collected_by)
        for d in request_body.deposits
    ]
    result = service.bulk_create(caller, items)
    return BulkDepositResponse(
        total=result.total,
        success_count=result.success_count,
        failed_count=result.failed_count,
        failed_accounts=result.failed_accounts,
        success_accounts=result.success_accounts,
        failure_summary=result.failure_summary,
    )


@router.get("/deposits/eligible", response_model=list[AccountSchema])
def get_eligible_accounts(
    caller: Caller = Depends(get_caller),
    service: DepositService = Depends(get_deposit_service),
):
    """Accounts in scope still awaiting this period's deposit"""
    return [AccountSchema.model_validate(a) for a in service.eligible_accounts(caller)]


@router.get("/deposits", response_model=DepositListResponse)
def list_deposits(
    date: Optional[str] = Query(None, description='"today" to restrict to the current day'),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    caller: Caller = Depends(get_caller),
    queries: DepositQueryService = Depends(get_query_service),
):
    deposits = queries.list_deposits(caller, date=date, start_date=start_date, end_date=end_date)
    return DepositListResponse(count=len(deposits), deposits=[DepositSchema.model_validate(d) for d in deposits])


@router.get("/deposits/range", response_model=DepositListResponse)
def get_deposits_by_date_range(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    caller: Caller = Depends(get_caller),
    queries: DepositQueryService = Depends(get_query_service),
):
    """Deposits between two dates (YYYY-MM-DD, inclusive)"""
    deposits = queries.deposits_in_range(caller, date_from, date_to)
    return DepositListResponse(count=len(deposits), deposits=[DepositSchema.model_validate(d) for d in deposits])


@router.get("/deposits/account/{account_id}", response_model=DepositListResponse)
def get_deposits_by_account(
    account_id: str,
    caller: Caller = Depends(get_caller),
    queries: DepositQueryService = Depends(get_query_service),
):
    deposits = queries.deposits_for_account(caller, account_id)
    return DepositListResponse(count=len(deposits), deposits=[DepositSchema.model_validate(d) for d in deposits])


@router.put("/deposits/{deposit_id}", response_model=DepositMutationResponse)
def update_deposit(
    deposit_id: str,
    request_body: DepositUpdateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    caller: Caller = Depends(get_caller),
    service: DepositService = Depends(get_deposit_service),
    audit_client: AuditWebhookClient = Depends(get_audit_client),
):
    """Change a deposit's amount and/or date (Admin only)"""
    outcome = service.update_deposit(
        caller,
        deposit_id,
        amount_cents=request_body.amount_cents,
        date=request_body.date,
    )
    _mirror_event(
        background_tasks,
        audit_client,
        request,
        "DEPOSIT_UPDATED",
        {
            "deposit_id": outcome.deposit.id,
            "account_id": outcome.account.id,
            "amount_cents": outcome.deposit.amount_cents,
            "balance_cents": outcome.reconciliation.balance_cents,
        },
    )
    return _mutation_response("Deposit updated successfully", outcome)


@router.delete("/deposits/{deposit_id}", response_model=DepositMutationResponse)
def delete_deposit(
    deposit_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    caller: Caller = Depends(get_caller),
    service: DepositService = Depends(get_deposit_service),
    audit_client: AuditWebhookClient = Depends(get_audit_client),
):
    """Delete a deposit and re-derive the account balance (Admin only)"""
    outcome = service.delete_deposit(caller, deposit_id)
    _mirror_event(
        background_tasks,
        audit_client,
        request,
        "DEPOSIT_DELETED",
        {
            "deposit_id": deposit_id,
            "account_id": outcome.account.id,
            "balance_cents": outcome.reconciliation.balance_cents,
        },
    )
    return _mutation_response("Deposit deleted successfully and account balance adjusted", outcome)
