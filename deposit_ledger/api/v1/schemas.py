"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Dict, List, Optional


class DepositCreateRequest(BaseModel):
    """Request body for POST /v1/deposits"""

    account_id: str = Field(..., min_length=1, description="Account receiving the deposit")
    user_id: str = Field(..., min_length=1, description="Client owning the account")
    # Positivity is enforced (and audited) by the ledger, not here
    amount_cents: int = Field(..., description="Deposit amount in cents")


class DepositUpdateRequest(BaseModel):
    """Request body for PUT /v1/deposits/{deposit_id}"""

    amount_cents: Optional[int] = Field(None, description="New amount in cents")
    date: Optional[str] = Field(None, description="New ISO-8601 date of the deposit")


class BulkDepositItem(BaseModel):
    """Single collection in a bulk request"""

    account_id: str
    amount_cents: int
    collected_by: str


class BulkDepositRequest(BaseModel):
    """Request body for POST /v1/deposits/bulk"""

    deposits: List[BulkDepositItem] = Field(..., min_length=1)


class DepositSchema(BaseModel):
    """Deposit as returned by the API"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    user_id: str
    collected_by: str
    amount_cents: int
    date: datetime
    scheme_type: str


class DepositMutationResponse(BaseModel):
    """Response for create/update/delete of a deposit"""

    status: str = "success"
    message: str
    deposit: Optional[DepositSchema] = None
    account_balance_cents: int
    account_status: str
    is_fully_paid: bool
    previous_balance_cents: Optional[int] = None


class DepositListResponse(BaseModel):
    """Response for deposit listings"""

    count: int
    deposits: List[DepositSchema]


class BulkDepositResponse(BaseModel):
    """Response for POST /v1/deposits/bulk"""

    total: int
    success_count: int
    failed_count: int
    failed_accounts: List[Dict[str, Any]]
    success_accounts: List[Dict[str, Any]]
    failure_summary: Dict[str, int]


class AccountSchema(BaseModel):
    """Account with its schedule and derived state"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    account_number: str
    client_name: Optional[str] = None
    user_id: str
    assigned_agent: Optional[str] = None
    scheme_type: str
    payment_mode: str
    total_payable_cents: Optional[int] = None
    installment_cents: Optional[int] = None
    monthly_target_cents: Optional[int] = None
    yearly_amount_cents: Optional[int] = None
    balance_cents: int
    status: str
    is_fully_paid: bool
    maturity_date: Optional[datetime] = None


class ReconcileResponse(BaseModel):
    """Response for POST /v1/accounts/{account_id}/reconcile"""

    account: AccountSchema
    previous_balance_cents: Optional[int] = None


class MaturitySweepResponse(BaseModel):
    """Response for POST /v1/accounts/maturity-sweep"""

    matured_count: int
    account_ids: List[str]


class AuditEventSchema(BaseModel):
    """Single audit record"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Dict[str, Any]
    performed_by: Optional[str] = None
    created_at: datetime


class AuditListResponse(BaseModel):
    """Response for GET /v1/audit"""

    count: int
    events: List[AuditEventSchema]


class ErrorResponse(BaseModel):
    """Body of every rejected request"""

    status: str = "error"
    reason: str
    error: str
