"""Map domain errors to HTTP responses at the transport boundary"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from deposit_ledger.api.dependencies import get_request_id
from deposit_ledger.domain.exceptions import (
    ConfigurationDefect,
    DepositError,
    ForbiddenError,
    NotFoundError,
    PolicyRejection,
)

_STATUS_BY_ERROR = (
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConfigurationDefect, 500),
    (PolicyRejection, 400),
)


def status_for(exc: DepositError) -> int:
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status_code
    return 400


async def deposit_error_handler(request: Request, exc: DepositError) -> JSONResponse:
    """Render a rejected operation as {status, reason, error}"""
    status_code = status_for(exc)
    extra = {"request_id": get_request_id(request), "reason": exc.reason.value}
    if status_code >= 500:
        logging.error(f"Account configuration defect: {exc.message}", extra=extra)
    else:
        logging.info(f"Request rejected: {exc.message}", extra=extra)

    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "reason": exc.reason.value, "error": exc.message},
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logging.error(f"Unexpected error: {exc}", extra={"request_id": get_request_id(request)})
    return JSONResponse(
        status_code=500,
        content={"status": "error", "reason": "INTERNAL_ERROR", "error": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DepositError, deposit_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
