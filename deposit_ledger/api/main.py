"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from deposit_ledger.api.errors import register_exception_handlers
from deposit_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from deposit_ledger.api.v1 import accounts, audit, deposits
from deposit_ledger.infrastructure.observability.logging import setup_logging
from deposit_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Deposit Ledger",
        description="Recurring-deposit collection ledger with payment-plan enforcement and audit trail",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(deposits.router, prefix="/v1", tags=["deposits"])
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(audit.router, prefix="/v1", tags=["audit"])

    return app


app = create_app()
