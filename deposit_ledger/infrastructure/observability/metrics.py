"""Prometheus metrics for deposit outcomes, bulk collection and webhook performance"""

from prometheus_client import Counter, Histogram

# Deposit operation metrics
deposit_operation_counter = Counter(
    "deposit_ledger_operations_total",
    "Deposit mutations by operation and outcome",
    ["operation", "outcome"],  # outcome: success | <reason code>
)

deposit_amount_histogram = Histogram(
    "deposit_ledger_deposit_amount_cents",
    "Amounts of successfully created deposits",
    buckets=[1_000, 5_000, 10_000, 50_000, 100_000, 500_000, 1_000_000],
)

# Bulk collection metrics
bulk_items_histogram = Histogram(
    "deposit_ledger_bulk_items",
    "Items submitted per bulk collection",
    buckets=[1, 5, 10, 25, 50, 100, 250],
)

bulk_failure_counter = Counter(
    "deposit_ledger_bulk_failures_total",
    "Bulk collection items that failed",
)

# Reconciliation
reconciliation_counter = Counter(
    "deposit_ledger_reconciliations_total",
    "Account reconciliations by resulting status",
    ["status"],
)

matured_accounts_counter = Counter(
    "deposit_ledger_matured_accounts_total",
    "Accounts transitioned to Matured",
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "audit_webhook_latency_seconds",
    "Compliance webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "audit_webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_deposit_outcome(operation: str, outcome: str, amount_cents: int | None = None) -> None:
    """Count a deposit mutation; successful creates also feed the amount distribution"""
    deposit_operation_counter.labels(operation=operation, outcome=outcome).inc()
    if operation == "create" and outcome == "success" and amount_cents is not None:
        deposit_amount_histogram.observe(amount_cents)
