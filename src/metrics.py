"""Prometheus metrics for the SPIRE ServiceAccount operator."""

from prometheus_client import Counter, Histogram, Gauge, Info

# Reconciliation metrics
RECONCILE_TOTAL = Counter(
    "spire_sa_operator_reconcile_total",
    "Total number of ServiceAccount reconciliations",
    ["operation", "status"],
)

RECONCILE_DURATION = Histogram(
    "spire_sa_operator_reconcile_duration_seconds",
    "Time spent in reconciliation",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "spire_sa_operator_reconcile_in_progress",
    "Number of reconciliations currently in progress",
)

# SPIRE registration API metrics
REGISTRY_API_CALLS = Counter(
    "spire_sa_operator_registry_api_calls_total",
    "Total number of SPIRE registration API calls",
    ["operation", "status"],
)

REGISTRY_API_DURATION = Histogram(
    "spire_sa_operator_registry_api_duration_seconds",
    "Time spent in SPIRE registration API calls",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Registrations that went ahead without the admin kubeconfig
CREDENTIAL_FALLBACK_TOTAL = Counter(
    "spire_sa_operator_credential_fallback_total",
    "Registrations sent with an empty kubeconfig because the secret was unreadable",
)

# Operator info
OPERATOR_INFO = Info(
    "spire_sa_operator",
    "Information about the SPIRE ServiceAccount operator",
)


def set_operator_info(version: str, registry_url: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info({"version": version, "registry": registry_url})


def init_metrics() -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    operations = ["create", "update", "resume", "delete", "resync"]
    statuses = ["success", "error"]

    RECONCILE_IN_PROGRESS.set(0)
    for operation in operations:
        RECONCILE_DURATION.labels(operation=operation)
        for status in statuses:
            RECONCILE_TOTAL.labels(operation=operation, status=status)

    for operation in ["create_entry", "revoke_entry"]:
        REGISTRY_API_DURATION.labels(operation=operation)
        for status in ["success", "transport_error", "protocol_error"]:
            REGISTRY_API_CALLS.labels(operation=operation, status=status)
