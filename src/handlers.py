"""Kopf handlers for SPIRE-managed ServiceAccounts."""

import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from prometheus_client import start_http_server

from config import OperatorConfig
from metrics import (
    RECONCILE_TOTAL,
    RECONCILE_DURATION,
    RECONCILE_IN_PROGRESS,
    set_operator_info,
    init_metrics,
)
from state import state, get_config, get_reconciler
from utils import Deadline, short_error

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"

# Loaded at import time: handler filters and the resync interval depend on it
CONFIG: OperatorConfig = get_config()
MANAGED = {CONFIG.managed_annotation: "true"}


def to_temporary_error(
    e: Exception, config: OperatorConfig
) -> kopf.TemporaryError:
    """Wrap a reconcile failure so Kopf retries it after the configured delay."""
    return kopf.TemporaryError(
        f"Reconcile failed: {short_error(e)}",
        delay=config.retry_delay.total_seconds(),
    )


async def reconcile_service_account(
    operation: str,
    namespace: str,
    name: str,
    body: kopf.Body,
) -> None:
    """Run one reconcile in a worker thread and record its outcome.

    The reconcile gets a deadline; if this task is cancelled, the
    deadline is cancelled too so the worker stops at its next call.
    """
    config = get_config()
    reconciler = get_reconciler()
    deadline = Deadline(config.reconcile_timeout.total_seconds())
    start_time = time.monotonic()
    RECONCILE_IN_PROGRESS.inc()

    try:
        result = await asyncio.to_thread(reconciler.reconcile, namespace, name, deadline)
    except asyncio.CancelledError:
        deadline.cancel()
        raise
    except Exception as e:
        logger.error(
            "Failed to reconcile ServiceAccount %s/%s (%s): %s",
            namespace,
            name,
            type(e).__name__,
            e,
        )
        RECONCILE_TOTAL.labels(operation=operation, status="error").inc()
        kopf.warn(body, reason="SpireReconcileFailed", message=short_error(e))
        raise to_temporary_error(e, config) from e
    finally:
        RECONCILE_IN_PROGRESS.dec()

    duration = time.monotonic() - start_time
    RECONCILE_TOTAL.labels(operation=operation, status="success").inc()
    RECONCILE_DURATION.labels(operation=operation).observe(duration)
    logger.debug(
        "Reconciled ServiceAccount %s/%s: %s",
        namespace,
        name,
        result.value if result else "gone",
    )


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure operator settings on startup."""
    config = get_config()
    # Reduce logging noise
    settings.posting.level = logging.WARNING
    settings.execution.max_workers = config.max_workers
    # Set watching namespace - explicit cluster-wide or specific namespace
    if config.watch_namespace:
        settings.watching.namespaces = [config.watch_namespace]
    else:
        settings.watching.clusterwide = True

    # Start Prometheus metrics server
    try:
        start_http_server(config.metrics_port)
        logger.info("Prometheus metrics server started on port %d", config.metrics_port)
    except OSError as e:
        logger.warning(
            "Failed to start metrics server on port %d: %s", config.metrics_port, e
        )

    init_metrics()
    set_operator_info(OPERATOR_VERSION, config.registry_url)

    logger.info(
        "SPIRE ServiceAccount operator started (version %s, registry %s)",
        OPERATOR_VERSION,
        config.registry_url,
    )


@kopf.on.cleanup()
def cleanup(**_: Any) -> None:
    """Clean up resources on operator shutdown."""
    logger.info("SPIRE ServiceAccount operator shutting down")
    state.close()


@kopf.on.create("v1", "serviceaccounts", annotations=MANAGED)
async def create_service_account(
    namespace: str, name: str, body: kopf.Body, **_: Any
) -> None:
    """Handle creation of a managed ServiceAccount."""
    await reconcile_service_account("create", namespace, name, body)


@kopf.on.update("v1", "serviceaccounts", annotations=MANAGED)
async def update_service_account(
    namespace: str, name: str, body: kopf.Body, **_: Any
) -> None:
    """Handle updates, including the managed-flag being switched on."""
    await reconcile_service_account("update", namespace, name, body)


@kopf.on.resume("v1", "serviceaccounts", annotations=MANAGED)
async def resume_service_account(
    namespace: str, name: str, body: kopf.Body, **_: Any
) -> None:
    """Handle managed ServiceAccounts found when the operator starts."""
    await reconcile_service_account("resume", namespace, name, body)


# Kopf only calls delete handlers while its own finalizer is on the object,
# so it keeps one there alongside the operator's SPIRE finalizer
@kopf.on.delete("v1", "serviceaccounts", annotations=MANAGED)
async def delete_service_account(
    namespace: str, name: str, body: kopf.Body, **_: Any
) -> None:
    """Revoke the SPIRE entry before the ServiceAccount goes away."""
    await reconcile_service_account("delete", namespace, name, body)


@kopf.timer(
    "v1",
    "serviceaccounts",
    annotations=MANAGED,
    interval=CONFIG.resync_interval.total_seconds(),
)
async def resync_service_account(
    namespace: str, name: str, body: kopf.Body, **_: Any
) -> None:
    """Periodic reconciliation to detect and repair drift."""
    await reconcile_service_account("resync", namespace, name, body)
