"""ServiceAccount ↔ SPIRE entry reconciliation.

The reconciler is level-triggered: every call looks at the ServiceAccount
as it is now, derives its state, and performs the one step that moves it
forward. It is safe to call any number of times for the same change.

    Unmanaged                 managed-flag is not "true"; nothing is touched
    PendingRegistration  ->   create entry, record entry-id, add finalizer
    Registered                entry-id recorded; only a missing finalizer is repaired
    PendingRevocation    ->   revoke entry, remove finalizer
    Finalized                 outcome only: finalizer released, deletion can proceed

Errors are never retried here. They propagate to the caller, which
schedules the next attempt.
"""

import functools
import logging
from collections.abc import Callable
from typing import Protocol

from kubernetes.client import CoreV1Api

from config import OperatorConfig
from metrics import CREDENTIAL_FALLBACK_TOTAL
from models import (
    ClusterContext,
    CredentialLookupError,
    EntryID,
    IdentityObject,
    ReconcileState,
    RegistrationRequest,
)
from resources.cluster_info import get_cluster_context
from resources.credentials import get_admin_kubeconfig
from resources.service_account import ServiceAccountStore
from utils import Deadline

logger = logging.getLogger(__name__)


class IdentityStore(Protocol):
    def get(
        self, namespace: str, name: str, timeout: float | None = None
    ) -> IdentityObject | None: ...

    def update(
        self, obj: IdentityObject, timeout: float | None = None
    ) -> IdentityObject: ...


class IdentityRegistry(Protocol):
    def create_entry(
        self, request: RegistrationRequest, timeout: float | None = None
    ) -> EntryID: ...

    def revoke_entry(
        self, request: RegistrationRequest, timeout: float | None = None
    ) -> None: ...


def derive_state(obj: IdentityObject, config: OperatorConfig) -> ReconcileState:
    """Derive the lifecycle state from annotations and the deletion marker.

    Deletion takes precedence over a recorded entry-id.
    """
    if obj.annotations.get(config.managed_annotation) != "true":
        return ReconcileState.UNMANAGED
    if obj.is_deleting:
        return ReconcileState.PENDING_REVOCATION
    if obj.annotations.get(config.entry_id_annotation):
        return ReconcileState.REGISTERED
    return ReconcileState.PENDING_REGISTRATION


class Reconciler:
    """Drives one ServiceAccount at a time through its lifecycle."""

    def __init__(
        self,
        config: OperatorConfig,
        store: IdentityStore,
        registry: IdentityRegistry,
        cluster_context: Callable[[float | None], ClusterContext],
        admin_kubeconfig: Callable[[float | None], str],
    ) -> None:
        """Initialize the reconciler.

        Args:
            config: Operator configuration
            store: ServiceAccount get/update access
            registry: SPIRE registration API client
            cluster_context: Returns the cluster context, given a timeout
            admin_kubeconfig: Returns the encoded admin kubeconfig, given a timeout
        """
        self.config = config
        self.store = store
        self.registry = registry
        self._cluster_context = cluster_context
        self._admin_kubeconfig = admin_kubeconfig

    @classmethod
    def from_core_api(
        cls,
        config: OperatorConfig,
        core_api: CoreV1Api,
        registry: IdentityRegistry,
    ) -> "Reconciler":
        """Wire the reconciler to a live Kubernetes API."""
        return cls(
            config=config,
            store=ServiceAccountStore(core_api),
            registry=registry,
            cluster_context=functools.partial(get_cluster_context, core_api, config),
            admin_kubeconfig=functools.partial(get_admin_kubeconfig, core_api, config),
        )

    def _timeout(self, deadline: Deadline) -> float | None:
        return deadline.timeout(self.config.request_timeout.total_seconds())

    def reconcile(
        self, namespace: str, name: str, deadline: Deadline | None = None
    ) -> ReconcileState | None:
        """Reconcile one ServiceAccount.

        Returns:
            The state the object was left in, or None if it does not exist
        """
        deadline = deadline or Deadline()
        key = f"{namespace}/{name}"

        obj = self.store.get(namespace, name, timeout=self._timeout(deadline))
        if obj is None:
            logger.debug("ServiceAccount %s not found, nothing to do", key)
            return None

        state = derive_state(obj, self.config)
        logger.debug("ServiceAccount %s is %s", key, state.value)

        if state is ReconcileState.UNMANAGED:
            return state
        if state is ReconcileState.PENDING_REVOCATION:
            return self._revoke(obj, deadline)
        if state is ReconcileState.REGISTERED:
            return self._ensure_finalizer(obj, deadline)
        return self._register(obj, deadline)

    def _revoke(self, obj: IdentityObject, deadline: Deadline) -> ReconcileState:
        logger.info("ServiceAccount %s is being deleted, revoking SPIRE entry", obj.key)
        context = self._cluster_context(self._timeout(deadline))
        request = RegistrationRequest.build(context, obj)
        self.registry.revoke_entry(request, timeout=self._timeout(deadline))

        if obj.remove_finalizer(self.config.finalizer):
            self.store.update(obj, timeout=self._timeout(deadline))
            logger.info("Removed finalizer from ServiceAccount %s", obj.key)
        return ReconcileState.FINALIZED

    def _ensure_finalizer(
        self, obj: IdentityObject, deadline: Deadline
    ) -> ReconcileState:
        if obj.add_finalizer(self.config.finalizer):
            logger.info("Adding missing finalizer to registered ServiceAccount %s", obj.key)
            self.store.update(obj, timeout=self._timeout(deadline))
        else:
            logger.debug(
                "ServiceAccount %s has SVID entry %s",
                obj.key,
                obj.annotations[self.config.entry_id_annotation],
            )
        return ReconcileState.REGISTERED

    def _register(self, obj: IdentityObject, deadline: Deadline) -> ReconcileState:
        logger.info("ServiceAccount %s does not have an SVID, registering", obj.key)
        context = self._cluster_context(self._timeout(deadline))

        try:
            kube_config = self._admin_kubeconfig(self._timeout(deadline))
        except CredentialLookupError as e:
            logger.warning(
                "No admin kubeconfig for %s, registering without it: %s", obj.key, e
            )
            CREDENTIAL_FALLBACK_TOTAL.inc()
            kube_config = ""

        request = RegistrationRequest.build(context, obj, kube_config)
        entry_id = self.registry.create_entry(request, timeout=self._timeout(deadline))

        # The entry exists now: record it even if the reconcile budget is spent
        obj.annotations[self.config.entry_id_annotation] = entry_id
        obj = self.store.update(obj, timeout=self.config.request_timeout.total_seconds())
        logger.info("Recorded SVID entry %s on ServiceAccount %s", entry_id, obj.key)

        if obj.add_finalizer(self.config.finalizer):
            self.store.update(obj, timeout=self._timeout(deadline))
        return ReconcileState.REGISTERED
