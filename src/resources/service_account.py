"""ServiceAccount get/update access."""

import logging

from kubernetes.client import ApiException, CoreV1Api

from models import IdentityObject, KubernetesAPIError, PersistenceError

logger = logging.getLogger(__name__)


class ServiceAccountStore:
    """Reads and writes the ServiceAccounts the reconciler manages.

    Updates are optimistic: the resourceVersion read by `get` travels with
    the write, so a concurrent modification fails with 409 instead of being
    overwritten.
    """

    def __init__(self, core_api: CoreV1Api) -> None:
        self.core_api = core_api

    def get(
        self, namespace: str, name: str, timeout: float | None = None
    ) -> IdentityObject | None:
        """Fetch a ServiceAccount, or None if it does not exist."""
        try:
            sa = self.core_api.read_namespaced_service_account(
                name, namespace, _request_timeout=timeout
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesAPIError(
                f"failed to read ServiceAccount {namespace}/{name}: {e.status} {e.reason}"
            ) from e
        return IdentityObject.from_api(sa)

    def update(
        self, obj: IdentityObject, timeout: float | None = None
    ) -> IdentityObject:
        """Write annotations and finalizers back and return the stored object.

        Raises:
            PersistenceError: The write was rejected (e.g. 409 Conflict)
        """
        body = obj.raw
        body.metadata.annotations = dict(obj.annotations)
        body.metadata.finalizers = list(obj.finalizers)
        body.metadata.resource_version = obj.resource_version

        try:
            sa = self.core_api.replace_namespaced_service_account(
                obj.name, obj.namespace, body, _request_timeout=timeout
            )
        except ApiException as e:
            if e.status == 409:
                logger.warning("Conflict updating ServiceAccount %s, will retry", obj.key)
            raise PersistenceError(
                f"failed to update ServiceAccount {obj.key}: {e.status} {e.reason}"
            ) from e
        return IdentityObject.from_api(sa)
