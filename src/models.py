"""Domain models for the SPIRE ServiceAccount operator.

This module defines typed data structures for all operator concepts,
making illegal states unrepresentable at the type level.
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import yaml


# An opaque identifier assigned by the registry. Never parsed.
EntryID = str


# =============================================================================
# Enums for constrained values
# =============================================================================


class ReconcileState(Enum):
    """Lifecycle state of a ServiceAccount with respect to the registry."""

    UNMANAGED = "Unmanaged"
    PENDING_REGISTRATION = "PendingRegistration"
    REGISTERED = "Registered"
    PENDING_REVOCATION = "PendingRevocation"
    FINALIZED = "Finalized"


# =============================================================================
# Dataclasses for cluster objects and wire payloads
# =============================================================================


@dataclass
class IdentityObject:
    """The parts of a ServiceAccount the reconciler reads and writes."""

    namespace: str
    name: str
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    deletion_timestamp: datetime.datetime | None = None
    resource_version: str | None = None
    # The API object this was read from, used for write-back
    raw: Any = field(default=None, repr=False, compare=False)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def is_deleting(self) -> bool:
        return self.deletion_timestamp is not None

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers

    def add_finalizer(self, finalizer: str) -> bool:
        """Add a finalizer. Returns True if the object changed."""
        if finalizer in self.finalizers:
            return False
        self.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str) -> bool:
        """Remove a finalizer. Returns True if the object changed."""
        if finalizer not in self.finalizers:
            return False
        self.finalizers = [f for f in self.finalizers if f != finalizer]
        return True

    @classmethod
    def from_api(cls, sa: Any) -> "IdentityObject":
        """Create from a kubernetes V1ServiceAccount."""
        meta = sa.metadata
        return cls(
            namespace=meta.namespace,
            name=meta.name,
            annotations=dict(meta.annotations or {}),
            finalizers=list(meta.finalizers or []),
            deletion_timestamp=meta.deletion_timestamp,
            resource_version=meta.resource_version,
            raw=sa,
        )


@dataclass(frozen=True)
class ClusterContext:
    """Cluster identity embedded in every registry entry."""

    cluster_name: str
    trust_domain: str

    @classmethod
    def from_configmap(
        cls,
        trust_domain: str | None,
        cluster_configuration: str | None,
    ) -> "ClusterContext":
        """Parse and validate the trust domain and kubeadm ClusterConfiguration.

        Args:
            trust_domain: Value of the trust-domain annotation
            cluster_configuration: YAML document holding at least clusterName

        Raises:
            ConfigurationError: If either source is missing or malformed
        """
        if not trust_domain:
            raise ConfigurationError("trust domain annotation is missing or empty")
        if not cluster_configuration:
            raise ConfigurationError("cluster configuration is missing or empty")

        try:
            parsed = yaml.safe_load(cluster_configuration)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"cluster configuration is not valid YAML: {e}") from e

        if not isinstance(parsed, dict):
            raise ConfigurationError("cluster configuration is not a mapping")

        cluster_name = parsed.get("clusterName")
        if not isinstance(cluster_name, str) or not cluster_name:
            raise ConfigurationError("clusterName not found in cluster configuration")

        return cls(cluster_name=cluster_name, trust_domain=trust_domain)


@dataclass(frozen=True)
class RegistrationRequest:
    """Payload for the registry's entry add and delete endpoints."""

    trust_domain: str
    service_account: str
    namespace: str
    cluster: str
    kube_config: str = ""

    @classmethod
    def build(
        cls,
        context: ClusterContext,
        obj: IdentityObject,
        kube_config: str = "",
    ) -> "RegistrationRequest":
        return cls(
            trust_domain=context.trust_domain,
            service_account=obj.name,
            namespace=obj.namespace,
            cluster=context.cluster_name,
            kube_config=kube_config,
        )

    def to_dict(self) -> dict[str, str]:
        """Convert to the JSON body sent to the registry.

        kubeConfig is always present, as an empty string when unset.
        """
        return {
            "trustDomain": self.trust_domain,
            "serviceAccount": self.service_account,
            "namespace": self.namespace,
            "cluster": self.cluster,
            "kubeConfig": self.kube_config,
        }


@dataclass(frozen=True)
class EntryResponse:
    """Response body of a successful entry creation."""

    entry_id: EntryID
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EntryResponse":
        """Create from the registry's JSON response."""
        return cls(
            entry_id=str(data.get("entryID") or ""),
            message=str(data.get("message") or ""),
        )


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class ConfigurationError(OperatorError):
    """Invalid or missing configuration."""

    pass


class CredentialLookupError(ConfigurationError):
    """The admin credential secret could not be read."""

    pass


class RegistryError(OperatorError):
    """Error communicating with the SPIRE registration API."""

    pass


class TransportError(RegistryError):
    """The registry could not be reached."""

    pass


class ProtocolError(RegistryError):
    """The registry answered with a non-200 status or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class KubernetesAPIError(OperatorError):
    """Error reading an object from the Kubernetes API."""

    pass


class PersistenceError(KubernetesAPIError):
    """Writing the ServiceAccount back failed."""

    pass


class ReconcileTimeoutError(OperatorError):
    """The reconcile ran out of time."""

    pass


class ReconcileCancelledError(OperatorError):
    """The reconcile was cancelled by its caller."""

    pass
