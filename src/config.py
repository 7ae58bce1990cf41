"""Operator configuration loaded from environment variables."""

import datetime
import os
from dataclasses import dataclass

import constants
from models import ConfigurationError


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default) or default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _env_seconds(name: str, default: float) -> datetime.timedelta:
    """Read a duration given in seconds, as the variable name states."""
    value = os.environ.get(name, "")
    if not value:
        return datetime.timedelta(seconds=default)
    try:
        seconds = float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number of seconds, got {value!r}") from e
    if seconds <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return datetime.timedelta(seconds=seconds)


@dataclass(frozen=True)
class OperatorConfig:
    """Everything the reconciler and its collaborators need to know.

    Object locations, annotation keys and the registry address are all
    injectable so that tests and other environments can override them.
    """

    registry_host: str = constants.SPIRE_API_SERVER
    registry_port: int = constants.SPIRE_API_PORT
    registry_scheme: str = "http"

    cluster_info_namespace: str = constants.CLUSTER_INFO_NAMESPACE
    cluster_info_name: str = constants.CLUSTER_INFO_CONFIGMAP
    cluster_info_key: str = constants.CLUSTER_INFO_KEY
    trust_domain_annotation: str = constants.SPIRE_TRUST_DOMAIN_ANNOTATION

    credential_secret_namespace: str = constants.ADMIN_KUBECONFIG_NAMESPACE
    credential_secret_name: str = constants.ADMIN_KUBECONFIG_SECRET
    credential_secret_key: str = constants.ADMIN_KUBECONFIG_KEY

    managed_annotation: str = constants.MANAGED_SPIRE_ANNOTATION
    entry_id_annotation: str = constants.SVID_ENTRY_ID_ANNOTATION
    finalizer: str = constants.SPIRE_FINALIZER

    retry_delay: datetime.timedelta = datetime.timedelta(seconds=15)
    request_timeout: datetime.timedelta = datetime.timedelta(seconds=10)
    reconcile_timeout: datetime.timedelta = datetime.timedelta(seconds=60)
    resync_interval: datetime.timedelta = datetime.timedelta(seconds=300)

    max_workers: int = 10
    metrics_port: int = 9090
    watch_namespace: str = ""

    @property
    def registry_url(self) -> str:
        """Base URL of the registration API."""
        url = f"{self.registry_scheme}://{self.registry_host}"
        if self.registry_port > 0:
            url = f"{url}:{self.registry_port}"
        return url

    @classmethod
    def from_env(cls) -> "OperatorConfig":
        """Build the configuration from environment variables.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        return cls(
            registry_host=_env_str("SPIRE_API_HOST", constants.SPIRE_API_SERVER),
            registry_port=_env_int("SPIRE_API_PORT", constants.SPIRE_API_PORT),
            registry_scheme=_env_str("SPIRE_API_SCHEME", "http"),
            cluster_info_namespace=_env_str(
                "CLUSTER_INFO_NAMESPACE", constants.CLUSTER_INFO_NAMESPACE
            ),
            cluster_info_name=_env_str("CLUSTER_INFO_NAME", constants.CLUSTER_INFO_CONFIGMAP),
            cluster_info_key=_env_str("CLUSTER_INFO_KEY", constants.CLUSTER_INFO_KEY),
            trust_domain_annotation=_env_str(
                "TRUST_DOMAIN_ANNOTATION", constants.SPIRE_TRUST_DOMAIN_ANNOTATION
            ),
            credential_secret_namespace=_env_str(
                "ADMIN_KUBECONFIG_NAMESPACE", constants.ADMIN_KUBECONFIG_NAMESPACE
            ),
            credential_secret_name=_env_str(
                "ADMIN_KUBECONFIG_SECRET", constants.ADMIN_KUBECONFIG_SECRET
            ),
            credential_secret_key=_env_str("ADMIN_KUBECONFIG_KEY", constants.ADMIN_KUBECONFIG_KEY),
            managed_annotation=_env_str("MANAGED_ANNOTATION", constants.MANAGED_SPIRE_ANNOTATION),
            entry_id_annotation=_env_str(
                "ENTRY_ID_ANNOTATION", constants.SVID_ENTRY_ID_ANNOTATION
            ),
            finalizer=_env_str("SPIRE_FINALIZER", constants.SPIRE_FINALIZER),
            retry_delay=_env_seconds("RETRY_DELAY_SECONDS", 15),
            request_timeout=_env_seconds("REQUEST_TIMEOUT_SECONDS", 10),
            reconcile_timeout=_env_seconds("RECONCILE_TIMEOUT_SECONDS", 60),
            resync_interval=_env_seconds("RESYNC_INTERVAL_SECONDS", 300),
            max_workers=_env_int("MAX_WORKERS", 10),
            metrics_port=_env_int("METRICS_PORT", 9090),
            watch_namespace=os.environ.get("WATCH_NAMESPACE", ""),
        )
