"""Shared operator state - thread-safe singleton for the API clients and reconciler."""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from config import OperatorConfig
from reconciler import Reconciler
from spire_client import SpireClient


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    This class provides thread-safe access to shared operator resources:
    - Operator configuration
    - Kubernetes CoreV1Api client
    - SPIRE registration API client
    - Reconciler

    All handlers should use the global `state` instance rather than
    creating their own clients.
    """

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _config: OperatorConfig | None = field(default=None, repr=False)
    _spire_client: SpireClient | None = field(default=None, repr=False)
    _k8s_core_api: k8s_client.CoreV1Api | None = field(default=None, repr=False)
    _reconciler: Reconciler | None = field(default=None, repr=False)
    _k8s_configured: bool = field(default=False, repr=False)

    def _ensure_k8s_config(self) -> None:
        """Ensure Kubernetes configuration is loaded (must hold lock)."""
        if not self._k8s_configured:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._k8s_configured = True

    def _get_config(self) -> OperatorConfig:
        """Get or load the configuration (must hold lock)."""
        if self._config is None:
            self._config = OperatorConfig.from_env()
        return self._config

    def _get_k8s_core_api(self) -> k8s_client.CoreV1Api:
        """Get or create the CoreV1Api client (must hold lock)."""
        self._ensure_k8s_config()
        if self._k8s_core_api is None:
            self._k8s_core_api = k8s_client.CoreV1Api()
        return self._k8s_core_api

    def _get_spire_client(self) -> SpireClient:
        """Get or create the registry client (must hold lock)."""
        if self._spire_client is None:
            config = self._get_config()
            self._spire_client = SpireClient(
                config.registry_url,
                timeout=config.request_timeout.total_seconds(),
            )
        return self._spire_client

    def get_config(self) -> OperatorConfig:
        """Get the operator configuration (thread-safe)."""
        with self._lock:
            return self._get_config()

    def get_k8s_core_api(self) -> k8s_client.CoreV1Api:
        """Get or create the Kubernetes CoreV1Api client (thread-safe)."""
        with self._lock:
            return self._get_k8s_core_api()

    def get_spire_client(self) -> SpireClient:
        """Get or create the SPIRE registration API client (thread-safe)."""
        with self._lock:
            return self._get_spire_client()

    def get_reconciler(self) -> Reconciler:
        """Get or create the reconciler (thread-safe)."""
        with self._lock:
            if self._reconciler is None:
                self._reconciler = Reconciler.from_core_api(
                    self._get_config(),
                    self._get_k8s_core_api(),
                    self._get_spire_client(),
                )
            return self._reconciler

    def close(self) -> None:
        """Close all connections."""
        with self._lock:
            if self._spire_client is not None:
                self._spire_client.close()
                self._spire_client = None
            self._reconciler = None


# Global operator state singleton
state = OperatorState()


def get_config() -> OperatorConfig:
    """Get the shared operator configuration."""
    return state.get_config()


def get_reconciler() -> Reconciler:
    """Get the shared reconciler."""
    return state.get_reconciler()
