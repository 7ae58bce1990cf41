"""Cluster metadata lookup."""

import logging

from kubernetes.client import ApiException, CoreV1Api

from config import OperatorConfig
from models import ClusterContext, ConfigurationError, KubernetesAPIError

logger = logging.getLogger(__name__)


def get_cluster_context(
    core_api: CoreV1Api,
    config: OperatorConfig,
    timeout: float | None = None,
) -> ClusterContext:
    """Read the cluster name and trust domain.

    The cluster name comes from the kubeadm ClusterConfiguration stored in
    the ConfigMap's data, the trust domain from an annotation on the same
    ConfigMap. Nothing is cached; every reconcile reads it afresh.

    Args:
        core_api: Kubernetes CoreV1Api client
        config: Operator configuration (ConfigMap location and keys)
        timeout: Request timeout in seconds

    Raises:
        ConfigurationError: ConfigMap absent, annotation or clusterName missing
        KubernetesAPIError: Any other API failure
    """
    namespace = config.cluster_info_namespace
    name = config.cluster_info_name

    try:
        cm = core_api.read_namespaced_config_map(name, namespace, _request_timeout=timeout)
    except ApiException as e:
        if e.status == 404:
            raise ConfigurationError(
                f"cluster info ConfigMap {namespace}/{name} not found"
            ) from e
        raise KubernetesAPIError(
            f"failed to read ConfigMap {namespace}/{name}: {e.reason}"
        ) from e

    annotations = (cm.metadata.annotations if cm.metadata else None) or {}
    data = cm.data or {}

    try:
        context = ClusterContext.from_configmap(
            annotations.get(config.trust_domain_annotation),
            data.get(config.cluster_info_key),
        )
    except ConfigurationError as e:
        logger.error("Invalid cluster info ConfigMap %s/%s: %s", namespace, name, e)
        raise ConfigurationError(f"ConfigMap {namespace}/{name}: {e}") from e

    logger.debug(
        "Cluster context: cluster=%s trustDomain=%s",
        context.cluster_name,
        context.trust_domain,
    )
    return context
