"""Admin kubeconfig lookup."""

import base64
import binascii
import logging

from kubernetes.client import ApiException, CoreV1Api

from config import OperatorConfig
from models import CredentialLookupError
from utils import encode_credential

logger = logging.getLogger(__name__)


def get_admin_kubeconfig(
    core_api: CoreV1Api,
    config: OperatorConfig,
    timeout: float | None = None,
) -> str:
    """Return the admin kubeconfig as base64 text.

    Raises:
        CredentialLookupError: Secret unreadable, missing or empty
    """
    namespace = config.credential_secret_namespace
    name = config.credential_secret_name
    key = config.credential_secret_key

    logger.debug("Getting kubeconfig from Secret %s/%s", namespace, name)
    try:
        secret = core_api.read_namespaced_secret(name, namespace, _request_timeout=timeout)
    except ApiException as e:
        raise CredentialLookupError(
            f"failed to read Secret {namespace}/{name}: {e.status} {e.reason}"
        ) from e

    data = secret.data or {}
    # A Secret without this key counts as missing; on the create path the
    # caller falls back to "" either way
    encoded = data.get(key)
    if not encoded:
        raise CredentialLookupError(
            f"missing {key} data in Secret {namespace}/{name}"
        )

    # The API returns Secret data base64-encoded already
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CredentialLookupError(
            f"{key} in Secret {namespace}/{name} is not valid base64"
        ) from e
    if not raw:
        raise CredentialLookupError(f"{key} in Secret {namespace}/{name} is empty")

    return encode_credential(raw)
