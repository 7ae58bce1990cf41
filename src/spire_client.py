"""HTTP client for the SPIRE registration API."""

import logging
import time
from typing import Any

import httpx

from constants import SPIRE_ENTRIES_ADD_PATH, SPIRE_ENTRIES_DELETE_PATH
from metrics import REGISTRY_API_CALLS, REGISTRY_API_DURATION
from models import (
    EntryID,
    EntryResponse,
    ProtocolError,
    RegistrationRequest,
    TransportError,
)

logger = logging.getLogger(__name__)


class SpireClient:
    """Wrapper around the registry's entry add/delete endpoints.

    Calls are synchronous and never retried here; retry scheduling belongs
    to the caller.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Registry URL, e.g. http://spire-api:8080
            timeout: Default per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._http: httpx.Client | None = None

    @property
    def http(self) -> httpx.Client:
        """Get or create the HTTP connection pool."""
        if self._http is None:
            logger.info("Connecting to SPIRE registration API: %s", self.base_url)
            self._http = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http

    def close(self) -> None:
        """Close the HTTP connection pool."""
        if self._http is not None:
            self._http.close()
            self._http = None

    def _post(
        self,
        operation: str,
        path: str,
        payload: dict[str, str],
        timeout: float | None,
    ) -> httpx.Response:
        """POST a JSON payload.

        Network failures map to TransportError; a response that cannot be
        decoded or followed maps to ProtocolError.
        """
        start = time.monotonic()
        try:
            response = self.http.post(
                path,
                json=payload,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TransportError as e:
            REGISTRY_API_CALLS.labels(operation=operation, status="transport_error").inc()
            raise TransportError(
                f"{operation}: failed to reach {self.base_url}{path}: {e}"
            ) from e
        except (httpx.DecodingError, httpx.TooManyRedirects) as e:
            REGISTRY_API_CALLS.labels(operation=operation, status="protocol_error").inc()
            raise ProtocolError(
                f"{operation}: unusable response from {self.base_url}{path}: {e}"
            ) from e
        finally:
            REGISTRY_API_DURATION.labels(operation=operation).observe(
                time.monotonic() - start
            )
        return response

    def _protocol_error(
        self, operation: str, message: str, response: httpx.Response
    ) -> ProtocolError:
        REGISTRY_API_CALLS.labels(operation=operation, status="protocol_error").inc()
        return ProtocolError(
            f"{operation}: {message} (HTTP {response.status_code})",
            status_code=response.status_code,
            body=response.text,
        )

    def create_entry(
        self, request: RegistrationRequest, timeout: float | None = None
    ) -> EntryID:
        """Register an entry and return the registry-assigned ID.

        Raises:
            TransportError: The registry could not be reached
            ProtocolError: Non-200 status, unparsable body or empty entryID
        """
        operation = "create_entry"
        logger.info(
            "Creating SPIRE entry for %s/%s (cluster=%s, trustDomain=%s)",
            request.namespace,
            request.service_account,
            request.cluster,
            request.trust_domain,
        )
        response = self._post(operation, SPIRE_ENTRIES_ADD_PATH, request.to_dict(), timeout)

        if response.status_code != httpx.codes.OK:
            raise self._protocol_error(operation, "registry returned non-200", response)

        try:
            data: Any = response.json()
        except ValueError as e:
            raise self._protocol_error(operation, "response is not JSON", response) from e
        if not isinstance(data, dict):
            raise self._protocol_error(operation, "response is not a JSON object", response)

        entry = EntryResponse.from_dict(data)
        if not entry.entry_id:
            raise self._protocol_error(operation, "response carries no entryID", response)

        REGISTRY_API_CALLS.labels(operation=operation, status="success").inc()
        logger.info("Successfully created SPIRE entry %s", entry.entry_id)
        return entry.entry_id

    def revoke_entry(
        self, request: RegistrationRequest, timeout: float | None = None
    ) -> None:
        """Delete the entry matching the request's identity fields.

        A 404 means the entry is already gone and counts as success, so a
        revoke retried after a crash can still release the finalizer.

        Raises:
            TransportError: The registry could not be reached
            ProtocolError: Any other non-200 status
        """
        operation = "revoke_entry"
        logger.info(
            "Deleting SPIRE entry for %s/%s", request.namespace, request.service_account
        )
        payload = request.to_dict()
        payload["kubeConfig"] = ""
        response = self._post(operation, SPIRE_ENTRIES_DELETE_PATH, payload, timeout)

        if response.status_code == httpx.codes.NOT_FOUND:
            logger.info(
                "SPIRE entry for %s/%s not found, treating as deleted",
                request.namespace,
                request.service_account,
            )
        elif response.status_code != httpx.codes.OK:
            logger.error(
                "SPIRE server returned %d for deletion: %s",
                response.status_code,
                response.text[:500],
            )
            raise self._protocol_error(operation, "failed to delete SPIRE entry", response)
        else:
            logger.info("Successfully deleted SPIRE entry")

        REGISTRY_API_CALLS.labels(operation=operation, status="success").inc()

    def __repr__(self) -> str:
        return f"SpireClient(base_url={self.base_url!r}, timeout={self.timeout})"
