"""Utility functions for the SPIRE ServiceAccount operator."""

import base64
import threading
import time

from models import ReconcileCancelledError, ReconcileTimeoutError


def encode_credential(raw: bytes) -> str:
    """Encode raw credential bytes as transport-safe base64 text."""
    return base64.b64encode(raw).decode("ascii")


def short_error(e: BaseException, limit: int = 200) -> str:
    """Render an exception as '<Kind>: <message>' truncated for events."""
    return f"{type(e).__name__}: {e}"[:limit]


class Deadline:
    """Time budget shared by every call made during one reconcile.

    Each external call asks for a timeout through `timeout()`, which
    returns the smaller of the per-call timeout and the remaining budget,
    and raises once the budget is spent or the reconcile was cancelled.
    """

    def __init__(
        self,
        budget: float | None = None,
        cancelled: threading.Event | None = None,
    ) -> None:
        """Initialize the deadline.

        Args:
            budget: Seconds available from now, or None for no limit
            cancelled: Event that, once set, aborts the reconcile
        """
        self._expires_at = time.monotonic() + budget if budget is not None else None
        self.cancelled = cancelled or threading.Event()

    def remaining(self) -> float | None:
        """Seconds left, or None when unlimited."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def check(self) -> None:
        """Raise if the reconcile must stop now."""
        if self.cancelled.is_set():
            raise ReconcileCancelledError("reconcile cancelled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise ReconcileTimeoutError("reconcile deadline exceeded")

    def timeout(self, per_call: float | None = None) -> float | None:
        """Timeout to pass to the next call."""
        self.check()
        remaining = self.remaining()
        if remaining is None:
            return per_call
        if per_call is None:
            return remaining
        return min(per_call, remaining)

    def cancel(self) -> None:
        self.cancelled.set()

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining()}, cancelled={self.cancelled.is_set()})"
