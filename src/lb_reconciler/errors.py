"""Error taxonomy for load balancer reconciliation.

Every failure raised by the reconciliation core derives from ReconcileError,
except the control plane's own errors, which come from azure-core and are
propagated unchanged:

- ResourceNotFoundError: the distinguished "not found" condition. Read turns
  it into a cleared identifier; a delete-wait turns it into DELETED.
- HttpResponseError / ClientAuthenticationError / ServiceRequestError:
  transport and auth failures. No local recovery.
"""

from __future__ import annotations

from collections.abc import Iterable

from azure.core.exceptions import ResourceNotFoundError


class ReconcileError(Exception):
    """Base class for reconciliation failures."""

    pass


class InvalidStateError(ReconcileError):
    """Raised when the identifier slot is empty or malformed on a read.

    This is an invariant violation, never retryable.
    """

    pass


class InconsistentResponseError(ReconcileError):
    """Raised when a work request reports success without a load balancer id."""

    pass


class UnexpectedStateError(ReconcileError):
    """Raised when a polled state is neither pending nor a target."""

    def __init__(self, state: str, pending: Iterable[str], target: Iterable[str]) -> None:
        self.state = state
        self.pending = tuple(sorted(pending))
        self.target = tuple(sorted(target))
        super().__init__(
            f"Unexpected state '{state}', wanted target {list(self.target)} "
            f"(pending {list(self.pending)})"
        )


class WaitTimeoutError(ReconcileError):
    """Raised when a poll exceeds its deadline without reaching a target state."""

    def __init__(self, last_state: str, timeout_seconds: float) -> None:
        self.last_state = last_state
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timeout after {timeout_seconds:g}s waiting for state change "
            f"(last state: '{last_state}')"
        )


class ImmutableFieldError(ReconcileError):
    """Raised when an update asks to change a field that requires replacement."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Field '{field}' cannot be updated in place")


def is_missing_resource_error(error: BaseException) -> bool:
    """Check whether an error is the control plane's "not found" condition."""
    return isinstance(error, ResourceNotFoundError)
