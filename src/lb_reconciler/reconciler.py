"""Lifecycle reconciliation for asynchronously provisioned load balancers.

Every mutation on the control plane returns a work request rather than a
load balancer. The reconciler follows the same pattern for each lifecycle
call:

1. Issue the mutation and capture the work request
2. Record the work request id as the identifier so an interrupted call can
   resume tracking it instead of issuing a duplicate mutation
3. Poll until the composite state reaches a terminal state
4. Materialize the observed load balancer into the persisted fields

STATE MACHINE:
    Absent -> Requested(work request) -> CREATING -> ACTIVE
    ACTIVE -> UPDATING -> ACTIVE
    ACTIVE -> DELETING -> DELETED (identifier cleared)

Update does not wait for its work request to finish; it records the work
request's state and returns.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from azure.core.exceptions import ResourceNotFoundError

from .client import LoadBalancerClient
from .errors import ImmutableFieldError, InvalidStateError
from .identity import IdentityResolver, OperationIdentity, ResourceIdentity, parse_identity
from .materializer import materialize
from .models import WAITING_STATES, LoadBalancerSpec, LoadBalancerState
from .resource_data import ResourceData
from .schema import FORCE_NEW_FIELDS, REQUIRED_FIELDS, validate_required
from .tracker import ReconciliationContext
from .waiter import DEFAULT_POLL_INTERVAL_SECONDS, StateWaiter

logger = logging.getLogger(__name__)

CREATE_PENDING_STATES: frozenset[str] = WAITING_STATES | {LoadBalancerState.CREATING.value}
CREATE_TARGET_STATES: frozenset[str] = frozenset({LoadBalancerState.ACTIVE.value})

DELETE_PENDING_STATES: frozenset[str] = WAITING_STATES | {LoadBalancerState.DELETING.value}
DELETE_TARGET_STATES: frozenset[str] = frozenset({LoadBalancerState.DELETED.value})


class LoadBalancerReconciler:
    """Create/Read/Update/Delete for a single load balancer field map.

    Holds no per-resource state: each call builds its own
    ReconciliationContext, so one reconciler may serve many resources.
    """

    def __init__(
        self,
        client: LoadBalancerClient,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the reconciler.

        Args:
            client: Control-plane client.
            poll_interval_seconds: Sleep between state polls.
        """
        self._client = client
        self._resolver = IdentityResolver(client)
        self._poll_interval_seconds = poll_interval_seconds

    def create(self, data: ResourceData) -> None:
        """Create a load balancer and wait for it to become ACTIVE.

        On failure the identifier keeps the work request (or load balancer)
        id, so a later read resumes tracking it.

        Raises:
            SchemaValidationError: A required field is missing.
            ValidationError: A field value is invalid.
            ReconcileError: Identity, state or timeout failure while waiting.
            HttpResponseError: The control plane rejected a call.
        """
        spec = self._desired_spec(data)

        context = ReconciliationContext(data=data)
        work_request_id = self._client.create_load_balancer(spec.to_create_payload())
        # Recorded before anything else can fail, so a retry resumes this work request
        data.set_id(work_request_id)
        context.track(self._client.get_work_request(work_request_id))

        logger.info(
            "Load balancer create requested",
            extra={
                "work_request_id": work_request_id,
                "display_name": spec.display_name,
                "state": context.state(),
            },
        )

        data.set("state", context.state())

        self._wait(
            context,
            pending=CREATE_PENDING_STATES,
            target=CREATE_TARGET_STATES,
            timeout_seconds=data.timeouts.create,
        )

        data.set_id(context.id())
        materialize(context.resource, data)
        logger.info(
            "Load balancer created",
            extra={"load_balancer_id": data.id, "state": data.get("state")},
        )

    def read(self, data: ResourceData) -> None:
        """Refresh the field map from the control plane.

        While the work request is still running only "state" changes. If the
        load balancer no longer exists the identifier is cleared.

        Raises:
            InvalidStateError: The identifier is empty or malformed.
            InconsistentResponseError: Work request succeeded without an id.
        """
        context = ReconciliationContext(data=data)
        try:
            resolution = self._resolver.resolve(context)
        except ResourceNotFoundError:
            logger.warning(
                "Load balancer no longer exists, clearing identifier",
                extra={"load_balancer_id": data.id},
            )
            context.void_state()
            return

        if resolution.resolved:
            materialize(context.resource, data)

    def update(self, data: ResourceData) -> None:
        """Request a display name change without waiting for it to finish.

        Raises:
            ImmutableFieldError: A field that requires replacement changed.
            InvalidStateError: The identifier does not name a load balancer.
            SchemaValidationError: A required field is missing.
            ValidationError: A field value is invalid.
        """
        for name in FORCE_NEW_FIELDS:
            if data.has_change(name):
                raise ImmutableFieldError(name)

        load_balancer_id = self._require_load_balancer_id(data, "update")
        spec = self._desired_spec(data)
        payload = spec.to_update_payload()

        context = ReconciliationContext(data=data)
        work_request_id = self._client.update_load_balancer(load_balancer_id, payload)
        context.track(self._client.get_work_request(work_request_id))

        logger.info(
            "Load balancer update requested",
            extra={
                "load_balancer_id": load_balancer_id,
                "work_request_id": work_request_id,
                "state": context.state(),
            },
        )

        data.set("state", context.state())
        materialize(context.resource, data)

    def delete(self, data: ResourceData) -> None:
        """Delete the load balancer and wait until it is gone.

        "Not found", from the delete call or while waiting, counts as
        deleted. On any other failure the identifier is kept so a retry can
        resume.

        Raises:
            InvalidStateError: The identifier does not name a load balancer.
            ReconcileError: State or timeout failure while waiting.
        """
        load_balancer_id = self._require_load_balancer_id(data, "delete")
        context = ReconciliationContext(data=data)

        try:
            work_request_id = self._client.delete_load_balancer(load_balancer_id)
        except ResourceNotFoundError:
            logger.info(
                "Load balancer already deleted",
                extra={"load_balancer_id": load_balancer_id},
            )
            context.void_state()
            return

        context.track(self._client.get_work_request(work_request_id))
        data.set("state", context.state())

        logger.info(
            "Load balancer delete requested",
            extra={
                "load_balancer_id": load_balancer_id,
                "work_request_id": work_request_id,
                "state": context.state(),
            },
        )

        self._wait(
            context,
            pending=DELETE_PENDING_STATES,
            target=DELETE_TARGET_STATES,
            timeout_seconds=data.timeouts.delete,
            missing_state=LoadBalancerState.DELETED.value,
        )

        context.void_state()
        data.set("state", LoadBalancerState.DELETED.value)
        logger.info("Load balancer deleted", extra={"load_balancer_id": load_balancer_id})

    def _wait(
        self,
        context: ReconciliationContext,
        pending: Iterable[str],
        target: Iterable[str],
        timeout_seconds: float,
        missing_state: str | None = None,
    ) -> str:
        def refresh() -> str:
            self._resolver.resolve(context)
            state = context.state()
            context.data.set("state", state)
            return state

        waiter = StateWaiter(
            pending=pending,
            target=target,
            refresh=refresh,
            timeout_seconds=timeout_seconds,
            poll_interval_seconds=self._poll_interval_seconds,
            missing_state=missing_state,
        )
        return waiter.wait()

    @staticmethod
    def _desired_spec(data: ResourceData) -> LoadBalancerSpec:
        validate_required(data)
        return LoadBalancerSpec.model_validate({name: data.get(name) for name in REQUIRED_FIELDS})

    @staticmethod
    def _require_load_balancer_id(data: ResourceData, operation: str) -> str:
        identity = parse_identity(data.id)
        if isinstance(identity, ResourceIdentity):
            return identity.handle
        if isinstance(identity, OperationIdentity):
            raise InvalidStateError(
                f"Cannot {operation} load balancer: creation work request "
                f"{identity.handle} has not been resolved; read it first"
            )
        raise InvalidStateError(f"Cannot {operation} load balancer with an empty identifier")


# =============================================================================
# Host framework entry points
# =============================================================================


def create_load_balancer(
    data: ResourceData,
    client: LoadBalancerClient,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> None:
    LoadBalancerReconciler(client, poll_interval_seconds).create(data)


def read_load_balancer(
    data: ResourceData,
    client: LoadBalancerClient,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> None:
    LoadBalancerReconciler(client, poll_interval_seconds).read(data)


def update_load_balancer(
    data: ResourceData,
    client: LoadBalancerClient,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> None:
    LoadBalancerReconciler(client, poll_interval_seconds).update(data)


def delete_load_balancer(
    data: ResourceData,
    client: LoadBalancerClient,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> None:
    LoadBalancerReconciler(client, poll_interval_seconds).delete(data)
