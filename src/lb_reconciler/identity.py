"""Identity resolution for load balancers that may not exist yet.

A persisted identifier names either an in-flight work request or a
provisioned load balancer. Rather than sniffing prefixes at every use, the
string is parsed once into a tagged identity:

    Identity = OperationIdentity | ResourceIdentity | AbsentIdentity

The resolver turns an operation identity into a resource identity exactly
once, when the work request reports success (the "handoff"). After the
handoff the persisted identifier holds the load balancer id, so the work
request is never queried again for that context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from .errors import InconsistentResponseError, InvalidStateError
from .models import LOAD_BALANCER_ID_PREFIX, WORK_REQUEST_ID_PREFIX

if TYPE_CHECKING:
    from .client import LoadBalancerClient
    from .tracker import ReconciliationContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationIdentity:
    """Identifier of an in-flight work request."""

    handle: str


@dataclass(frozen=True)
class ResourceIdentity:
    """Identifier of a provisioned load balancer."""

    handle: str


@dataclass(frozen=True)
class AbsentIdentity:
    """No identifier: nothing has been requested, or the resource is gone."""

    handle: str = ""


ABSENT: Final = AbsentIdentity()

Identity = OperationIdentity | ResourceIdentity | AbsentIdentity


def parse_identity(value: str) -> Identity:
    """Classify a persisted identifier string.

    The work request prefix is checked first so that a work request id is
    never read as a load balancer id.

    Raises:
        InvalidStateError: If a non-empty value carries neither prefix.
    """
    if not value:
        return ABSENT
    if value.startswith(WORK_REQUEST_ID_PREFIX):
        return OperationIdentity(value)
    if value.startswith(LOAD_BALANCER_ID_PREFIX):
        return ResourceIdentity(value)
    raise InvalidStateError(
        f"Cannot request load balancer with id {value!r}: expected it to begin with "
        f"{WORK_REQUEST_ID_PREFIX!r} or {LOAD_BALANCER_ID_PREFIX!r}"
    )


@dataclass(frozen=True)
class Resolution:
    """Outcome of one resolve() call.

    resolved is False while the work request is still running; the caller
    must stop this cycle without fetching the load balancer.
    """

    identity: Identity
    resolved: bool


class IdentityResolver:
    """Resolves the persisted identifier and fetches whatever it names."""

    def __init__(self, client: LoadBalancerClient) -> None:
        self._client = client

    def resolve(self, context: ReconciliationContext) -> Resolution:
        """Refresh the context from the control plane.

        May replace the persisted identifier (handoff) and the "state" field.
        Populates context.resource once the load balancer exists. Does not
        touch any other field.

        Raises:
            InvalidStateError: Empty or malformed identifier.
            InconsistentResponseError: Work request succeeded without a load balancer id.
            ResourceNotFoundError: The load balancer does not exist.
        """
        identity = parse_identity(context.data.id)
        if isinstance(identity, AbsentIdentity):
            raise InvalidStateError("Load balancer has an empty identifier")

        if isinstance(identity, OperationIdentity):
            work_request = self._client.get_work_request(identity.handle)
            context.track(work_request)
            context.data.set("state", work_request.lifecycle_state)

            if not work_request.succeeded:
                logger.debug(
                    "Work request not finished",
                    extra={
                        "work_request_id": identity.handle,
                        "state": work_request.lifecycle_state,
                    },
                )
                return Resolution(identity=identity, resolved=False)

            identity = self._handoff(work_request.id, work_request.load_balancer_id)
            context.data.set_id(identity.handle)
            context.work_request = None

        context.resource = self._client.get_load_balancer(identity.handle)
        return Resolution(identity=identity, resolved=True)

    @staticmethod
    def _handoff(work_request_id: str, load_balancer_id: str) -> ResourceIdentity:
        if not load_balancer_id:
            raise InconsistentResponseError(
                f"Work request {work_request_id} succeeded without a load balancer id"
            )
        identity = parse_identity(load_balancer_id)
        if not isinstance(identity, ResourceIdentity):
            raise InvalidStateError(
                f"Work request {work_request_id} produced an id that is not a "
                f"load balancer: {load_balancer_id!r}"
            )
        logger.info(
            "Work request succeeded, tracking load balancer",
            extra={"work_request_id": work_request_id, "load_balancer_id": load_balancer_id},
        )
        return identity
