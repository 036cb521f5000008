"""Working set of a single lifecycle call."""

from __future__ import annotations

from dataclasses import dataclass

from .models import LoadBalancer, WorkRequest
from .resource_data import ResourceData


@dataclass
class ReconciliationContext:
    """Last known work request and load balancer for one lifecycle call.

    Owned by exactly one Create/Read/Update/Delete invocation and discarded
    when it returns. Once a load balancer with an id has been observed it is
    authoritative for state and id; the work request only fills the gap
    before that.
    """

    data: ResourceData
    work_request: WorkRequest | None = None
    resource: LoadBalancer | None = None

    def track(self, work_request: WorkRequest) -> None:
        """Remember the most recently observed work request."""
        self.work_request = work_request

    def state(self) -> str:
        """Composite state: load balancer, else work request, else ""."""
        if self.resource is not None:
            return self.resource.lifecycle_state
        if self.work_request is not None:
            return self.work_request.lifecycle_state
        return ""

    def id(self) -> str:
        """Load balancer id if known, else the work request's best id, else ""."""
        if self.resource is not None and self.resource.id:
            return self.resource.id
        if self.work_request is not None:
            if self.work_request.succeeded:
                return self.work_request.load_balancer_id
            return self.work_request.id
        return ""

    def void_state(self) -> None:
        """Mark the load balancer as gone by clearing the identifier."""
        self.data.set_id("")
