"""Pydantic models for load balancers and their work requests.

These models provide:
1. Type-safe parsing of control-plane JSON (camelCase on the wire)
2. Validation of user-declared specs at the boundary
3. Clean transformation to create/update request payloads
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator

# Identifier prefixes assigned by the control plane
WORK_REQUEST_ID_PREFIX = "ocid1.loadbalancerworkrequest."
LOAD_BALANCER_ID_PREFIX = "ocid1.loadbalancer."


class WorkRequestState(str, Enum):
    """Lifecycle states of a load balancer work request."""

    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class LoadBalancerState(str, Enum):
    """Lifecycle states of a provisioned load balancer."""

    CREATING = "CREATING"
    ACTIVE = "ACTIVE"
    UPDATING = "UPDATING"
    DELETING = "DELETING"
    DELETED = "DELETED"
    FAILED = "FAILED"


# Work request states meaning "the resource does not exist yet"
WAITING_STATES: frozenset[str] = frozenset({
    WorkRequestState.ACCEPTED.value,
    WorkRequestState.IN_PROGRESS.value,
})


# =============================================================================
# Observed State
# =============================================================================


class WorkRequest(BaseModel):
    """An asynchronous control-plane operation on a load balancer."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    id: Annotated[str, Field(min_length=1)]
    load_balancer_id: str = Field("", alias="loadBalancerId")
    type: str = ""
    lifecycle_state: str = Field(alias="lifecycleState")
    message: str = ""
    time_accepted: datetime | None = Field(None, alias="timeAccepted")
    error_details: list[dict[str, Any]] = Field(default_factory=list, alias="errorDetails")

    @field_validator("load_balancer_id", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def succeeded(self) -> bool:
        return self.lifecycle_state == WorkRequestState.SUCCEEDED.value


class IpAddress(BaseModel):
    """An address assigned to a load balancer."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    ip_address: str = Field(alias="ipAddress")
    is_public: bool = Field(True, alias="isPublic")


class LoadBalancer(BaseModel):
    """Observed state of a provisioned load balancer."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    id: str = ""
    compartment_id: str = Field("", alias="compartmentId")
    display_name: str = Field("", alias="displayName")
    shape_name: str = Field("", alias="shapeName")
    subnet_ids: list[str] = Field(default_factory=list, alias="subnetIds")
    ip_addresses: list[IpAddress] = Field(default_factory=list, alias="ipAddresses")
    lifecycle_state: str = Field("", alias="lifecycleState")
    time_created: datetime | None = Field(None, alias="timeCreated")


# =============================================================================
# Desired State
# =============================================================================


class LoadBalancerSpec(BaseModel):
    """User-declared load balancer.

    compartment_id, shape and subnet_ids are fixed at creation;
    display_name is the only field that can be updated in place.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    compartment_id: Annotated[str, Field(min_length=1, alias="compartmentId")]
    shape: Annotated[str, Field(min_length=1)]
    subnet_ids: Annotated[list[str], Field(min_length=1, alias="subnetIds")]
    display_name: Annotated[str, Field(min_length=1, max_length=255, alias="displayName")]

    @field_validator("subnet_ids")
    @classmethod
    def validate_subnet_ids(cls, v: list[str]) -> list[str]:
        if any(not subnet for subnet in v):
            raise ValueError("subnetIds must not contain empty values")
        return v

    def to_create_payload(self) -> dict[str, Any]:
        """Convert to the control-plane create request body."""
        return {
            "compartmentId": self.compartment_id,
            "shapeName": self.shape,
            "subnetIds": list(self.subnet_ids),
            "displayName": self.display_name,
        }

    def to_update_payload(self) -> dict[str, Any]:
        """Convert to the control-plane update request body."""
        return {"displayName": self.display_name}

    def to_fields(self) -> dict[str, Any]:
        """Convert to the persisted field map keys."""
        return {
            "compartment_id": self.compartment_id,
            "shape": self.shape,
            "subnet_ids": list(self.subnet_ids),
            "display_name": self.display_name,
        }
