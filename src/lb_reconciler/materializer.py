"""Projection of an observed load balancer into persisted fields."""

from __future__ import annotations

from datetime import UTC, datetime

from .models import LoadBalancer
from .resource_data import ResourceData


def format_time_created(value: datetime | None) -> str:
    """Render a timestamp as "YYYY-MM-DD HH:MM:SS[.fraction] +0000 UTC".

    Naive datetimes are taken to be UTC. Trailing zeros of the fraction are
    dropped, and the fraction is omitted when zero.
    """
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)

    rendered = value.strftime("%Y-%m-%d %H:%M:%S")
    if value.microsecond:
        rendered += "." + f"{value.microsecond:06d}".rstrip("0")
    return rendered + " +0000 UTC"


def materialize(resource: LoadBalancer | None, data: ResourceData) -> bool:
    """Write the observed load balancer into the field map.

    Does nothing until a load balancer with an id has been fetched, so that
    fields are never overwritten with empty values while only a work request
    is known.

    Returns:
        True if fields were written.
    """
    if resource is None or not resource.id:
        return False

    data.set_id(resource.id)
    data.set("compartment_id", resource.compartment_id)
    data.set("display_name", resource.display_name)
    data.set("shape", resource.shape_name)
    data.set("subnet_ids", list(resource.subnet_ids))
    # Computed
    data.set("id", resource.id)
    data.set("state", resource.lifecycle_state)
    data.set("time_created", format_time_created(resource.time_created))
    data.set("ip_addresses", [address.ip_address for address in resource.ip_addresses])
    return True
