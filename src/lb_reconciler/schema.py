"""Field schema for the load balancer resource.

Describes which persisted fields the user supplies and which the control
plane derives. Force-new fields cannot be changed in place; changing one
means replacing the load balancer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .resource_data import ResourceData


class FieldType(str, Enum):
    """Value shapes used by persisted fields."""

    STRING = "string"
    LIST = "list"


class SchemaValidationError(Exception):
    """Raised when required fields are missing from the field map."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__("Missing required fields: " + ", ".join(missing))


@dataclass(frozen=True)
class FieldSchema:
    """Schema of a single persisted field."""

    name: str
    type: FieldType = FieldType.STRING
    required: bool = False
    computed: bool = False
    force_new: bool = False


LOAD_BALANCER_SCHEMA: tuple[FieldSchema, ...] = (
    # Required
    FieldSchema("compartment_id", required=True, force_new=True),
    FieldSchema("shape", required=True, force_new=True),
    FieldSchema("subnet_ids", FieldType.LIST, required=True, force_new=True),
    FieldSchema("display_name", required=True),
    # Computed
    FieldSchema("id", computed=True),
    FieldSchema("ip_addresses", FieldType.LIST, computed=True),
    FieldSchema("state", computed=True),
    FieldSchema("time_created", computed=True),
)

FIELDS_BY_NAME: dict[str, FieldSchema] = {f.name: f for f in LOAD_BALANCER_SCHEMA}

REQUIRED_FIELDS: tuple[str, ...] = tuple(f.name for f in LOAD_BALANCER_SCHEMA if f.required)
FORCE_NEW_FIELDS: tuple[str, ...] = tuple(f.name for f in LOAD_BALANCER_SCHEMA if f.force_new)
MUTABLE_FIELDS: tuple[str, ...] = tuple(
    f.name for f in LOAD_BALANCER_SCHEMA if f.required and not f.force_new
)


def empty_value(name: str) -> str | list[str]:
    """Zero value for a field, as returned when it was never set."""
    schema = FIELDS_BY_NAME.get(name)
    if schema is not None and schema.type == FieldType.LIST:
        return []
    return ""


def validate_required(data: ResourceData) -> None:
    """Check that every required field is present and non-empty.

    Raises:
        SchemaValidationError: Listing all missing fields.
    """
    missing = [name for name in REQUIRED_FIELDS if not data.get_ok(name)[1]]
    if missing:
        raise SchemaValidationError(missing)
