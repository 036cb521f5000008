"""Spec file loading with validation.

SECURITY: File reads enforce a size limit, and validation happens at the
boundary before anything reaches the control plane.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import LoadBalancerSpec

logger = logging.getLogger(__name__)

VALID_NAME_PATTERN = r"^[a-z0-9][a-z0-9._-]{0,62}$"


class SpecLoadError(Exception):
    """Raised when spec loading or validation fails."""

    pass


@dataclass(frozen=True)
class LoadedSpec:
    """A validated spec and the name its state is stored under."""

    name: str
    spec: LoadBalancerSpec


def validate_name(name: str) -> str:
    """Check that a spec name is safe to use as a state file name.

    Raises:
        SpecLoadError: If the name does not match VALID_NAME_PATTERN.
    """
    if not re.match(VALID_NAME_PATTERN, name):
        raise SpecLoadError(f"Name must match pattern {VALID_NAME_PATTERN}: {name!r}")
    return name


def load_spec(spec_path: Path) -> LoadedSpec:
    """Load and validate a load balancer spec from YAML.

    Both a flat mapping and a Kubernetes-style document
    (apiVersion/kind/metadata/spec) are accepted. The name comes from
    metadata.name, falling back to the file stem.

    Args:
        spec_path: Path to the YAML file.

    Returns:
        The validated spec and its name.

    Raises:
        SpecLoadError: If the spec cannot be loaded or fails validation.
    """
    if not spec_path.exists():
        raise SpecLoadError(f"Spec file not found: {spec_path}")

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = spec_path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat spec file {spec_path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Spec file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {spec_path}"
        )

    try:
        content = spec_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read spec file {spec_path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {spec_path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Spec file must contain a YAML mapping: {spec_path}")

    name = spec_path.stem
    if "apiVersion" in raw_data and "spec" in raw_data:
        spec_data = raw_data.get("spec")
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {spec_path}")
        metadata = raw_data.get("metadata") or {}
        if isinstance(metadata, dict) and metadata.get("name"):
            name = str(metadata["name"])
    else:
        spec_data = raw_data

    try:
        spec = LoadBalancerSpec.model_validate(spec_data)
    except ValidationError as e:
        # Format Pydantic validation errors for readability
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {spec_path}:\n{error_list}") from e

    logger.info("Loaded load balancer spec '%s' from %s", name, spec_path)
    return LoadedSpec(name=validate_name(name), spec=spec)
