"""On-disk persistence of field maps between lifecycle calls.

Each load balancer is stored as one JSON file. Saving after a failed create
keeps the work request id, so the next invocation resumes tracking it
instead of creating a second load balancer.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from .config import MAX_STATE_FILE_SIZE_BYTES
from .resource_data import ResourceData, Timeouts
from .spec_loader import validate_name

logger = logging.getLogger(__name__)


class StateStoreError(Exception):
    """Raised when persisted state cannot be read or written."""

    pass


class StateStore:
    """JSON files under a state directory, one per load balancer name."""

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    def path_for(self, name: str) -> Path:
        return self._state_dir / f"{validate_name(name)}.json"

    def load(self, name: str, timeouts: Timeouts | None = None) -> ResourceData | None:
        """Load a persisted field map.

        Returns:
            ResourceData, or None if nothing is stored under name.

        Raises:
            StateStoreError: If the file is unreadable, too large or corrupt.
        """
        path = self.path_for(name)
        if not path.exists():
            return None

        try:
            if path.stat().st_size > MAX_STATE_FILE_SIZE_BYTES:
                raise StateStoreError(
                    f"State file exceeds maximum size of {MAX_STATE_FILE_SIZE_BYTES} bytes: {path}"
                )
            raw = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise StateStoreError(f"Failed to read state file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise StateStoreError(f"Invalid JSON in state file {path}: {e}") from e

        if not isinstance(raw, dict):
            raise StateStoreError(f"State file must contain a JSON object: {path}")

        try:
            return ResourceData.from_dict(raw, timeouts=timeouts)
        except (KeyError, ValueError) as e:
            raise StateStoreError(f"Invalid state in {path}: {e}") from e

    def save(self, name: str, data: ResourceData) -> Path:
        """Write a field map atomically (write to temp file, then rename)."""
        path = self.path_for(name)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            content = json.dumps(data.to_dict(), indent=2, sort_keys=True)
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StateStoreError(f"Failed to write state file {path}: {e}") from e

        logger.debug("Saved state", extra={"state_name": name, "id": data.id, "path": str(path)})
        return path

    def delete(self, name: str) -> bool:
        """Remove a stored field map.

        Returns:
            True if removed, False if nothing was stored.
        """
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StateStoreError(f"Failed to remove state file {path}: {e}") from e
        return True
