"""Main entry point for the load balancer reconciler (lbctl)."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from .config import DEFAULT_LOG_LEVEL

# Attributes every LogRecord carries; anything else came in via extra=
_RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS:
                log_data[key] = value

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = DEFAULT_LOG_LEVEL, json_logs: bool = True) -> None:
    """Configure logging: JSON lines on stdout, or plain text on stderr."""
    if json_logs:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if getattr(existing, "_lb_reconciler", False):
            root_logger.removeHandler(existing)
    handler._lb_reconciler = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Reduce noise from the HTTP stack
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def run() -> None:
    """Entry point for the lbctl console script."""
    from .cli import cli

    cli()


if __name__ == "__main__":
    run()
