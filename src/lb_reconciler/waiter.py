"""Bounded polling until a load balancer reaches a target state.

The waiter blocks the calling thread: it refreshes, checks the returned
state, and sleeps a fixed interval until a target state is reached or the
deadline passes. It owns no shared state, so independent waits may run in
separate threads.

Refresh errors propagate immediately; there is no retry on transient
failures here. The one exception is a configured missing_state: when the
refresh reports the resource as not found, the waiter treats that as having
observed missing_state (a delete-wait uses DELETED).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable

from .errors import UnexpectedStateError, WaitTimeoutError, is_missing_resource_error

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 10.0

RefreshFunc = Callable[[], str]


class StateWaiter:
    """Polls a refresh function until its state is in a target set."""

    def __init__(
        self,
        pending: Iterable[str],
        target: Iterable[str],
        refresh: RefreshFunc,
        timeout_seconds: float,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        missing_state: str | None = None,
    ) -> None:
        """Initialize the waiter.

        Args:
            pending: States that mean "keep waiting".
            target: States that end the wait successfully.
            refresh: Callable returning the current state; may raise.
            timeout_seconds: Maximum time to wait.
            poll_interval_seconds: Sleep between refreshes.
            missing_state: State to assume when refresh raises ResourceNotFoundError.
        """
        self.pending = frozenset(pending)
        self.target = frozenset(target)
        if not self.target:
            raise ValueError("target states cannot be empty")
        if self.pending & self.target:
            raise ValueError(
                f"states cannot be both pending and target: {sorted(self.pending & self.target)}"
            )
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive: {timeout_seconds}")
        if poll_interval_seconds < 0:
            raise ValueError(f"poll_interval_seconds cannot be negative: {poll_interval_seconds}")

        self._refresh = refresh
        self.timeout_seconds = timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.missing_state = missing_state
        self.refresh_count = 0

    def wait(self) -> str:
        """Block until a target state is reached.

        Returns:
            The target state that was observed.

        Raises:
            UnexpectedStateError: A state outside pending and target was observed.
            WaitTimeoutError: The deadline passed first.
            Exception: Whatever refresh raised, unless mapped to missing_state.
        """
        deadline = time.monotonic() + self.timeout_seconds

        while True:
            state = self._poll()

            if state in self.target:
                logger.debug(
                    "Reached target state",
                    extra={"state": state, "refresh_count": self.refresh_count},
                )
                return state

            if state not in self.pending:
                raise UnexpectedStateError(state, self.pending, self.target)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise WaitTimeoutError(state, self.timeout_seconds)

            time.sleep(min(self.poll_interval_seconds, remaining))

    def _poll(self) -> str:
        self.refresh_count += 1
        try:
            state = self._refresh()
        except Exception as e:
            if self.missing_state is not None and is_missing_resource_error(e):
                logger.debug(
                    "Resource not found while waiting, treating as '%s'",
                    self.missing_state,
                )
                return self.missing_state
            raise

        logger.debug(
            "Polled state",
            extra={
                "state": state,
                "refresh_count": self.refresh_count,
                "target": sorted(self.target),
            },
        )
        return state


def wait_for(
    pending: Iterable[str],
    target: Iterable[str],
    timeout_seconds: float,
    refresh: RefreshFunc,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    missing_state: str | None = None,
) -> str:
    """Poll refresh until it reports a target state.

    See StateWaiter for the semantics.
    """
    waiter = StateWaiter(
        pending=pending,
        target=target,
        refresh=refresh,
        timeout_seconds=timeout_seconds,
        poll_interval_seconds=poll_interval_seconds,
        missing_state=missing_state,
    )
    return waiter.wait()
