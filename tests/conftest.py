"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for lb_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))


class FakeClock:
    """Stands in for the time module inside the waiter; sleeping advances now."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Patch the waiter's clock so polls never really sleep."""
    clock = FakeClock()
    monkeypatch.setattr("lb_reconciler.waiter.time", clock)
    return clock
