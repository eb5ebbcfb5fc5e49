"""
Shared fixtures for the RelayPI test suite.
"""

import pytest

from relaypi import RelayPIController, SimulatedClock


# Non-zero start so the last switch timestamp is never zero
CLOCK_START_MS = 1_000_000.0


@pytest.fixture
def clock() -> SimulatedClock:
    return SimulatedClock(start_ms=CLOCK_START_MS)


@pytest.fixture
def make_controller(clock):
    """Factory building controllers on the simulated clock."""

    def _make(**kwargs) -> RelayPIController:
        kwargs.setdefault("clock", clock)
        return RelayPIController(**kwargs)

    return _make


@pytest.fixture
def switch_relay(clock):
    """
    Advance the clock by ``gap_ms`` and feed a measurement whose sign forces
    a relay crossing. Returns the relay output.
    """

    def _switch(controller: RelayPIController, gap_ms: float) -> float:
        clock.step_ms(gap_ms)
        return controller.relay_feedback_test(-controller.get_relay_state() * 1.0)

    return _switch
