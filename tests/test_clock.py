"""
Tests for the clock implementations.
"""

import time

import pytest

from relaypi import ClockBase, SimulatedClock, SystemClock


def test_clocks_satisfy_protocol():
    assert isinstance(SimulatedClock(), ClockBase)
    assert isinstance(SystemClock(), ClockBase)


class TestSimulatedClock:
    def test_unit_conversions(self):
        clock = SimulatedClock(start_ms=1500.0)
        assert clock.get_time_ms() == 1500.0
        assert clock.get_time_us() == 1_500_000.0
        assert clock.get_time_s() == 1.5

    def test_stepping(self):
        clock = SimulatedClock()
        clock.step_ms(250.0)
        clock.step_s(0.75)
        assert clock.get_time_ms() == pytest.approx(1000.0)

    def test_set_and_reset(self):
        clock = SimulatedClock(start_ms=10.0)
        clock.set_time_ms(5000.0)
        assert clock.get_time_ms() == 5000.0
        clock.reset()
        assert clock.get_time_ms() == 10.0

    def test_negative_step_rejected(self):
        clock = SimulatedClock()
        with pytest.raises(ValueError):
            clock.step_ms(-1.0)

    def test_str(self):
        assert str(SimulatedClock(start_ms=42.0)) == "SimulatedClock(42.0ms)"


class TestSystemClock:
    def test_reports_epoch_time(self):
        clock = SystemClock()
        assert clock.get_time_ms() == pytest.approx(time.time() * 1000.0, abs=1000.0)
        assert clock.get_time_s() == pytest.approx(time.time(), abs=1.0)

    def test_readings_do_not_go_backwards_within_a_burst(self):
        clock = SystemClock()
        readings = [clock.get_time_us() for _ in range(100)]
        assert readings == sorted(readings)

    def test_unit_consistency(self):
        clock = SystemClock()
        ms = clock.get_time_ms()
        s = clock.get_time_s()
        assert s * 1000.0 == pytest.approx(ms, abs=50.0)

    def test_str_names_clock(self):
        clock = SystemClock()
        assert clock.clock_name in str(clock)
