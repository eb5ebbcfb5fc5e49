"""
Manually stepped clock for simulation and deterministic tests
"""

from .clock_base import ClockBase


class SimulatedClock(ClockBase):
    def __init__(self, start_ms: float = 0.0):
        self._start_ms = start_ms
        self._current_time_ms = start_ms

    def step_ms(self, delta_ms: float):
        """Advance time by delta in milliseconds"""
        if delta_ms < 0:
            raise ValueError("SimulatedClock cannot step backwards")
        self._current_time_ms += delta_ms

    def step_s(self, delta_s: float):
        """Advance time by delta in seconds"""
        self.step_ms(delta_s * 1000.0)

    def set_time_ms(self, value_ms: float):
        """Jump to an absolute time in milliseconds"""
        self._current_time_ms = value_ms

    def reset(self):
        """Return to the start time"""
        self._current_time_ms = self._start_ms

    def get_time_us(self) -> float:
        return self._current_time_ms * 1000.0

    def get_time_ms(self) -> float:
        return self._current_time_ms

    def get_time_s(self) -> float:
        return self._current_time_ms / 1000.0

    def __str__(self):
        return f"SimulatedClock({self._current_time_ms}ms)"
