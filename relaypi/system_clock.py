"""
Wall-clock time source using the system epoch clock
"""
import time

from .clock_base import ClockBase


class SystemClock(ClockBase):
    """
    Epoch-based wall clock.

    Readings are absolute (time since the Unix epoch) rather than monotonic,
    because the ultimate gain estimate divides by the absolute timestamp of
    the last relay switch.
    """

    def __init__(self):
        self._clock_func = self._select_clock()
        self._clock_name = self._clock_func.__name__
        self._is_nanosecond = "ns" in self._clock_name

    def _select_clock(self):
        if hasattr(time, "time_ns"):
            try:
                time.time_ns()
                return time.time_ns
            except OSError:
                pass
        return time.time

    def get_time_us(self) -> float:
        if self._is_nanosecond:
            return self._clock_func() / 1000.0
        return self._clock_func() * 1_000_000.0

    def get_time_ms(self) -> float:
        if self._is_nanosecond:
            return self._clock_func() / 1_000_000.0
        return self._clock_func() * 1000.0

    def get_time_s(self) -> float:
        if self._is_nanosecond:
            return self._clock_func() / 1_000_000_000.0
        return self._clock_func()

    @property
    def clock_name(self) -> str:
        """Name of the selected clock function."""
        return self._clock_name

    def __str__(self):
        return f"SystemClock({self._clock_name})"
