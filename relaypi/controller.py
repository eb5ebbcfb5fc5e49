"""
RelayPIController - Self-Tuning PI Controller (Relay Feedback Method)

This module provides a PI controller that discovers its own gains with a
relay feedback experiment. While auto-tuning, the actuator is driven between
+amplitude and -amplitude by the sign of the measured value, the time between
relay switches is recorded, and the ultimate gain and period estimated from
those switches are mapped to PI gains with Ziegler-Nichols relay coefficients.

Abnormal conditions never raise. They move the controller into an error
state in which auto_tune() returns a safe output of 0 until the application
calls exit_error_state().
"""

import math
from collections import deque
from pathlib import Path
from typing import Deque, NamedTuple, Optional, Tuple, Union

from loguru import logger

from .clock_base import ClockBase
from .config import load_config
from .diagnostics import (
    ControllerState,
    FaultReason,
    Observer,
    TransitionNotifier,
    make_transition,
)
from .exceptions import ConfigurationError
from .system_clock import SystemClock


class UltimateEstimate(NamedTuple):
    """Ultimate gain and period estimated from the relay experiment."""

    ku: float
    pu: float


class RelayPIController:
    """
    Relay auto-tuning PI controller.

    Usage pattern:
        controller = RelayPIController(kp=1.0, ki=0.0, dt=0.5,
                                       initial_measured_value=sensor_reading)

        # In control loop, once every dt seconds:
        output = controller.auto_tune(setpoint, sensor_reading)
        apply_output_to_actuator(output)

        if controller.is_in_error_state():
            # Inspect the process, then resume
            controller.exit_error_state()

    After tuning, update() alone gives plain PI control with the tuned gains.
    """

    # Ziegler-Nichols relay tuning coefficients for a PI controller
    KP_FACTOR = 0.45
    KI_FACTOR = 0.54

    def __init__(
        self,
        kp: float = 1.0,
        ki: float = 0.0,
        dt: float = 1.0,
        initial_measured_value: float = 0.0,
        *,
        relay_amplitude: float = 1.0,
        error_threshold: float = 100.0,
        min_cycle_ms: float = 100.0,
        max_cycle_ms: float = 10000.0,
        cycle_history: int = 10,
        clock: Optional[ClockBase] = None,
    ):
        """
        Initialize the controller.

        Args:
            kp: Initial proportional gain
            ki: Initial integral gain
            dt: Sampling interval in seconds used for integration
            initial_measured_value: Process value at start-up; sets the first
                relay polarity so the first relay step pushes toward setpoint
            relay_amplitude: Relay output magnitude during the relay test
            error_threshold: Largest |setpoint - measured| accepted by update()
            min_cycle_ms: Exclusive lower bound of a valid relay half-cycle
            max_cycle_ms: Exclusive upper bound of a valid relay half-cycle
            cycle_history: Number of recent half-cycles kept for Pu
            clock: Time source for relay switch timing

        Raises:
            ConfigurationError: If any limit is out of range
        """
        if dt <= 0:
            raise ConfigurationError("Sample interval dt must be positive")
        if relay_amplitude <= 0:
            raise ConfigurationError("Relay amplitude must be positive")
        if error_threshold <= 0:
            raise ConfigurationError("Error threshold must be positive")
        if min_cycle_ms < 0 or min_cycle_ms >= max_cycle_ms:
            raise ConfigurationError("Cycle window must satisfy 0 <= min < max")
        if cycle_history < 1:
            raise ConfigurationError("Cycle history must hold at least one cycle")

        self.clock = clock or SystemClock()

        # Gains (overwritten by the tuning estimator)
        self._kp: float = kp
        self._ki: float = ki
        self._dt: float = dt

        # PI state
        self._integral: float = 0.0
        self._error: float = 0.0
        self._p_term: float = 0.0
        self._i_term: float = 0.0

        # Relay oscillator
        self._relay_amplitude: float = relay_amplitude
        self._relay_state: int = -1 if initial_measured_value >= 0 else 1
        self._last_switch_time: float = self.clock.get_time_ms()
        self._cycle_times: Deque[float] = deque(maxlen=cycle_history)

        # Limits
        self._error_threshold = error_threshold
        self._min_cycle_ms = min_cycle_ms
        self._max_cycle_ms = max_cycle_ms

        # Fault guard
        self._state = ControllerState.NORMAL
        self._last_fault: Optional[FaultReason] = None
        self._fault_count: int = 0
        self._notifier = TransitionNotifier()

    @classmethod
    def from_config(
        cls, config_path: Union[str, Path], clock: Optional[ClockBase] = None
    ) -> "RelayPIController":
        """
        Create a controller from a YAML configuration file.

        Raises:
            ConfigurationError: If the file is malformed or invalid
        """
        config = load_config(config_path)
        ctrl = config["controller"]
        relay = config["relay"]
        return cls(
            kp=ctrl["kp"],
            ki=ctrl["ki"],
            dt=ctrl["dt"],
            initial_measured_value=ctrl["initial_measured_value"],
            relay_amplitude=relay["amplitude"],
            error_threshold=config["guard"]["error_threshold"],
            min_cycle_ms=relay["min_cycle_ms"],
            max_cycle_ms=relay["max_cycle_ms"],
            cycle_history=relay["history"],
            clock=clock,
        )

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit; drops all observers."""
        self._notifier.clear()

    # PI engine

    def update(self, setpoint: float, measured_value: float) -> float:
        """
        Compute the PI output for one control tick.

        Args:
            setpoint: Desired process value
            measured_value: Current process value

        Returns:
            kp * error + ki * integral, or 0 if the error is too large
        """
        error = setpoint - measured_value
        self._error = error

        if abs(error) > self._error_threshold:
            self.enter_error_state(FaultReason.EXCESSIVE_ERROR)
            return 0.0

        self._p_term = self._kp * error
        self._integral += error * self._dt
        self._i_term = self._ki * self._integral

        return self._p_term + self._i_term

    # Relay oscillator

    def relay_feedback_test(self, measured_value: float) -> float:
        """
        Run one step of the relay feedback experiment.

        The relay flips when its polarity disagrees with the sign of the
        measured value. The time since the previous flip is recorded as a
        half-cycle; a half-cycle outside the valid window puts the controller
        in the error state and suppresses the flip.

        Args:
            measured_value: Current process value

        Returns:
            relay_amplitude * relay_state, or 0 on an implausible cycle
        """
        if self._relay_state * measured_value < 0:
            now = self.clock.get_time_ms()
            cycle_time = now - self._last_switch_time
            self._last_switch_time = now

            if not self._min_cycle_ms < cycle_time < self._max_cycle_ms:
                logger.warning(
                    f"Rejected relay half-cycle of {cycle_time:.1f}ms "
                    f"(valid window {self._min_cycle_ms:.0f}-{self._max_cycle_ms:.0f}ms)"
                )
                self.enter_error_state(FaultReason.IMPLAUSIBLE_CYCLE)
                return 0.0

            self._cycle_times.append(cycle_time)
            self._relay_state *= -1
            logger.debug(
                f"Relay switched to {self._relay_state:+d} after {cycle_time:.1f}ms"
            )

        return self._relay_amplitude * self._relay_state

    # Tuning estimator

    def calculate_ultimate_gain_and_period(self) -> UltimateEstimate:
        """
        Estimate the ultimate gain and period from the recorded half-cycles.

        Pu is the mean recorded half-cycle in milliseconds. Ku follows the
        relay describing-function identity 4d / (pi * a), where the
        oscillation amplitude a is approximated by |integral / last switch
        time|. A zero approximation gives Ku = 0 rather than a division error.

        Returns:
            UltimateEstimate(ku, pu); (0, 0) and the error state when no
            half-cycles have been recorded
        """
        if not self._cycle_times:
            self.enter_error_state(FaultReason.NO_OSCILLATION_DATA)
            return UltimateEstimate(0.0, 0.0)

        pu = sum(self._cycle_times) / len(self._cycle_times)

        if self._last_switch_time == 0:
            return UltimateEstimate(0.0, pu)
        amplitude = abs(self._integral / self._last_switch_time)
        if amplitude == 0:
            return UltimateEstimate(0.0, pu)

        ku = (4 * self._relay_amplitude) / (math.pi * amplitude)
        if not math.isfinite(ku):
            ku = 0.0

        return UltimateEstimate(ku, pu)

    def set_tuning_parameters(self, ku: float, pu: float) -> None:
        """
        Apply Ziegler-Nichols relay PI gains.

        kp = 0.45 * Ku and ki = 0.54 * Ku / Pu. Non-positive inputs leave the
        gains untouched and put the controller in the error state.
        """
        if ku <= 0 or pu <= 0:
            self.enter_error_state(FaultReason.INVALID_TUNING_RESULT)
            return

        self._kp = self.KP_FACTOR * ku
        self._ki = (self.KI_FACTOR * ku) / pu
        logger.debug(
            f"Tunings updated from Ku={ku:.4f}, Pu={pu:.1f}ms: "
            f"Kp={self._kp:.4f}, Ki={self._ki:.6f}"
        )

    # Orchestration

    def auto_tune(self, setpoint: float, measured_value: float) -> float:
        """
        Run one auto-tuning control tick.

        Steps the relay, re-estimates Ku/Pu, retunes when both are positive
        and returns the PI output plus the relay excitation. Returns 0 without
        touching any state while the controller is in the error state.
        """
        if self._state == ControllerState.ERROR:
            return 0.0

        relay_output = self.relay_feedback_test(measured_value)
        ku, pu = self.calculate_ultimate_gain_and_period()

        if ku > 0 and pu > 0:
            self.set_tuning_parameters(ku, pu)

        return self.update(setpoint, measured_value) + relay_output

    # Fault guard

    def enter_error_state(self, reason: FaultReason = FaultReason.MANUAL) -> None:
        """Enter the error state and clear integral and cycle history."""
        previous = self._state
        self._state = ControllerState.ERROR
        self._integral = 0.0
        self._cycle_times.clear()
        self._last_fault = reason
        self._fault_count += 1

        self._notifier.publish(
            make_transition(
                previous, self._state, reason, self.clock.get_time_ms()
            )
        )

    def exit_error_state(self) -> None:
        """
        Leave the error state and resume normal operation.

        Recovery is unconditional: the underlying fault is not re-checked.
        """
        previous = self._state
        self._state = ControllerState.NORMAL
        self._integral = 0.0
        self._cycle_times.clear()

        self._notifier.publish(
            make_transition(
                previous, self._state, FaultReason.RECOVERY, self.clock.get_time_ms()
            )
        )

    def subscribe(self, callback: Observer) -> Observer:
        """Register a callback for state transitions. Returns the callback."""
        return self._notifier.subscribe(callback)

    def unsubscribe(self, callback: Observer) -> None:
        """Remove a previously registered transition callback."""
        self._notifier.unsubscribe(callback)

    # Query methods

    def get_kp(self) -> float:
        """Get proportional gain."""
        return self._kp

    def get_ki(self) -> float:
        """Get integral gain."""
        return self._ki

    def get_dt(self) -> float:
        """Get sample interval in seconds."""
        return self._dt

    def get_integral(self) -> float:
        """Get accumulated error integral."""
        return self._integral

    def get_last_error(self) -> float:
        """Get the error seen by the last update()."""
        return self._error

    def get_p_term(self) -> float:
        """Get proportional term component."""
        return self._p_term

    def get_i_term(self) -> float:
        """Get integral term component."""
        return self._i_term

    def get_cycle_times(self) -> Tuple[float, ...]:
        """Get recorded half-cycle durations in milliseconds, oldest first."""
        return tuple(self._cycle_times)

    def get_relay_state(self) -> int:
        """Get relay polarity (+1 or -1)."""
        return self._relay_state

    def get_relay_amplitude(self) -> float:
        return self._relay_amplitude

    def get_last_switch_time(self) -> float:
        """Get clock time of the last relay switch in milliseconds."""
        return self._last_switch_time

    def get_state(self) -> ControllerState:
        return self._state

    def is_in_error_state(self) -> bool:
        return self._state == ControllerState.ERROR

    def get_last_fault(self) -> Optional[FaultReason]:
        """Get the reason for the most recent error-state entry."""
        return self._last_fault

    def get_fault_count(self) -> int:
        """Get the number of error-state entries since construction."""
        return self._fault_count

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"RelayPIController(Kp={self._kp:.3f}, Ki={self._ki:.3f}, "
            f"relay={self._relay_state:+d}, cycles={len(self._cycle_times)}, "
            f"state={self._state.name})"
        )
