"""
Closed-loop relay experiment against a simulated process.

The relay flips when its polarity disagrees with the sign of the measurement,
so it sustains an oscillation on a reverse-acting process (negative gain),
e.g. a cooling loop where more output lowers the measured value.
"""

from collections import deque

import numpy as np
import pytest

from relaypi import FaultReason, RelayPIController, SimulatedClock


class DeadTimeProcess:
    """
    First-order plus dead time (FOPDT) process.

    dy/dt = (K * u(t - theta) - y) / tau, integrated exactly per step.
    """

    def __init__(
        self,
        process_gain: float = -1.0,
        time_constant: float = 2.0,
        dead_time: float = 0.5,
        dt: float = 0.01,
        initial_output: float = 0.0,
    ):
        self.K = process_gain
        self.tau = time_constant
        self.dt = dt
        self.output = initial_output
        self._alpha = 1.0 - np.exp(-dt / time_constant)
        delay_steps = int(round(dead_time / dt))
        self._buffer = deque([0.0] * delay_steps, maxlen=delay_steps)

    def update(self, input_val: float) -> float:
        delayed_input = self._buffer[0]
        self._buffer.append(input_val)
        self.output += (self.K * delayed_input - self.output) * self._alpha
        return self.output

    @staticmethod
    def expected_half_cycle_ms(time_constant: float, dead_time: float) -> float:
        """Analytic relay half-period for a symmetric FOPDT loop."""
        return 1000.0 * (
            dead_time + time_constant * np.log(2.0 - np.exp(-dead_time / time_constant))
        )


def run_relay_experiment(controller, process, clock, steps):
    measured = process.output
    for _ in range(steps):
        clock.step_s(process.dt)
        relay_output = controller.relay_feedback_test(measured)
        controller.update(0.0, measured)
        measured = process.update(relay_output)
    return measured


def test_relay_experiment_identifies_oscillation():
    clock = SimulatedClock()
    process = DeadTimeProcess(process_gain=-1.0, time_constant=2.0, dead_time=0.5)
    controller = RelayPIController(kp=1.0, ki=0.0, dt=process.dt, clock=clock)

    run_relay_experiment(controller, process, clock, steps=2000)

    assert not controller.is_in_error_state()
    cycles = np.array(controller.get_cycle_times())
    assert len(cycles) == 10

    expected = DeadTimeProcess.expected_half_cycle_ms(2.0, 0.5)
    assert np.all(np.abs(cycles - expected) < 40.0)
    assert np.std(cycles) < 15.0

    ku, pu = controller.calculate_ultimate_gain_and_period()
    assert pu == pytest.approx(np.mean(cycles))
    assert ku > 0

    controller.set_tuning_parameters(ku, pu)
    assert controller.get_kp() == pytest.approx(0.45 * ku)
    assert controller.get_ki() == pytest.approx(0.54 * ku / pu)
    assert not controller.is_in_error_state()


def test_chattering_measurement_faults():
    clock = SimulatedClock(start_ms=5000.0)
    controller = RelayPIController(clock=clock)
    events = []
    controller.subscribe(events.append)

    # Sign flips every 10ms: far faster than the 100ms minimum half-cycle
    outputs = []
    for i in range(6):
        clock.step_ms(10.0)
        outputs.append(controller.auto_tune(0.0, 1.0 if i % 2 == 0 else -1.0))

    assert controller.is_in_error_state()
    assert events[0].reason == FaultReason.IMPLAUSIBLE_CYCLE
    # The rejected relay step contributes nothing; only the PI term remains
    assert outputs[0] == pytest.approx(-1.0)
    assert outputs[1:] == [0.0] * 5


def test_stalled_process_faults():
    clock = SimulatedClock(start_ms=5000.0)
    process = DeadTimeProcess(process_gain=1.0, time_constant=2.0, dead_time=0.5)
    controller = RelayPIController(clock=clock, initial_measured_value=-0.1)

    # A direct-acting process latches the relay: no crossing ever comes
    run_relay_experiment(controller, process, clock, steps=1500)
    assert controller.get_cycle_times() == ()
    assert not controller.is_in_error_state()

    # A late crossing after 15s is rejected as a stalled oscillation
    assert controller.relay_feedback_test(-controller.get_relay_state()) == 0.0
    assert controller.is_in_error_state()
    assert controller.get_last_fault() == FaultReason.IMPLAUSIBLE_CYCLE
