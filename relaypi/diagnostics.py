"""
Controller state machine vocabulary and transition notifications.

The controller reports every Normal/Error transition twice: as a loguru
record and as a ``StateTransition`` delivered to any subscribed observers.
Both channels are advisory; nothing in the control path depends on them.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, List, Optional

from loguru import logger


class ControllerState(IntEnum):
    """Fault guard states."""

    NORMAL = 0  # Control output enabled
    ERROR = 1  # Safe output (0) until explicitly recovered


class FaultReason(IntEnum):
    """Why a state transition happened."""

    EXCESSIVE_ERROR = 0  # |setpoint - measured| above the error threshold
    IMPLAUSIBLE_CYCLE = 1  # Relay half-cycle outside the valid window
    NO_OSCILLATION_DATA = 2  # Ku/Pu estimate requested with no cycles recorded
    INVALID_TUNING_RESULT = 3  # Non-positive Ku or Pu
    MANUAL = 4  # enter_error_state() called by the application
    RECOVERY = 5  # exit_error_state() called by the application


_REASON_MESSAGES = {
    FaultReason.EXCESSIVE_ERROR: "control error exceeded threshold",
    FaultReason.IMPLAUSIBLE_CYCLE: "relay cycle time outside valid window",
    FaultReason.NO_OSCILLATION_DATA: "no oscillation data recorded",
    FaultReason.INVALID_TUNING_RESULT: "non-positive ultimate gain or period",
    FaultReason.MANUAL: "error state requested",
    FaultReason.RECOVERY: "recovery requested",
}


@dataclass(frozen=True)
class StateTransition:
    """A single fault guard transition."""

    previous: ControllerState
    current: ControllerState
    reason: FaultReason
    timestamp_ms: float
    message: str


Observer = Callable[[StateTransition], None]


def describe(reason: FaultReason) -> str:
    """Human-readable description of a fault reason."""
    return _REASON_MESSAGES[reason]


class TransitionNotifier:
    """Fan-out of ``StateTransition`` events to subscribed callbacks."""

    def __init__(self):
        self._observers: List[Observer] = []

    def subscribe(self, callback: Observer) -> Observer:
        if callback not in self._observers:
            self._observers.append(callback)
        return callback

    def unsubscribe(self, callback: Observer) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def clear(self) -> None:
        self._observers.clear()

    def __len__(self) -> int:
        return len(self._observers)

    def publish(self, event: StateTransition) -> None:
        """
        Log the transition and deliver it to every observer.

        Observer failures are logged and swallowed so that a broken
        subscriber can never change the controller's output.
        """
        if event.current == ControllerState.ERROR:
            logger.error(
                f"Controller has entered an error state: {event.message} "
                f"({event.reason.name})"
            )
        else:
            logger.info(
                "Controller has exited the error state and is attempting to recover"
            )

        for callback in list(self._observers):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"State transition observer {callback!r} failed: {e}")


def make_transition(
    previous: ControllerState,
    current: ControllerState,
    reason: FaultReason,
    timestamp_ms: float,
    message: Optional[str] = None,
) -> StateTransition:
    return StateTransition(
        previous=previous,
        current=current,
        reason=reason,
        timestamp_ms=timestamp_ms,
        message=message or describe(reason),
    )
