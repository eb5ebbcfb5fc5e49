"""
RelayPI - Self-Tuning PI Controller

A Python implementation of a PI controller that tunes itself with a relay
feedback experiment and Ziegler-Nichols relay coefficients.

Copyright (c) 2024 RelayPI Contributors
Licensed under the MIT License.
"""

from .clock_base import ClockBase
from .config import default_config, load_config, validate_config
from .controller import RelayPIController, UltimateEstimate
from .diagnostics import ControllerState, FaultReason, StateTransition
from .exceptions import ConfigurationError, RelayPIError
from .simulated_clock import SimulatedClock
from .system_clock import SystemClock

__version__ = "1.0.0"
__author__ = "RelayPI Contributors"
__license__ = "MIT"

__all__ = [
    "RelayPIController",
    "UltimateEstimate",
    "ControllerState",
    "FaultReason",
    "StateTransition",
    "RelayPIError",
    "ConfigurationError",
    "ClockBase",
    "SystemClock",
    "SimulatedClock",
    "default_config",
    "load_config",
    "validate_config",
]
