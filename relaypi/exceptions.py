"""
Custom exceptions for the RelayPI package.

Runtime control faults are never raised; they move the controller into its
error state. These exceptions cover misuse and bad configuration only.
"""


class RelayPIError(Exception):
    """Base exception for all RelayPI related errors."""
    pass


class ConfigurationError(RelayPIError):
    """Exception raised when invalid configuration parameters are provided."""
    pass
