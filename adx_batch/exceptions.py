"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class AdxBatchError(Exception):
    """Base exception for all application-specific errors."""


class ValidationFailure(AdxBatchError):
    """Raised when a required input is empty or invalid."""


class IOFailure(AdxBatchError):
    """Raised when a call to the worker engine is rejected or cannot be delivered."""


class ConfigurationError(AdxBatchError):
    """Raised for issues related to configuration loading or validation."""
