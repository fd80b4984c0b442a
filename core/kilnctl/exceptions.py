"""
Kiln Controller Exceptions

Simple exception hierarchy for error handling.
"""


class KilnError(Exception):
    """Base exception for the kiln controller."""

    pass


class ConfigurationError(KilnError):
    """Configuration is invalid."""

    pass


class ValidationError(KilnError):
    """A setpoint or schedule was rejected; nothing was changed."""

    pass


class OutOfRangeError(ValidationError):
    """A temperature lies outside the configured bounds."""

    pass


class TransportError(KilnError):
    """The serial link could not be opened or written."""

    pass
