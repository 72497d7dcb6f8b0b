"""Exception types raised by the blow detection core."""

from enum import Enum


class ErrorKind(str, Enum):
    """Error kinds reported through ``error`` events."""

    SOURCE_UNAVAILABLE = "source_unavailable"
    SOURCE_FATAL = "source_fatal"


class BlowmeterError(Exception):
    """Base class for all blowmeter errors."""


class InvalidStateError(BlowmeterError):
    """``start``/``stop`` was requested in a state that forbids it."""


class SourceUnavailableError(BlowmeterError):
    """A single metering sample could not be obtained.

    Recoverable: the controller treats the tick as silent and keeps listening.
    """


class SourceFatalError(BlowmeterError):
    """The metering source can no longer produce samples."""
