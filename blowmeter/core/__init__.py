"""Core blow detection logic for blowmeter."""

from .catalog import RecordingCatalog, RecordingEntry, format_duration
from .config import PRESETS, AppConfig, BlowConfig
from .controller import BlowProgressController
from .errors import (
    BlowmeterError,
    ErrorKind,
    InvalidStateError,
    SourceFatalError,
    SourceUnavailableError,
)
from .events import DEFAULT_TOPIC, BlowEvent, EventKind, EventPublisher
from .log import SessionLog
from .metering import MeteringSource, ScriptedMeteringSource, StreamMeteringSource
from .processing import apply_gain, calculate_dbfs, detect_driver_type
from .session import Session, SessionState

__all__ = [
    "AppConfig",
    "BlowConfig",
    "PRESETS",
    "BlowProgressController",
    "Session",
    "SessionState",
    "BlowEvent",
    "EventKind",
    "EventPublisher",
    "DEFAULT_TOPIC",
    "MeteringSource",
    "StreamMeteringSource",
    "ScriptedMeteringSource",
    "RecordingCatalog",
    "RecordingEntry",
    "format_duration",
    "SessionLog",
    "BlowmeterError",
    "ErrorKind",
    "InvalidStateError",
    "SourceFatalError",
    "SourceUnavailableError",
    "calculate_dbfs",
    "apply_gain",
    "detect_driver_type",
]
