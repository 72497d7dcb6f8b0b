"""In-memory catalog of completed recordings."""

import threading
from dataclasses import dataclass
from typing import Any, List, Tuple


@dataclass(frozen=True)
class RecordingEntry:
    """One saved take.

    Attributes:
        identifier: Session identifier the take belongs to.
        duration_millis: Length of the saved audio in milliseconds.
        audio_handle: Whatever the host uses to play the take back (a file path
            for :class:`~blowmeter.core.recording.CaptureStream`).
    """

    identifier: str
    duration_millis: int
    audio_handle: Any


class RecordingCatalog:
    """Append-only, ordered collection of :class:`RecordingEntry` objects.

    Writers are serialised by a lock; readers get an immutable snapshot so
    they can iterate while another thread adds or clears entries.
    """

    def __init__(self) -> None:
        self._entries: List[RecordingEntry] = []
        self._lock = threading.Lock()

    def add(self, entry: RecordingEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def clear(self) -> None:
        """Remove every entry at once."""
        with self._lock:
            self._entries = []

    def list(self) -> Tuple[RecordingEntry, ...]:
        """Return the entries in insertion order."""
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def format_duration(milliseconds: int) -> str:
    """Render a duration as ``m:ss``.

    >>> format_duration(65400)
    '1:05'
    """
    total_seconds = int(round(milliseconds / 1000))
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"
