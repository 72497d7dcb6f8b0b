"""Metering sources consumed by the blow progress controller.

A metering source produces one loudness sample per call to ``sample()``.
The return value may be:

- a ``float`` loudness value (dBFS for :class:`StreamMeteringSource`),
- ``None`` when no sample is available right now,
- an awaitable resolving to either of the above.

Raising :class:`~blowmeter.core.errors.SourceUnavailableError` is equivalent
to returning ``None``; raising :class:`~blowmeter.core.errors.SourceFatalError`
ends the session.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Iterable, Optional, Union

from .errors import SourceFatalError

Sample = Optional[float]


class MeteringSource(ABC):
    """Interface for anything the controller can sample loudness from."""

    @abstractmethod
    def sample(self) -> Union[Sample, Awaitable[Sample]]:
        """Return the current loudness, ``None`` when unavailable."""


class StreamMeteringSource(MeteringSource):
    """Reads the live dBFS level of a :class:`~blowmeter.core.recording.CaptureStream`."""

    def __init__(self, stream) -> None:
        self._stream = stream

    def sample(self) -> Sample:
        if not self._stream.is_active():
            raise SourceFatalError("Capture stream is not active")
        return self._stream.current_level()


class ScriptedMeteringSource(MeteringSource):
    """Replays a fixed sequence of samples.

    ``None`` entries are reported as unavailable samples.  Once the sequence
    is exhausted the source is treated as gone.
    """

    def __init__(self, samples: Iterable[Sample]) -> None:
        self._samples = list(samples)
        self._position = 0

    @property
    def consumed(self) -> int:
        """Number of samples handed out so far."""
        return self._position

    def sample(self) -> Sample:
        if self._position >= len(self._samples):
            raise SourceFatalError(f"Scripted samples exhausted after {self._position} ticks")
        value = self._samples[self._position]
        self._position += 1
        return value
