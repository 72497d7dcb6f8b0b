"""Looping alarm playback.

The alarm plays while the microphone is metered and is silenced when the
detection session ends.  Playback is **non-blocking**: PyAudio pulls buffers
from :meth:`AlarmPlayer._next_buffer` on its own callback thread, wrapping
around to the start of the sound when it runs out::

    alarm = AlarmPlayer('alarm.wav', volume=0.7)
    alarm.start()
    ...
    alarm.stop()
"""

import threading
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pyaudio
import soundfile as sf
from loguru import logger

from .config import ALARM_VOLUME, CHUNK


class AlarmPlayer:
    """Plays a sound file on an output device in a loop."""

    def __init__(
        self,
        path: str,
        volume: float = ALARM_VOLUME,
        chunk: int = CHUNK,
        device_id: Optional[int] = None,
    ) -> None:
        """Initialize the player.

        Args:
            path: Sound file to loop (any format soundfile can read)
            volume: Playback volume between 0.0 and 1.0
            chunk: Frames per PyAudio buffer
            device_id: Output device ID (``None`` = system default)

        Raises:
            ValueError: If the volume is out of range
        """
        if not 0.0 <= volume <= 1.0:
            raise ValueError(f"volume must be between 0.0 and 1.0, got {volume}")

        self._path = Path(path)
        self._volume = volume
        self._chunk = chunk
        self._device_id = device_id

        self._audio_interface = None
        self._audio_stream = None

        self._samples: Optional[np.ndarray] = None
        self._position = 0
        self._lock = threading.Lock()

    def start(self) -> Dict[str, Any]:
        """Load the sound and start looping it.

        Returns:
            Playback info with keys: path, sample_rate, channels, frames

        Raises:
            ValueError: If the sound file holds no audio
        """
        data, sample_rate = sf.read(str(self._path), dtype='int16', always_2d=True)
        if len(data) == 0:
            raise ValueError(f"Alarm sound {self._path} is empty")

        with self._lock:
            self._samples = (data * self._volume).astype(np.int16)
            self._position = 0

        channels = self._samples.shape[1]
        self._audio_interface = pyaudio.PyAudio()
        self._audio_stream = self._audio_interface.open(
            format=pyaudio.paInt16,
            channels=channels,
            rate=sample_rate,
            output=True,
            output_device_index=self._device_id,
            frames_per_buffer=self._chunk,
            stream_callback=self._next_buffer,
        )
        logger.info(f'Alarm playing: {self._path}')

        return {
            'path': str(self._path),
            'sample_rate': sample_rate,
            'channels': channels,
            'frames': len(self._samples),
        }

    def is_playing(self) -> bool:
        return self._audio_stream is not None and self._audio_stream.is_active()

    def stop(self) -> None:
        """Silence the alarm.  Safe to call more than once."""
        if self._audio_stream is None and self._audio_interface is None:
            return
        if self._audio_stream:
            self._audio_stream.stop_stream()
            self._audio_stream.close()
            self._audio_stream = None
        if self._audio_interface:
            self._audio_interface.terminate()
            self._audio_interface = None
        logger.info('Alarm stopped')

    def _next_buffer(
        self,
        in_data: object,
        frame_count: int,
        time_info: object,
        status_flags: object,
    ) -> tuple:
        """Return the next *frame_count* frames, wrapping at the end of the sound."""
        with self._lock:
            total = len(self._samples)
            indices = np.arange(self._position, self._position + frame_count) % total
            self._position = (self._position + frame_count) % total
            chunk = self._samples[indices]
        return chunk.tobytes(), pyaudio.paContinue
