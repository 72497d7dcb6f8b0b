"""Microphone capture for blowmeter.

This module is the host side of blow detection: it opens an input device,
keeps a live dBFS level for the metering source, and writes each take to an
audio file when the detection session ends.

Main public classes
-------------------
:class:`RecordingEngine`
    Static helpers for enumerating available input devices.

:class:`CaptureStream`
    Captures audio from a PyAudio input device.  The stream is
    **non-blocking**: PyAudio delivers buffers on its own callback thread,
    which updates :meth:`CaptureStream.current_level` and collects frames
    until :meth:`CaptureStream.stop` saves them.

Saved files are named ``<output_dir>/<identifier>.<extension>``, where the
identifier is normally the detection session ID::

    stream = CaptureStream(output_dir='audio/', device_id=3)
    stream.start()
    ...
    saved = stream.stop('3f9a0c1be2d4')
    # saved.path -> audio/3f9a0c1be2d4.wav
"""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pyaudio
import soundfile as sf
from loguru import logger

from .config import CHANNEL, CHUNK, FILE_EXTENSION, RATE, RECORDINGS_DIR
from .processing import apply_gain, calculate_dbfs, detect_driver_type

SUPPORTED_FORMATS = ('wav', 'flac', 'ogg')

# libsndfile subtype per container; OGG only stores compressed Vorbis
FORMAT_SUBTYPES = {'wav': 'PCM_16', 'flac': 'PCM_16', 'ogg': 'VORBIS'}


@dataclass(frozen=True)
class SavedAudio:
    """Reference to a take written to disk."""

    path: Path
    duration_millis: int


class RecordingEngine:
    """Input device discovery."""

    @staticmethod
    def list_devices(
        driver_filter: Optional[str] = None,
        audio: Optional[Any] = None,
    ) -> List[Dict[str, Any]]:
        """List all available input audio devices.

        Args:
            driver_filter: Optional driver type to filter by ('pulse', 'alsa', 'jack', 'usb', 'default')
            audio: Existing ``pyaudio.PyAudio`` instance to reuse

        Returns:
            One dict per input device with keys: id, name, driver, channels, rate, is_default
        """
        owns_audio = audio is None
        if owns_audio:
            audio = pyaudio.PyAudio()

        try:
            try:
                default_device = audio.get_default_input_device_info()
                default_device_id = int(default_device['index'])
            except OSError:
                default_device_id = -1

            input_devices = []
            for i in range(audio.get_device_count()):
                device_info = audio.get_device_info_by_index(i)
                if device_info.get('maxInputChannels', 0) <= 0:
                    continue

                device_name = device_info.get('name', 'Unknown')
                driver_type = detect_driver_type(device_name)

                # Skip if driver filter is specified and doesn't match
                if driver_filter and driver_type != driver_filter.lower():
                    continue

                input_devices.append({
                    'id': i,
                    'name': device_name,
                    'driver': driver_type,
                    'channels': int(device_info.get('maxInputChannels', 0)),
                    'rate': int(device_info.get('defaultSampleRate', 0)),
                    'is_default': i == default_device_id,
                })
        finally:
            if owns_audio:
                audio.terminate()

        logger.debug(f"Found {len(input_devices)} input device(s)")
        return input_devices


class CaptureStream:
    """Records one take from an input device and meters it while recording."""

    def __init__(
        self,
        rate: int = RATE,
        chunk: int = CHUNK,
        output_dir: str = RECORDINGS_DIR,
        device_id: Optional[int] = None,
        gain_factor: float = 1.0,
        file_format: str = FILE_EXTENSION,
    ) -> None:
        """Initialize the capture stream.

        Args:
            rate: Requested sample rate in Hz; the device's native rate wins
            chunk: Frames per PyAudio buffer, i.e. how often the level updates
            output_dir: Output directory for saved takes
            device_id: Audio device ID to use (``None`` = system default)
            gain_factor: Input gain factor
            file_format: Audio format (wav, flac, ogg)

        Raises:
            ValueError: If the file format is not supported
        """
        if file_format.lower() not in SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format '{file_format}', expected one of: {', '.join(SUPPORTED_FORMATS)}"
            )

        self._rate = rate
        self._chunk = chunk
        self._channel = CHANNEL
        self._sample_width = pyaudio.paInt16
        self._output_dir = Path(output_dir)
        self._device_id = device_id
        self._gain_factor = gain_factor
        self._file_format = file_format.lower()

        self._audio_interface = None
        self._audio_stream = None

        self._frames: List[bytes] = []
        self._frames_lock = threading.Lock()
        self._current_level: Optional[float] = None

        self._output_dir.mkdir(parents=True, exist_ok=True)

    def start(self) -> Dict[str, Any]:
        """Open the input stream and start collecting frames.

        Returns:
            Session info with keys: device_id, device_name, sample_rate, output_dir
        """
        self._audio_interface = pyaudio.PyAudio()

        # Get device info and use its native sample rate
        if self._device_id is None:
            device_info = self._audio_interface.get_default_input_device_info()
        else:
            device_info = self._audio_interface.get_device_info_by_index(self._device_id)
        self._rate = int(device_info.get('defaultSampleRate', self._rate))
        device_name = device_info.get('name', 'Unknown')

        with self._frames_lock:
            self._frames = []
        self._current_level = None

        self._audio_stream = self._audio_interface.open(
            format=self._sample_width,
            channels=self._channel,
            rate=self._rate,
            input=True,
            input_device_index=self._device_id,
            frames_per_buffer=self._chunk,
            stream_callback=self._fill_buffer,
        )
        logger.info(f'Capture started on {device_name} ({self._rate} Hz)')

        return {
            'device_id': int(device_info.get('index', -1)),
            'device_name': device_name,
            'sample_rate': self._rate,
            'output_dir': str(self._output_dir),
        }

    def is_active(self) -> bool:
        """Whether the input stream is open and delivering audio."""
        return self._audio_stream is not None and self._audio_stream.is_active()

    def current_level(self) -> Optional[float]:
        """Return the level of the latest buffer in dBFS, ``None`` before the first one."""
        return self._current_level

    def stop(self, identifier: str) -> SavedAudio:
        """Close the stream and save the take.

        Args:
            identifier: File stem for the saved take

        Returns:
            Reference to the written file
        """
        self._close()

        with self._frames_lock:
            frames = self._frames
            self._frames = []

        filename = self._output_dir / f'{identifier}.{self._file_format}'
        audio_data = np.frombuffer(b''.join(frames), dtype=np.int16)
        # Normalize to float32 for soundfile (-1.0 to 1.0 range)
        sf.write(
            str(filename),
            audio_data.astype(np.float32) / 32768.0,
            self._rate,
            subtype=FORMAT_SUBTYPES[self._file_format],
        )

        duration_millis = int(round(len(audio_data) * 1000 / self._rate)) if self._rate else 0
        logger.info(f'Saved: {filename} ({duration_millis} ms)')
        return SavedAudio(path=filename, duration_millis=duration_millis)

    def _close(self) -> None:
        if self._audio_stream:
            self._audio_stream.stop_stream()
            self._audio_stream.close()
            self._audio_stream = None
        if self._audio_interface:
            self._audio_interface.terminate()
            self._audio_interface = None
        logger.debug('Microphone has been closed')

    def _fill_buffer(
        self,
        in_data: bytes,
        frame_count: int,
        time_info: object,
        status_flags: object,
    ) -> tuple:
        """Collect data from the audio stream and update the level.

        Args:
            in_data: The audio data as a bytes object
            frame_count: The number of frames captured
            time_info: The time information
            status_flags: The status flags

        Returns:
            Tuple of (data, status_flag)
        """
        processed_data = apply_gain(in_data, self._gain_factor)
        self._current_level = calculate_dbfs(processed_data)

        with self._frames_lock:
            self._frames.append(processed_data)

        return None, pyaudio.paContinue
