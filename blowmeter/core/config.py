"""Configuration management for blowmeter.

This module provides configuration constants, the :class:`BlowConfig`
detector settings and the :class:`AppConfig` class which merges defaults with
values from an optional YAML file (``.blowmeter.yml`` in the working
directory).

Detector presets
----------------
Each preset is a complete :class:`BlowConfig`.  Thresholds are in dBFS, the
unit produced by :class:`~blowmeter.core.metering.StreamMeteringSource`.

==============  ========  =========  =====  =========  ====  ==========
Preset          Interval  Increment  Decay  Threshold  Max   Time limit
==============  ========  =========  =====  =========  ====  ==========
``metering``    0.1 s     0.1        0.05   -30 dBFS   1.0   none
``challenge``   0.5 s     10         0      -30 dBFS   100   5 s
==============  ========  =========  =====  =========  ====  ==========

Configuration file
------------------
Any preset value can be overridden in ``.blowmeter.yml``:

.. code-block:: yaml

    detector:
      preset: challenge
      threshold: -25
      time_limit: 8
    recording:
      rate: 16000
      output_dir: audio/
      file_extension: wav
    log:
      file: sessions.jsonl
"""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# Audio recording parameters
RATE = 16000
CHUNK = int(RATE / 10)  # 100ms, one level update per metering tick
CHANNEL = 1
FILE_EXTENSION = 'wav'  # Use 'wav', 'flac' or 'ogg'
RECORDINGS_DIR = 'audio/'
CONFIG_FILE = '.blowmeter.yml'

# Local session log
LOG_FILE = 'sessions.jsonl'

# Sample width enum (from pyaudio)
SAMPLE_WIDTH_INT16 = 2

DEFAULT_PRESET = 'metering'

# Alarm playback volume, low enough for the microphone to still hear a blow
ALARM_VOLUME = 0.7


@dataclass(frozen=True)
class BlowConfig:
    """Settings for one blow detection session.

    Attributes:
        interval: Seconds between two ticks.
        increment: Progress gained on a tick whose sample exceeds ``threshold``.
        decay: Progress lost on any other tick.
        threshold: Loudness a sample must exceed to count as blowing.
        max_progress: Progress ceiling; reaching it completes the session.
        time_limit: Optional session length in seconds.
        preset: Name of the preset this config derives from (informational).
    """

    interval: float
    increment: float
    decay: float
    threshold: float
    max_progress: float
    time_limit: Optional[float] = None
    preset: str = 'custom'

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")
        if self.increment <= 0:
            raise ValueError(f"increment must be positive, got {self.increment}")
        if self.decay < 0:
            raise ValueError(f"decay must not be negative, got {self.decay}")
        if self.max_progress <= 0:
            raise ValueError(f"max_progress must be positive, got {self.max_progress}")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ValueError(f"time_limit must be positive, got {self.time_limit}")

    @classmethod
    def preset_config(cls, name: str) -> "BlowConfig":
        """Return the named preset.

        Raises:
            ValueError: If *name* is not a known preset.
        """
        try:
            return PRESETS[name]
        except KeyError:
            known = ', '.join(sorted(PRESETS))
            raise ValueError(f"Unknown preset '{name}' (known presets: {known})") from None

    def with_overrides(self, **overrides: Any) -> "BlowConfig":
        """Return a copy with every non-``None`` override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if not changes:
            return self
        return replace(self, **changes)


PRESETS: Dict[str, BlowConfig] = {
    # Continuous metering at 10 Hz; silence leaks progress at half the gain rate.
    'metering': BlowConfig(
        interval=0.1,
        increment=0.1,
        decay=0.05,
        threshold=-30.0,
        max_progress=1.0,
        preset='metering',
    ),
    # Fill a 0-100 bar within five seconds; no decay.
    'challenge': BlowConfig(
        interval=0.5,
        increment=10.0,
        decay=0.0,
        threshold=-30.0,
        max_progress=100.0,
        time_limit=5.0,
        preset='challenge',
    ),
}

_DETECTOR_KEYS = ('interval', 'increment', 'decay', 'threshold', 'max_progress', 'time_limit')


class AppConfig:
    """Application configuration management."""

    def __init__(self) -> None:
        """Initialize configuration with defaults."""
        self._config: Dict[str, Any] = {
            'rate': RATE,
            'chunk': CHUNK,
            'channel': CHANNEL,
            'file_extension': FILE_EXTENSION,
            'output_dir': RECORDINGS_DIR,
            'sample_width': SAMPLE_WIDTH_INT16,
            'detector': {},
        }
        self._load_yaml_config()

    def _load_yaml_config(self) -> None:
        """Load optional YAML configuration from project root."""
        config_path = Path.cwd() / CONFIG_FILE
        if not config_path.exists():
            return

        content = yaml.safe_load(config_path.read_text(encoding='utf-8'))
        if not content:
            return

        if not isinstance(content, dict):
            raise ValueError(f"Configuration in {CONFIG_FILE} must be a mapping")

        recording_config = content.get('recording')
        if isinstance(recording_config, dict):
            for key in self._config.keys():
                if key in recording_config:
                    self._config[key] = recording_config[key]

        detector_config = content.get('detector')
        if detector_config is not None and not isinstance(detector_config, dict):
            raise ValueError(f"'detector' in {CONFIG_FILE} must be a mapping")

        for key, value in content.items():
            if key == 'recording':
                continue
            self._config[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value.

        Args:
            key: Configuration key
            value: Configuration value
        """
        self._config[key] = value

    def get_output_dir(self) -> Path:
        """Get output directory as Path object.

        Returns:
            Output directory path
        """
        output_dir = self._config.get('output_dir', RECORDINGS_DIR)
        path = Path(output_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_blow_config(self, preset: Optional[str] = None, **overrides: Any) -> BlowConfig:
        """Build the detector configuration.

        The preset named by *preset* (or ``detector.preset`` in the YAML file,
        or :data:`DEFAULT_PRESET`) is the base.  Values from the ``detector``
        section are applied on top, then any non-``None`` keyword *overrides*.

        Raises:
            ValueError: If the preset is unknown or a value fails validation.
        """
        detector = self._config.get('detector') or {}
        name = preset or detector.get('preset') or DEFAULT_PRESET
        base = BlowConfig.preset_config(name)

        file_values = {
            key: float(detector[key]) for key in _DETECTOR_KEYS
            if detector.get(key) is not None
        }
        return base.with_overrides(**file_values).with_overrides(**overrides)

    def get_log_path(self, output_dir: Optional[Path] = None) -> Path:
        """Return the session log file path.

        The log file name is taken from the ``log.file`` key in
        ``.blowmeter.yml`` when present, otherwise from the :data:`LOG_FILE`
        constant.  The file is placed inside *output_dir* (defaults to
        :meth:`get_output_dir`).

        Args:
            output_dir: Directory that will contain the log file.  When
                ``None`` the configured ``output_dir`` is used.

        Returns:
            Path including the log filename.
        """
        log_config = self._config.get('log')
        log_file = LOG_FILE
        if isinstance(log_config, dict):
            log_file = log_config.get('file', LOG_FILE)
        base = Path(output_dir) if output_dir is not None else self.get_output_dir()
        return base / log_file
