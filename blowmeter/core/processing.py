"""Audio processing utilities for blowmeter.

This module provides the level calculations behind the metering source, gain
adjustment, and driver detection for device listings.
"""

import numpy as np
from loguru import logger

MAX_INT16 = 32768

# Floor reported for digital silence
SILENCE_DBFS = -120.0


def calculate_dbfs(audio_data: bytes) -> float:
    """Calculate the RMS level of int16 audio in dB relative to full scale.

    Args:
        audio_data: Raw audio bytes (int16)

    Returns:
        Level in dBFS, between ``SILENCE_DBFS`` and 0
    """
    try:
        audio_array = np.frombuffer(audio_data, dtype=np.int16)
    except ValueError as e:
        logger.debug(f"Error calculating dB level: {e}")
        return SILENCE_DBFS
    if audio_array.size == 0:
        return SILENCE_DBFS

    rms = np.sqrt(np.mean(audio_array.astype(float) ** 2))
    if rms <= 0:
        return SILENCE_DBFS

    db = 20 * np.log10(rms / MAX_INT16)
    return float(max(SILENCE_DBFS, min(0.0, db)))


def apply_gain(audio_data: bytes, gain_factor: float = 1.0) -> bytes:
    """Apply gain/amplification to audio data.

    Args:
        audio_data: Raw audio bytes (int16)
        gain_factor: Gain multiplier (1.0 = no change, 2.0 = +6dB, 0.5 = -6dB)

    Returns:
        Amplified audio data as bytes
    """
    if gain_factor == 1.0:
        return audio_data

    try:
        audio_array = np.frombuffer(audio_data, dtype=np.int16).astype(np.float32)
        # Clip before the int16 cast so loud input saturates instead of wrapping
        audio_array = np.clip(audio_array * gain_factor, -(MAX_INT16 - 1), MAX_INT16 - 1)
        return audio_array.astype(np.int16).tobytes()
    except ValueError as e:
        logger.debug(f"Error applying gain: {e}")
        return audio_data


def detect_driver_type(device_name: str) -> str:
    """Detect the audio driver type from device name.

    Args:
        device_name: The name of the audio device

    Returns:
        Driver type: 'pulse', 'alsa', 'jack', 'usb' or 'default'
    """
    name_lower = device_name.lower()

    if 'pulse' in name_lower or 'pipewire' in name_lower:
        return 'pulse'
    elif 'alsa' in name_lower or 'hw:' in name_lower or 'plughw' in name_lower:
        return 'alsa'
    elif 'jack' in name_lower:
        return 'jack'
    elif 'usb' in name_lower:
        return 'usb'
    else:
        return 'default'
