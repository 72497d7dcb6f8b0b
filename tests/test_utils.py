"""Utility tests for blowmeter."""

from blowmeter.cli.utils import console, make_recordings_table
from blowmeter.core import RecordingEntry


def test_console_available():
    """Test that console is available."""
    assert console is not None
    assert hasattr(console, 'print')


def test_recordings_table_has_one_row_per_entry():
    entries = [
        RecordingEntry(identifier="a1", duration_millis=4000, audio_handle="audio/a1.wav"),
        RecordingEntry(identifier="b2", duration_millis=65_400, audio_handle="audio/b2.wav"),
    ]
    table = make_recordings_table(entries)
    assert table.row_count == 2
