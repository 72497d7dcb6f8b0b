"""CLI utilities for blowmeter.

This module provides common CLI utilities like Rich console output, the
detection progress bars and the recordings table.
"""

import os
from contextlib import contextmanager
from typing import Iterable, List

from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table
from rich.theme import Theme

from blowmeter.core.catalog import RecordingEntry, format_duration

# Create themed console for consistent output
_theme = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "bold red",
        "debug": "dim white",
    }
)

console = Console(theme=_theme)


def make_device_table(devices: List[dict]) -> Table:
    """Build a Rich Table from the device list returned by RecordingEngine.list_devices().

    Args:
        devices: List of dicts with keys: id, name, driver, channels, rate, is_default

    Returns:
        Configured Rich Table ready to print.
    """
    table = Table(show_header=True, header_style="bold", show_lines=False, expand=False)
    table.add_column("ID", style="cyan", width=4, justify="right")
    table.add_column("Name", min_width=30)
    table.add_column("Driver", style="dim", width=8)
    table.add_column("Ch", justify="right", style="dim", width=4)
    table.add_column("Rate", justify="right", style="dim", width=12)
    table.add_column("", width=9)

    for d in devices:
        default_mark = "[bold green]DEFAULT[/bold green]" if d.get("is_default") else ""
        table.add_row(
            str(d["id"]),
            d["name"],
            d.get("driver", "").upper(),
            str(d.get("channels", "")),
            f"{d.get('rate', '')} Hz",
            default_mark,
        )
    return table


def make_recordings_table(entries: Iterable[RecordingEntry]) -> Table:
    """Build the numbered list of saved takes."""
    table = Table(show_header=True, header_style="bold", expand=False)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Session")
    table.add_column("Duration", justify="right")
    table.add_column("File", style="dim")

    for index, entry in enumerate(entries, start=1):
        table.add_row(
            str(index),
            entry.identifier,
            format_duration(entry.duration_millis),
            str(entry.audio_handle),
        )
    return table


def make_blow_progress() -> Progress:
    """Create a Rich Progress instance for a detection session.

    Usage::

        with make_blow_progress() as progress:
            blow = progress.add_task("💨 Blow", total=config.max_progress, value_text="0")
            progress.update(blow, completed=event.progress, value_text=f"{event.progress:g}")

    Returns:
        Configured Rich Progress instance.
    """
    return Progress(
        TextColumn("{task.description:<12}"),
        BarColumn(
            bar_width=50,
            complete_style="blue",
            finished_style="green",
            pulse_style="yellow",
        ),
        TextColumn("[bold]{task.fields[value_text]}[/bold]"),
        console=console,
        transient=False,
        expand=False,
    )


@contextmanager
def suppress_stderr():
    """Context manager to suppress stderr output from libraries like ALSA, JACK.

    Used to hide debug/warning messages from audio subsystems that pollute
    terminal output.
    """
    # Save original stderr file descriptor
    original_stderr_fd = os.dup(2)
    null_fd = os.open(os.devnull, os.O_WRONLY)
    try:
        os.dup2(null_fd, 2)
        yield
    finally:
        # Restore original stderr
        os.dup2(original_stderr_fd, 2)
        os.close(original_stderr_fd)
        os.close(null_fd)


__all__ = [
    "console",
    "suppress_stderr",
    "make_device_table",
    "make_recordings_table",
    "make_blow_progress",
]
