"""CLI commands for blowmeter.

This module provides all command-line interface commands using Typer.
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger
from rich.panel import Panel
from rich.table import Table

from blowmeter.core import (
    BlowConfig,
    BlowProgressController,
    EventKind,
    EventPublisher,
    ErrorKind,
    RecordingCatalog,
    RecordingEntry,
    ScriptedMeteringSource,
    Session,
    SessionLog,
    SessionState,
    StreamMeteringSource,
)
from blowmeter.core.alarm import AlarmPlayer
from blowmeter.core.config import ALARM_VOLUME, AppConfig, PRESETS, RECORDINGS_DIR, FILE_EXTENSION
from blowmeter.core.recording import CaptureStream, RecordingEngine
from blowmeter.cli.utils import (
    console,
    make_blow_progress,
    make_device_table,
    make_recordings_table,
    suppress_stderr,
)

app = typer.Typer(help="Blow into the microphone to fill a progress bar")

app_config = AppConfig()
default_output_dir = str(app_config.get("output_dir", RECORDINGS_DIR))
default_file_extension = str(app_config.get("file_extension", FILE_EXTENSION))
preset_names = ", ".join(sorted(PRESETS))

TERMINAL_EVENTS = (EventKind.COMPLETED, EventKind.TIMED_OUT, EventKind.STOPPED)

OUTCOME_MESSAGES = {
    SessionState.COMPLETED: "[success]✓ Task completed! You have successfully completed the challenge![/success]",
    SessionState.TIMED_OUT: "[warning]⏱ Time up! The session ended before the bar was full.[/warning]",
    SessionState.STOPPED: "[warning]⏹ Session stopped[/warning]",
}


def _configure_logging(verbose: bool) -> None:
    """Configure loguru log level based on verbose flag."""
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG")
    else:
        logger.add(sys.stderr, level="WARNING")


def _load_blow_config(preset: Optional[str], **overrides) -> BlowConfig:
    try:
        return app_config.get_blow_config(preset, **overrides)
    except ValueError as e:
        console.print(f"[error]✗ Invalid detector configuration: {e}[/error]")
        sys.exit(1)


def _parse_samples(samples: List[str]) -> List[Optional[float]]:
    """Convert CLI sample strings to floats; ``-`` marks an unavailable sample."""
    values: List[Optional[float]] = []
    for raw in samples:
        if raw == "-":
            values.append(None)
            continue
        try:
            values.append(float(raw))
        except ValueError:
            console.print(f"[error]✗ Invalid sample: {raw!r}[/error]")
            sys.exit(1)
    return values


async def _no_delay(_seconds: float) -> None:
    await asyncio.sleep(0)


@app.command()
def list_devices(
    driver: Optional[str] = typer.Option(
        None, help="Filter by driver type: pulse, alsa, jack, usb, default"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """List all available input audio devices."""
    _configure_logging(verbose)
    if verbose:
        devices = RecordingEngine.list_devices(driver_filter=driver)
    else:
        with suppress_stderr():
            devices = RecordingEngine.list_devices(driver_filter=driver)

    title = "Available Input Devices"
    if driver:
        title += f" (filtered by: {driver})"
    console.print(Panel(make_device_table(devices), title=f"[bold]{title}[/bold]"))


@app.command()
def blow(
    preset: Optional[str] = typer.Option(
        None, help=f"Detector preset ({preset_names}). Defaults to the config file or 'metering'."
    ),
    rounds: int = typer.Option(1, min=1, help="Number of attempts to run back to back"),
    threshold: Optional[float] = typer.Option(
        None, help="Loudness in dBFS a sample must exceed to count as blowing"
    ),
    time_limit: Optional[float] = typer.Option(
        None, help="Session time limit in seconds"
    ),
    device_id: Optional[int] = typer.Option(
        None, help="Audio device ID to use. Leave empty for the system default."
    ),
    gain: float = typer.Option(
        1.0, help="Input gain/amplification factor (1.0=no change, 2.0=+6dB, 0.5=-6dB)"
    ),
    output: str = typer.Option(default_output_dir, help="Output directory for saved takes"),
    format: str = typer.Option(default_file_extension, help="Audio format: wav, flac or ogg"),
    log_file: Optional[str] = typer.Option(
        None,
        help=(
            "Override the session log filename (relative to --output directory). "
            "Defaults to the value from .blowmeter.yml or 'sessions.jsonl'."
        ),
    ),
    alarm: Optional[str] = typer.Option(
        None, help="Sound file to loop while listening. It is silenced when the session ends."
    ),
    alarm_volume: float = typer.Option(
        ALARM_VOLUME, min=0.0, max=1.0, help="Alarm playback volume (0.0-1.0)"
    ),
    clear_recordings: bool = typer.Option(
        False, "--clear-recordings", help="Start a new recordings list. Earlier takes stay on disk."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """Blow into the microphone until the progress bar is full."""
    _configure_logging(verbose)
    config = _load_blow_config(preset, threshold=threshold, time_limit=time_limit)

    output_dir = Path(output)
    log_path = output_dir / log_file if log_file else app_config.get_log_path(output_dir)
    session_log = SessionLog(log_path)
    catalog = RecordingCatalog()
    session_log.restore_catalog(catalog)
    if clear_recordings:
        catalog.clear()
        session_log.write_recordings_cleared()
        console.print("[info]🗑 Recordings list cleared[/info]")

    alarm_player = None
    if alarm:
        if not Path(alarm).is_file():
            console.print(f"[error]✗ Alarm sound not found: {alarm}[/error]")
            sys.exit(1)
        alarm_player = AlarmPlayer(alarm, volume=alarm_volume)

    try:
        stream = CaptureStream(
            rate=int(app_config.get("rate")),
            chunk=int(app_config.get("chunk")),
            output_dir=str(output_dir),
            device_id=device_id,
            gain_factor=gain,
            file_format=format,
        )
    except ValueError as e:
        console.print(f"[error]✗ {e}[/error]")
        sys.exit(1)

    try:
        asyncio.run(_blow_rounds(config, rounds, stream, catalog, session_log, alarm_player, verbose))
    except KeyboardInterrupt:
        console.print("[warning]⏹ Interrupted by user[/warning]")
    except Exception as e:
        console.print(f"[error]✗ Error during detection: {e}[/error]")
        sys.exit(1)

    if len(catalog):
        console.print(Panel(make_recordings_table(catalog.list()), title="[bold]🎵 Recorded Sounds[/bold]"))
    console.print(f"[dim]📝 Session log: {session_log.path}[/dim]")


async def _blow_rounds(
    config: BlowConfig,
    rounds: int,
    stream: CaptureStream,
    catalog: RecordingCatalog,
    session_log: SessionLog,
    alarm: Optional[AlarmPlayer],
    verbose: bool,
) -> None:
    for round_number in range(1, rounds + 1):
        console.rule(f"[bold]Round {round_number}/{rounds}[/bold]: blow into the microphone")
        session = await _blow_once(config, stream, catalog, session_log, alarm, verbose)
        console.print(OUTCOME_MESSAGES[session.state])


async def _blow_once(
    config: BlowConfig,
    stream: CaptureStream,
    catalog: RecordingCatalog,
    session_log: SessionLog,
    alarm: Optional[AlarmPlayer],
    verbose: bool,
) -> Session:
    """Run one detection session against the live microphone and save the take.

    When an *alarm* is given it loops from before the session starts until the
    first terminal event.
    """
    if verbose:
        stream.start()
    else:
        with suppress_stderr():
            stream.start()

    controller = BlowProgressController(StreamMeteringSource(stream), EventPublisher("blow_cli"))
    session = None
    try:
        if alarm is not None:
            if verbose:
                alarm.start()
            else:
                with suppress_stderr():
                    alarm.start()

        with make_blow_progress() as progress:
            blow_task = progress.add_task("💨 Blow", total=config.max_progress, value_text="0")
            time_task = None
            if config.time_limit is not None:
                time_task = progress.add_task("⏱ Time", total=config.time_limit, value_text="0.0s")

            def on_event(event):
                if event.kind is EventKind.PROGRESS_CHANGED:
                    progress.update(blow_task, completed=event.progress, value_text=f"{event.progress:g}")
                    if time_task is not None:
                        progress.update(time_task, completed=event.elapsed, value_text=f"{event.elapsed:.1f}s")
                elif event.kind is EventKind.ERROR and event.error is ErrorKind.SOURCE_FATAL:
                    console.print(f"[error]✗ Microphone failed: {event.message}[/error]")
                if event.kind in TERMINAL_EVENTS and alarm is not None:
                    alarm.stop()

            controller.publisher.subscribe(on_event)
            try:
                session = controller.start(config)
                session_log.write_session_start(session)
                await controller.wait()
            finally:
                if controller.state is SessionState.LISTENING:
                    controller.stop()
                controller.publisher.unsubscribe(on_event)
    finally:
        if alarm is not None:
            alarm.stop()
        # The controller is terminal here, so nothing samples the stream any more
        identifier = session.session_id if session is not None else "aborted"
        saved = stream.stop(identifier)

    catalog.add(RecordingEntry(
        identifier=session.session_id,
        duration_millis=saved.duration_millis,
        audio_handle=saved.path,
    ))
    session_log.write_session_end(session, audio_path=str(saved.path), duration_ms=saved.duration_millis)
    if alarm is not None and session.state is SessionState.COMPLETED:
        console.print("[success]🔕 Alarm successfully turned off![/success]")
    return session


@app.command()
def simulate(
    samples: List[str] = typer.Argument(
        ...,
        help="Loudness samples, one per tick. Use '-' for an unavailable sample and "
             "put '--' before negative values.",
    ),
    preset: Optional[str] = typer.Option(
        None, help=f"Detector preset ({preset_names}). Defaults to the config file or 'metering'."
    ),
    threshold: Optional[float] = typer.Option(None, help="Loudness a sample must exceed"),
    increment: Optional[float] = typer.Option(None, help="Progress gained per loud tick"),
    decay: Optional[float] = typer.Option(None, help="Progress lost per quiet tick"),
    max_progress: Optional[float] = typer.Option(None, help="Progress that completes the session"),
    time_limit: Optional[float] = typer.Option(None, help="Session time limit in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Replay loudness samples through the detector without a microphone."""
    _configure_logging(verbose)
    config = _load_blow_config(
        preset,
        threshold=threshold,
        increment=increment,
        decay=decay,
        max_progress=max_progress,
        time_limit=time_limit,
    )
    values = _parse_samples(samples)

    table = Table(show_header=True, header_style="bold", expand=False)
    table.add_column("Tick", style="cyan", justify="right")
    table.add_column("Elapsed", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Note", style="dim")

    ticks = []
    notes = []

    def on_event(event):
        if event.kind is EventKind.PROGRESS_CHANGED:
            ticks.append((event.elapsed, event.progress, "; ".join(notes)))
            notes.clear()
        elif event.kind is EventKind.ERROR:
            notes.append(event.error.value)

    publisher = EventPublisher("blow_simulation")
    publisher.subscribe(on_event)
    try:
        controller = BlowProgressController(ScriptedMeteringSource(values), publisher, sleep=_no_delay)
        session = asyncio.run(controller.run(config))
    finally:
        publisher.unsubscribe(on_event)

    for index, (elapsed, progress, note) in enumerate(ticks, start=1):
        table.add_row(str(index), f"{elapsed:g}s", f"{progress:g}", note)
    console.print(table)

    console.print(OUTCOME_MESSAGES[session.state])
    console.print(
        f"Outcome: {session.state.value} after {session.ticks} ticks "
        f"(progress {session.progress:g}/{config.max_progress:g}, elapsed {session.elapsed:g}s)"
    )
    if session.state is SessionState.STOPPED and notes:
        console.print(f"[dim]Stopped by: {'; '.join(notes)}[/dim]")
