"""Local JSONL session log for blowmeter.

Appends structured JSON Lines entries to a log file alongside the saved
takes, capturing detector settings and the outcome of every detection
session.

Record types
------------
``session`` (event=``"start"``)
    Written when a session starts, with the detector configuration.

``session`` (event=``"end"``)
    Written when a session reaches a terminal state, with the final state,
    progress, elapsed time and the saved take (if any).

``recordings`` (event=``"clear"``)
    Written when the user clears the recordings list.  Takes saved before it
    stay on disk but are no longer listed.

Example log lines::

    {"type":"session","event":"start","session_id":"3f9a0c1be2d4","preset":"challenge","interval":0.5,"increment":10.0,"decay":0.0,"threshold":-30.0,"max_progress":100.0,"time_limit":5.0,"started_at":"2026-10-18T14:30:22"}
    {"type":"session","event":"end","session_id":"3f9a0c1be2d4","state":"completed","progress":100.0,"elapsed":3.5,"ticks":7,"sample_count":7,"audio_path":"audio/3f9a0c1be2d4.wav","duration_ms":3512,"ended_at":"2026-10-18T14:30:26"}
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

from .catalog import RecordingCatalog, RecordingEntry
from .session import Session


class SessionLog:
    """Appends JSONL log entries for detection sessions.

    Args:
        log_path: Path to the ``.jsonl`` log file.  Parent directories are
            created automatically.
    """

    def __init__(self, log_path: Path) -> None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._log_path = log_path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._log_path

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def write_session_start(self, session: Session) -> None:
        """Append a session-start record."""
        config = session.config
        self._append({
            "type": "session",
            "event": "start",
            "session_id": session.session_id,
            "preset": config.preset,
            "interval": config.interval,
            "increment": config.increment,
            "decay": config.decay,
            "threshold": config.threshold,
            "max_progress": config.max_progress,
            "time_limit": config.time_limit,
            "started_at": _iso(session.started_at),
        })

    def write_session_end(
        self,
        session: Session,
        audio_path: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        """Append a session-end record.

        Args:
            session: The terminal session.
            audio_path: Where the take was saved, ``None`` if it was not.
            duration_ms: Length of the saved take.
        """
        self._append({
            "type": "session",
            "event": "end",
            "session_id": session.session_id,
            "state": session.state.value,
            "progress": session.progress,
            "elapsed": session.elapsed,
            "ticks": session.ticks,
            "sample_count": session.sample_count,
            "audio_path": audio_path,
            "duration_ms": duration_ms,
            "ended_at": _iso(session.ended_at),
        })

    def write_recordings_cleared(self) -> None:
        """Append a record that empties the recordings list."""
        self._append({
            "type": "recordings",
            "event": "clear",
            "cleared_at": _iso(None),
        })

    def restore_catalog(self, catalog: RecordingCatalog) -> None:
        """Replace the contents of *catalog* with the takes listed in the log.

        Every session-end record with a saved take adds an entry; a
        ``recordings`` clear record empties the list again.
        """
        catalog.clear()
        if not self._log_path.exists():
            return

        with self._lock:
            lines = self._log_path.read_text(encoding="utf-8").splitlines()

        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"Skipping malformed line {number} in {self._log_path}")
                continue

            if record.get("type") == "recordings" and record.get("event") == "clear":
                catalog.clear()
            elif (
                record.get("type") == "session"
                and record.get("event") == "end"
                and record.get("audio_path")
            ):
                catalog.add(RecordingEntry(
                    identifier=record["session_id"],
                    duration_millis=int(record.get("duration_ms") or 0),
                    audio_handle=Path(record["audio_path"]),
                ))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _append(self, record: dict) -> None:
        """Serialise *record* as JSON and append it to the log file."""
        line = json.dumps(record, ensure_ascii=False) + "\n"
        with self._lock:
            with self._log_path.open("a", encoding="utf-8") as fh:
                fh.write(line)


def _iso(dt: Optional[datetime]) -> str:
    """Return a compact ISO 8601 string for *dt*, defaulting to now."""
    if dt is None:
        dt = datetime.now()
    return dt.replace(microsecond=0).isoformat()
