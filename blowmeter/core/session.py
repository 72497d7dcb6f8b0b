"""Detection session state."""

import datetime
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .config import BlowConfig


class SessionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    STOPPED = "stopped"


@dataclass
class Session:
    """One run of the detector from ``start()`` to a terminal state.

    Only the controller's tick handler mutates a listening session; once the
    session is terminal it is left untouched.
    """

    config: BlowConfig
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: SessionState = SessionState.IDLE
    progress: float = 0.0
    elapsed: float = 0.0
    ticks: int = 0
    sample_count: int = 0
    started_at: Optional[datetime.datetime] = None
    ended_at: Optional[datetime.datetime] = None

    @property
    def is_listening(self) -> bool:
        return self.state is SessionState.LISTENING
