"""Lifecycle events published by the blow progress controller.

Events are delivered in-process through pypubsub.  Every controller publishes
on one topic; listeners take a single ``event`` argument::

    def on_event(event: BlowEvent) -> None:
        ...

    pub.subscribe(on_event, DEFAULT_TOPIC)

pypubsub keeps weak references to listeners, so callers must hold on to the
listener for as long as it should receive events.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger
from pubsub import pub

from .errors import ErrorKind

DEFAULT_TOPIC = "blow_events"


class EventKind(str, Enum):
    STARTED = "started"
    PROGRESS_CHANGED = "progress_changed"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass(frozen=True)
class BlowEvent:
    """A single controller notification."""

    kind: EventKind
    session_id: str
    progress: float
    elapsed: float
    error: Optional[ErrorKind] = None
    message: str = ""


def _listener_prototype(event: BlowEvent) -> None:
    """Message signature of every blow event topic."""


class EventPublisher:
    """Publishes :class:`BlowEvent` objects on a pypubsub topic."""

    def __init__(self, topic: str = DEFAULT_TOPIC) -> None:
        """Initialize the publisher.

        Args:
            topic: Pub/sub topic name for blow events
        """
        self.topic = topic
        pub.getDefaultTopicMgr().getOrCreateTopic(topic, _listener_prototype)
        logger.debug(f"EventPublisher initialized with topic: {topic}")

    def publish(self, event: BlowEvent) -> None:
        """Send *event* to every listener subscribed to the topic."""
        pub.sendMessage(self.topic, event=event)

    def subscribe(self, listener) -> None:
        pub.subscribe(listener, self.topic)

    def unsubscribe(self, listener) -> None:
        pub.unsubscribe(listener, self.topic)
