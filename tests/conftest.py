"""Shared test fixtures for blowmeter tests."""

import asyncio
import itertools

import pytest

from blowmeter.core import EventPublisher

_topic_ids = itertools.count(1)


class EventRecorder:
    """Collects every event published on its own pypubsub topic."""

    def __init__(self, topic: str) -> None:
        self.events = []
        self.publisher = EventPublisher(topic)
        self.publisher.subscribe(self.on_event)

    def on_event(self, event):
        self.events.append(event)

    def kinds(self):
        return [event.kind for event in self.events]

    def of_kind(self, kind):
        return [event for event in self.events if event.kind is kind]


@pytest.fixture
def recorder():
    """Provide an event recorder subscribed to a topic unique to the test."""
    rec = EventRecorder(f"test_events_{next(_topic_ids)}")
    yield rec
    rec.publisher.unsubscribe(rec.on_event)


@pytest.fixture
def no_delay():
    """Provide a sleep replacement that only yields to the event loop."""

    async def _sleep(_seconds):
        await asyncio.sleep(0)

    return _sleep


@pytest.fixture
def temp_audio_dir(tmp_path):
    """Provide temporary audio directory for tests."""
    audio_dir = tmp_path / "audio"
    audio_dir.mkdir(parents=True, exist_ok=True)
    return audio_dir
