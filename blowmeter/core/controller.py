"""Blow progress controller.

Converts a stream of loudness samples into a bounded progress value.  On
every tick the controller reads one sample from its
:class:`~blowmeter.core.metering.MeteringSource` and applies a leaky
integrator:

- sample above ``threshold``: ``progress = min(progress + increment, max)``
- otherwise (including unavailable samples): ``progress = max(progress - decay, 0)``

A session ends when progress reaches ``max_progress`` (completed), when
``elapsed`` reaches ``time_limit`` (timed out), on :meth:`stop`, or when the
source fails for good.  Each session runs as a single asyncio task; ticks
never overlap and none runs after the session reaches a terminal state.

Usage::

    controller = BlowProgressController(StreamMeteringSource(stream))
    session = await controller.run(BlowConfig.preset_config('metering'))
    print(session.state, session.progress)
"""

import asyncio
import datetime
import inspect
from typing import Awaitable, Callable, Optional

from loguru import logger

from .config import BlowConfig
from .errors import ErrorKind, InvalidStateError, SourceFatalError, SourceUnavailableError
from .events import BlowEvent, EventKind, EventPublisher
from .metering import MeteringSource, Sample
from .session import Session, SessionState

# Decimal places kept for progress and elapsed, so 0.1 steps land exactly on 1.0
_PRECISION = 9


class BlowProgressController:
    """Runs blow detection sessions against a metering source."""

    def __init__(
        self,
        source: MeteringSource,
        publisher: Optional[EventPublisher] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the controller.

        Args:
            source: Metering source sampled once per tick
            publisher: Event publisher; defaults to the ``blow_events`` topic
            sleep: Coroutine function used to wait between ticks
        """
        self._source = source
        self._publisher = publisher or EventPublisher()
        self._sleep = sleep
        self._session: Optional[Session] = None
        self._task: Optional[asyncio.Task] = None
        self._finished: Optional[asyncio.Event] = None

    @property
    def session(self) -> Optional[Session]:
        """The current (or most recent) session, ``None`` before the first start."""
        return self._session

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.IDLE
        return self._session.state

    @property
    def publisher(self) -> EventPublisher:
        return self._publisher

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, config: BlowConfig) -> Session:
        """Begin a new session and its sampling loop.

        Must be called while an asyncio event loop is running.  A previous
        terminal session is discarded.  If a ``started`` listener raises,
        the session ends as Stopped before the error propagates.

        Raises:
            InvalidStateError: If a session is already listening.
        """
        if self._session is not None and self._session.is_listening:
            raise InvalidStateError(
                f"Cannot start: session {self._session.session_id} is still listening"
            )
        loop = asyncio.get_running_loop()
        self._cancel_task()

        session = Session(
            config=config,
            state=SessionState.LISTENING,
            started_at=datetime.datetime.now(),
        )
        self._session = session
        self._finished = asyncio.Event()
        logger.info(
            f"Session {session.session_id} listening "
            f"(preset={config.preset}, threshold={config.threshold}, max={config.max_progress})"
        )
        try:
            self._emit(EventKind.STARTED, session)
        except Exception:
            self._fail(session)
            raise
        self._task = loop.create_task(self._run(session))
        return session

    def stop(self) -> Session:
        """Stop the listening session.

        The sampling task is cancelled before the ``stopped`` event is
        published.

        Raises:
            InvalidStateError: If no session is listening.
        """
        session = self._session
        if session is None or not session.is_listening:
            raise InvalidStateError(f"Cannot stop: controller is {self.state.value}")
        self._finish(session, SessionState.STOPPED)
        self._cancel_task()
        logger.info(f"Session {session.session_id} stopped at progress {session.progress}")
        self._emit(EventKind.STOPPED, session)
        return session

    async def wait(self) -> Session:
        """Wait until the current session reaches a terminal state.

        Raises:
            InvalidStateError: If no session has been started.
        """
        if self._session is None or self._finished is None:
            raise InvalidStateError("No session has been started")
        session, finished = self._session, self._finished
        await finished.wait()
        return session

    async def run(self, config: BlowConfig) -> Session:
        """Start a session and wait for it to end."""
        self.start(config)
        return await self.wait()

    # ------------------------------------------------------------------
    # Sampling loop
    # ------------------------------------------------------------------

    async def _run(self, session: Session) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        try:
            while session.is_listening:
                # Fixed-rate schedule; an overrunning tick delays the next one.
                deadline += session.config.interval
                await self._sleep(max(0.0, deadline - loop.time()))
                if not session.is_listening:
                    break
                await self._tick(session)
        except Exception:
            logger.exception(f"Session {session.session_id} aborted by an unexpected error")
            self._fail(session)

    async def _tick(self, session: Session) -> None:
        config = session.config
        sample = await self._read_sample(session)
        if not session.is_listening:
            return

        session.ticks += 1
        session.elapsed = round(session.ticks * config.interval, _PRECISION)

        if sample is not None and sample > config.threshold:
            progress = session.progress + config.increment
        else:
            progress = session.progress - config.decay
        session.progress = min(max(round(progress, _PRECISION), 0.0), config.max_progress)

        logger.debug(
            f"Session {session.session_id} tick {session.ticks}: "
            f"sample={sample} progress={session.progress} elapsed={session.elapsed}s"
        )
        self._emit(EventKind.PROGRESS_CHANGED, session)
        if not session.is_listening:
            return

        if session.progress >= config.max_progress:
            self._finish(session, SessionState.COMPLETED)
            logger.info(f"Session {session.session_id} completed after {session.ticks} ticks")
            self._emit(EventKind.COMPLETED, session)
        elif config.time_limit is not None and session.elapsed >= config.time_limit:
            self._finish(session, SessionState.TIMED_OUT)
            logger.info(
                f"Session {session.session_id} timed out after {session.elapsed}s "
                f"at progress {session.progress}"
            )
            self._emit(EventKind.TIMED_OUT, session)

    async def _read_sample(self, session: Session) -> Sample:
        """Read one sample; ``None`` means the tick counts as silent."""
        try:
            value = self._source.sample()
            if inspect.isawaitable(value):
                value = await value
            if value is not None:
                value = float(value)
        except SourceUnavailableError as error:
            self._report_unavailable(session, str(error) or "metering sample unavailable")
            return None
        except SourceFatalError as error:
            self._abort(session, str(error) or "metering source failed")
            return None
        except Exception as error:
            logger.exception(f"Metering source raised for session {session.session_id}")
            self._abort(session, f"{type(error).__name__}: {error}")
            return None

        if value is None:
            self._report_unavailable(session, "metering sample unavailable")
            return None
        if session.is_listening:
            session.sample_count += 1
        return value

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _report_unavailable(self, session: Session, message: str) -> None:
        if not session.is_listening:
            return
        logger.warning(f"Session {session.session_id}: {message}")
        self._emit(EventKind.ERROR, session, error=ErrorKind.SOURCE_UNAVAILABLE, message=message)

    def _abort(self, session: Session, message: str) -> None:
        if not session.is_listening:
            return
        logger.error(f"Session {session.session_id} stopped, metering source failed: {message}")
        self._finish(session, SessionState.STOPPED)
        self._emit(EventKind.ERROR, session, error=ErrorKind.SOURCE_FATAL, message=message)
        self._emit(EventKind.STOPPED, session)

    def _fail(self, session: Session) -> None:
        """End a listening session as Stopped after a listener or internal error."""
        if not session.is_listening:
            return
        self._finish(session, SessionState.STOPPED)
        try:
            self._emit(EventKind.STOPPED, session)
        except Exception:
            logger.exception(f"Listener failed on stop of session {session.session_id}")

    def _finish(self, session: Session, state: SessionState) -> None:
        session.state = state
        session.ended_at = datetime.datetime.now()
        if session is self._session and self._finished is not None:
            self._finished.set()

    def _cancel_task(self) -> None:
        """Cancel the sampling task unless it is the caller."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    def _emit(
        self,
        kind: EventKind,
        session: Session,
        error: Optional[ErrorKind] = None,
        message: str = "",
    ) -> None:
        self._publisher.publish(
            BlowEvent(
                kind=kind,
                session_id=session.session_id,
                progress=session.progress,
                elapsed=session.elapsed,
                error=error,
                message=message,
            )
        )
