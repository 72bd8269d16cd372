"""Event sources: background consumer task, callback fan-out, lifecycle.

Two shapes of producer are supported. :class:`PollingEventSource` asks an
upstream for new events on a fixed interval; :class:`QueueEventSource` is
pushed to by in-process producers (HTTP ingest) and wakes as soon as an
event arrives.
"""

from __future__ import annotations

import abc
import asyncio
from collections.abc import Awaitable, Callable
from types import TracebackType

import structlog

from src.core.types import Event

logger = structlog.stdlib.get_logger()

EventCallback = Callable[[Event], Awaitable[None] | None]


class EventSourceClosedError(Exception):
    """The source has been stopped and no longer accepts events."""


class EventSource(abc.ABC):
    """Base class for event producers.

    Subclasses implement :meth:`_run`, the long-lived coroutine that produces
    events and hands each to :meth:`_emit`. The base class owns the task that
    runs it and the subscriber callbacks.

    Usage::

        source = QueueEventSource()
        source.on_event(pipeline.on_event)
        async with source:
            source.push(event)
    """

    name = "source"

    def __init__(self) -> None:
        self._callbacks: list[EventCallback] = []
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._error_count = 0
        self._emitted = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def emitted(self) -> int:
        return self._emitted

    def on_event(self, callback: EventCallback) -> None:
        """Register a callback for emitted events."""
        self._callbacks.append(callback)

    async def _emit(self, event: Event) -> None:
        """Hand one event to every callback; a failing callback is logged only."""
        self._emitted += 1
        for cb in self._callbacks:
            try:
                result = cb(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception(
                    "event_callback_error",
                    source=self.name,
                    event_type=event.type,
                )

    async def connect(self) -> None:
        """Open whatever the producer reads from."""

    async def close(self) -> None:
        """Release whatever :meth:`connect` opened."""

    @abc.abstractmethod
    async def _run(self) -> None:
        """Produce events until cancelled."""

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        await self.connect()
        self._task = asyncio.create_task(self._run(), name=f"event-source-{self.name}")
        logger.info("event_source_started", source=self.name)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.close()
        logger.info("event_source_stopped", source=self.name, emitted=self._emitted)

    async def __aenter__(self) -> EventSource:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()


class PollingEventSource(EventSource):
    """Calls :meth:`poll` every ``poll_interval_secs``.

    A failing poll is counted and logged; the next poll still happens.
    """

    def __init__(self, poll_interval_secs: float = 1.0) -> None:
        super().__init__()
        self._poll_interval_secs = poll_interval_secs

    @abc.abstractmethod
    async def poll(self) -> list[Event]:
        """Return events produced since the last poll."""

    async def _run(self) -> None:
        while self._running:
            try:
                for event in await self.poll():
                    await self._emit(event)
            except Exception:
                self._error_count += 1
                logger.exception(
                    "event_source_poll_error",
                    source=self.name,
                    error_count=self._error_count,
                )
            await asyncio.sleep(self._poll_interval_secs)


class QueueEventSource(EventSource):
    """Event source fed by producers calling :meth:`push` (e.g. HTTP ingest).

    Events pushed before :meth:`start` are buffered. :meth:`stop` emits
    whatever is still queued and then refuses further pushes.
    """

    name = "queue"

    def __init__(self, maxsize: int = 10_000) -> None:
        super().__init__()
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: Event) -> None:
        """Enqueue an event.

        Raises:
            EventSourceClosedError: the source has been stopped.
            asyncio.QueueFull: the producer outpaces processing.
        """
        if self._closed:
            raise EventSourceClosedError(self.name)
        self._queue.put_nowait(event)

    def take_pending(self) -> list[Event]:
        """Remove and return everything currently queued."""
        events: list[Event] = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            await self._emit(event)

    async def stop(self) -> None:
        self._closed = True
        await super().stop()
        leftover = self.take_pending()
        for event in leftover:
            await self._emit(event)
        if leftover:
            logger.info("event_source_flushed", source=self.name, events=len(leftover))
