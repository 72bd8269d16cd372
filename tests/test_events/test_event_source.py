"""Tests for event sources: lifecycle, callback fan-out, polling, queue ingest."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.core.types import Event
from src.events.base import EventSourceClosedError, PollingEventSource, QueueEventSource


class StubSource(PollingEventSource):
    """Polling source replaying canned results."""

    name = "stub"

    def __init__(
        self,
        poll_results: list[list[Event]] | None = None,
        poll_error: Exception | None = None,
        poll_interval_secs: float = 0.01,
    ) -> None:
        super().__init__(poll_interval_secs=poll_interval_secs)
        self._poll_results = poll_results or []
        self._poll_error = poll_error
        self._poll_index = 0
        self.connect_called = False
        self.close_called = False

    async def connect(self) -> None:
        self.connect_called = True

    async def close(self) -> None:
        self.close_called = True

    async def poll(self) -> list[Event]:
        if self._poll_error is not None:
            raise self._poll_error
        if self._poll_index < len(self._poll_results):
            result = self._poll_results[self._poll_index]
            self._poll_index += 1
            return result
        return []


class TestEventSourceLifecycle:
    async def test_start_calls_connect(self) -> None:
        source = StubSource()
        await source.start()
        assert source.connect_called
        assert source.running
        await source.stop()

    async def test_stop_calls_close(self) -> None:
        source = StubSource()
        await source.start()
        await source.stop()
        assert source.close_called
        assert not source.running

    async def test_start_is_idempotent(self) -> None:
        source = StubSource()
        await source.start()
        task1 = source._task
        await source.start()  # should be no-op
        assert source._task is task1
        await source.stop()

    async def test_async_context_manager(self) -> None:
        source = StubSource()
        async with source:
            assert source.running
        assert not source.running
        assert source.close_called


class TestEventSourceCallbacks:
    async def test_callbacks_receive_events(self) -> None:
        ev = Event(type="payment_failed", fields={"amount": 5})
        source = StubSource(poll_results=[[ev]])
        received: list[Event] = []
        source.on_event(received.append)
        cb = AsyncMock()
        source.on_event(cb)

        async with source:
            await asyncio.sleep(0.05)

        assert received == [ev]
        cb.assert_awaited_once_with(ev)
        assert source.emitted == 1

    async def test_callback_error_does_not_stop_others(self) -> None:
        ev = Event(type="x")
        source = StubSource(poll_results=[[ev]])
        source.on_event(AsyncMock(side_effect=RuntimeError("boom")))
        received: list[Event] = []
        source.on_event(received.append)

        async with source:
            await asyncio.sleep(0.05)

        assert received == [ev]

    async def test_poll_error_counted_and_loop_survives(self) -> None:
        source = StubSource(poll_error=ConnectionError("down"))
        async with source:
            await asyncio.sleep(0.05)
            assert source.running
        assert source.error_count >= 1


class TestQueueEventSource:
    async def test_push_buffers_until_started(self) -> None:
        source = QueueEventSource()
        source.push(Event(type="a"))
        source.push(Event(type="b"))
        assert source.pending == 2
        assert [e.type for e in source.take_pending()] == ["a", "b"]
        assert source.pending == 0

    async def test_pushed_events_reach_callback(self) -> None:
        source = QueueEventSource()
        received: list[Event] = []
        source.on_event(received.append)
        async with source:
            source.push(Event(type="a"))
            source.push(Event(type="b"))
            for _ in range(50):
                if len(received) == 2:
                    break
                await asyncio.sleep(0)
        assert [e.type for e in received] == ["a", "b"]

    async def test_consumer_waits_on_queue(self) -> None:
        source = QueueEventSource()
        async with source:
            await asyncio.sleep(0.02)
            assert source.emitted == 0
            assert source.running

    async def test_push_when_full_raises(self) -> None:
        source = QueueEventSource(maxsize=1)
        source.push(Event(type="a"))
        with pytest.raises(asyncio.QueueFull):
            source.push(Event(type="b"))

    async def test_stop_flushes_pending_events(self) -> None:
        source = QueueEventSource()
        received: list[Event] = []
        source.on_event(received.append)
        source.push(Event(type="late"))
        await source.stop()
        assert [e.type for e in received] == ["late"]
        assert source.pending == 0

    async def test_push_after_stop_rejected(self) -> None:
        source = QueueEventSource()
        async with source:
            pass
        assert source.closed
        with pytest.raises(EventSourceClosedError):
            source.push(Event(type="a"))
