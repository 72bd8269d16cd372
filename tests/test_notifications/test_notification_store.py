"""Tests for NotificationStore: read state, deletion, queries, stats, subscriptions."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from src.core.types import Notification, NotificationFilter, Priority
from src.notifications.store import NotificationStore, apply_filter


# ── Helpers ─────────────────────────────────────────────────────

_T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _n(user_id: str = "alice", minutes: int = 0, **kw: object) -> Notification:
    defaults: dict[str, object] = {
        "user_id": user_id,
        "title": f"n{minutes}",
        "created_at": _T0 + timedelta(minutes=minutes),
    }
    defaults.update(kw)
    return Notification(**defaults)  # type: ignore[arg-type]


async def _store_with(*records: Notification) -> NotificationStore:
    store = NotificationStore()
    for r in records:
        await store.create(r)
    return store


# ── Writes ──────────────────────────────────────────────────────


class TestCreate:
    async def test_create_and_get(self) -> None:
        store = NotificationStore()
        n = await store.create({"user_id": "alice", "title": "hello", "priority": "high"})
        assert n.read is False
        assert n.priority == Priority.HIGH
        assert await store.get(n.id) == n

    async def test_get_scoped_to_owner(self) -> None:
        store = await _store_with(n := _n())
        assert await store.get(n.id, user_id="bob") is None
        assert await store.get(n.id, user_id="alice") == n


class TestReadState:
    async def test_mark_read_idempotent(self) -> None:
        store = await _store_with(n := _n())
        assert await store.mark_read(n.id) is True
        assert await store.mark_read(n.id) is False
        record = await store.get(n.id)
        assert record is not None and record.read is True

    async def test_mark_read_unknown_is_noop(self) -> None:
        assert await NotificationStore().mark_read("missing") is False

    async def test_mark_read_other_users_record_is_noop(self) -> None:
        store = await _store_with(n := _n())
        assert await store.mark_read(n.id, user_id="bob") is False
        assert (await store.stats("alice")).unread == 1

    async def test_mark_all_read(self) -> None:
        store = await _store_with(_n(minutes=1), _n(minutes=2), _n("bob"))
        assert await store.mark_all_read("alice") == 2
        assert await store.unread_count("alice") == 0
        assert await store.unread_count("bob") == 1

    async def test_mark_read_many(self) -> None:
        store = await _store_with(a := _n(minutes=1), b := _n(minutes=2), _n(minutes=3))
        assert await store.mark_read_many([a.id, b.id, "missing"]) == 2
        assert await store.unread_count("alice") == 1

    async def test_concurrent_mark_all_and_create(self) -> None:
        store = await _store_with(*(_n(minutes=i) for i in range(5)))
        await asyncio.gather(
            store.mark_all_read("alice"),
            store.create(_n(minutes=10)),
        )
        stats = await store.stats("alice")
        assert stats.total == 6
        assert stats.unread in (0, 1)

    async def test_user_locks_released_after_writes(self) -> None:
        store = await _store_with(*(_n(user_id=f"user{i}") for i in range(20)))
        await asyncio.gather(*(store.mark_all_read(f"user{i}") for i in range(20)))
        assert store._locks == {}
        assert store._lock_users == {}


class TestDelete:
    async def test_delete_idempotent(self) -> None:
        store = await _store_with(n := _n())
        assert await store.delete(n.id, user_id="alice") is True
        assert await store.delete(n.id, user_id="alice") is False
        assert await store.query("alice") == []

    async def test_delete_other_users_record_is_noop(self) -> None:
        store = await _store_with(n := _n())
        assert await store.delete(n.id, user_id="bob") is False
        assert len(await store.query("alice")) == 1

    async def test_delete_many(self) -> None:
        store = await _store_with(a := _n(minutes=1), b := _n(minutes=2))
        assert await store.delete_many([a.id, b.id, a.id]) == 2
        assert (await store.stats("alice")).total == 0


# ── Queries ─────────────────────────────────────────────────────


class TestQuery:
    async def test_newest_first(self) -> None:
        store = await _store_with(_n(minutes=1), _n(minutes=3), _n(minutes=2))
        assert [n.title for n in await store.query("alice")] == ["n3", "n2", "n1"]

    async def test_same_timestamp_falls_back_to_insertion_order(self) -> None:
        first = _n(title="first")
        second = _n(title="second")
        assert [n.title for n in apply_filter([first, second])] == ["second", "first"]

    async def test_only_own_records(self) -> None:
        store = await _store_with(_n("alice"), _n("bob"))
        assert all(n.user_id == "alice" for n in await store.query("alice"))
        assert await store.query("carol") == []

    async def test_filter_category_and_read(self) -> None:
        store = await _store_with(
            a := _n(minutes=1, category="billing"),
            _n(minutes=2, category="security"),
            _n(minutes=3, category="billing"),
        )
        await store.mark_read(a.id)
        result = await store.query("alice", NotificationFilter(category="billing", read=False))
        assert [n.title for n in result] == ["n3"]

    async def test_search_title_and_message_case_insensitive(self) -> None:
        store = await _store_with(
            _n(minutes=1, title="Payment failed", message="Acme Corp"),
            _n(minutes=2, title="SLA breach", message="ticket TCK-1"),
        )
        assert [n.title for n in await store.query("alice", NotificationFilter(search="acme"))] == [
            "Payment failed"
        ]
        assert len(await store.query("alice", NotificationFilter(search="SLA"))) == 1

    async def test_filter_priority(self) -> None:
        store = await _store_with(
            _n(minutes=1, priority=Priority.CRITICAL), _n(minutes=2, priority=Priority.LOW)
        )
        result = await store.query("alice", NotificationFilter(priority="critical"))
        assert [n.priority for n in result] == [Priority.CRITICAL]

    async def test_time_window(self) -> None:
        store = await _store_with(*(_n(minutes=i) for i in range(5)))
        f = NotificationFilter(
            since=_T0 + timedelta(minutes=1), until=_T0 + timedelta(minutes=3)
        )
        assert [n.title for n in await store.query("alice", f)] == ["n2", "n1"]

    async def test_limit_and_offset(self) -> None:
        store = await _store_with(*(_n(minutes=i) for i in range(5)))
        page = await store.query("alice", NotificationFilter(limit=2, offset=1))
        assert [n.title for n in page] == ["n3", "n2"]


class TestStats:
    async def test_stats_breakdown(self) -> None:
        store = await _store_with(
            a := _n(minutes=1, category="billing", priority=Priority.HIGH),
            _n(minutes=2, category="billing"),
            _n(minutes=3, category="security", priority=Priority.CRITICAL),
        )
        await store.mark_read(a.id)
        stats = await store.stats("alice")
        assert stats.total == 3
        assert stats.unread == 2
        assert stats.by_category == {"billing": 2, "security": 1}
        assert stats.by_priority == {"low": 0, "medium": 1, "high": 1, "critical": 1}

    async def test_stats_reflect_deletes(self) -> None:
        store = await _store_with(n := _n())
        await store.delete(n.id)
        stats = await store.stats("alice")
        assert stats.total == 0 and stats.unread == 0


# ── Subscriptions ───────────────────────────────────────────────


class TestSubscribe:
    async def test_new_records_pushed_to_subscriber(self) -> None:
        store = NotificationStore()
        queue = store.subscribe("alice")
        n = await store.create(_n())
        await store.create(_n("bob"))
        assert queue.get_nowait() == n
        assert queue.empty()

    async def test_unsubscribe(self) -> None:
        store = NotificationStore()
        queue = store.subscribe("alice")
        assert store.subscriber_count("alice") == 1
        store.unsubscribe("alice", queue)
        assert store.subscriber_count("alice") == 0
        await store.create(_n())
        assert queue.empty()

    async def test_full_queue_does_not_block_create(self) -> None:
        store = NotificationStore(subscriber_queue_size=1)
        queue = store.subscribe("alice")
        await store.create(_n(minutes=1))
        await store.create(_n(minutes=2))
        assert queue.qsize() == 1
        assert (await store.stats("alice")).total == 2
