"""NotificationStore: per-user notification records, queries and stats."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any

import structlog

from src.core.types import (
    Notification,
    NotificationFilter,
    NotificationStats,
)
from src.store.base import NotificationRepo
from src.store.memory import InMemoryNotificationRepo

logger = structlog.get_logger(__name__)


def apply_filter(
    records: Iterable[Notification],
    filters: NotificationFilter | None = None,
) -> list[Notification]:
    """Filter records and return them newest-first."""
    f = filters or NotificationFilter()
    needle = f.search.strip().lower() if f.search else ""

    selected: list[tuple[int, Notification]] = []
    for seq, n in enumerate(records):
        if f.category is not None and n.category != f.category:
            continue
        if f.read is not None and n.read != f.read:
            continue
        if f.priority is not None and n.priority != f.priority:
            continue
        if f.since is not None and n.created_at < f.since:
            continue
        if f.until is not None and n.created_at >= f.until:
            continue
        if needle and needle not in f"{n.title}\n{n.message}".lower():
            continue
        selected.append((seq, n))

    # Ties on created_at fall back to insertion order, newest first.
    selected.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)
    result = [n for _, n in selected]
    if f.offset:
        result = result[f.offset:]
    if f.limit is not None:
        result = result[: f.limit]
    return result


def compute_stats(records: Iterable[Notification]) -> NotificationStats:
    stats = NotificationStats()
    for n in records:
        stats.total += 1
        if not n.read:
            stats.unread += 1
        stats.by_priority[n.priority.label] += 1
        stats.by_category[n.category] = stats.by_category.get(n.category, 0) + 1
    return stats


class NotificationStore:
    """Owns :class:`Notification` records.

    Writes for one user are serialised by a per-user ``asyncio.Lock`` so
    unrelated users never wait on each other. Reads (``query``/``stats``)
    take no lock and never wait on delivery.

    New records are also pushed to any live subscriber queues for that
    user; ``query`` remains the pull fallback.
    """

    def __init__(
        self,
        repo: NotificationRepo | None = None,
        subscriber_queue_size: int = 100,
    ) -> None:
        self._repo = repo or InMemoryNotificationRepo()
        self._locks: dict[str, asyncio.Lock] = {}
        # Holders plus waiters per user lock.
        self._lock_users: dict[str, int] = {}
        self._subscribers: dict[str, set[asyncio.Queue[Notification]]] = {}
        self._queue_size = subscriber_queue_size

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        """Serialise writes for one user; the lock is dropped once idle."""
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

    # ── Writes ──────────────────────────────────────────────────

    async def create(self, notification: Notification | dict[str, Any]) -> Notification:
        if not isinstance(notification, Notification):
            notification = Notification.model_validate(notification)
        async with self._user_lock(notification.user_id):
            await self._repo.add(notification)
        logger.info(
            "notification_created",
            notification_id=notification.id,
            user_id=notification.user_id,
            category=notification.category,
            priority=notification.priority.label,
        )
        self._publish(notification)
        return notification

    async def mark_read(self, notification_id: str, user_id: str | None = None) -> bool:
        """Mark one record read. Unknown or already-read ids are a no-op."""
        record = await self._owned(notification_id, user_id)
        if record is None or record.read:
            return False
        async with self._user_lock(record.user_id):
            return await self._repo.set_read(notification_id)

    async def mark_read_many(
        self, notification_ids: Iterable[str], user_id: str | None = None
    ) -> int:
        changed = 0
        for nid in notification_ids:
            if await self.mark_read(nid, user_id):
                changed += 1
        return changed

    async def mark_all_read(self, user_id: str) -> int:
        async with self._user_lock(user_id):
            changed = await self._repo.set_all_read(user_id)
        if changed:
            logger.info("notifications_marked_read", user_id=user_id, count=changed)
        return changed

    async def delete(self, notification_id: str, user_id: str | None = None) -> bool:
        """Delete one record. Deleting an absent id is a no-op."""
        record = await self._owned(notification_id, user_id)
        if record is None:
            return False
        async with self._user_lock(record.user_id):
            return await self._repo.remove(notification_id)

    async def delete_many(
        self, notification_ids: Iterable[str], user_id: str | None = None
    ) -> int:
        deleted = 0
        for nid in notification_ids:
            if await self.delete(nid, user_id):
                deleted += 1
        return deleted

    # ── Reads ───────────────────────────────────────────────────

    async def get(self, notification_id: str, user_id: str | None = None) -> Notification | None:
        return await self._owned(notification_id, user_id)

    async def query(
        self,
        user_id: str,
        filters: NotificationFilter | None = None,
    ) -> list[Notification]:
        return apply_filter(await self._repo.list_for_user(user_id), filters)

    async def stats(self, user_id: str) -> NotificationStats:
        """Recomputed from current records on every call."""
        return compute_stats(await self._repo.list_for_user(user_id))

    async def unread_count(self, user_id: str) -> int:
        return (await self.stats(user_id)).unread

    async def _owned(self, notification_id: str, user_id: str | None) -> Notification | None:
        record = await self._repo.get(notification_id)
        if record is None:
            return None
        if user_id is not None and record.user_id != user_id:
            return None
        return record

    # ── Push subscriptions ──────────────────────────────────────

    def subscribe(self, user_id: str) -> asyncio.Queue[Notification]:
        queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.setdefault(user_id, set()).add(queue)
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue[Notification]) -> None:
        queues = self._subscribers.get(user_id)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[user_id]

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, ()))

    def _publish(self, notification: Notification) -> None:
        for queue in self._subscribers.get(notification.user_id, ()):
            try:
                queue.put_nowait(notification)
            except asyncio.QueueFull:
                logger.warning(
                    "subscriber_queue_full",
                    user_id=notification.user_id,
                    notification_id=notification.id,
                )