"""AlertPipeline: event → matching rules → recipients → notifications → delivery."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog

from src.core.config import StoreRetryConfig
from src.core.types import (
    AlertRule,
    DeliveryAttempt,
    DeliveryStatus,
    Event,
    Notification,
    Recipient,
)
from src.delivery.directory import RecipientDirectory
from src.delivery.dispatcher import Dispatcher
from src.delivery.exceptions import RecipientResolutionError
from src.delivery.metrics import DeliveryMetrics
from src.notifications.formatters import format_notification
from src.notifications.store import NotificationStore
from src.preferences.resolver import PreferenceResolver, Resolution
from src.preferences.store import PreferenceStore
from src.rules.evaluator import RuleEvaluator
from src.store.exceptions import StoreUnavailableError

logger = structlog.get_logger(__name__)


@dataclass
class EventOutcome:
    """Everything one event produced."""

    event: Event
    matched_rule_ids: list[str] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)
    attempts: list[DeliveryAttempt] = field(default_factory=list)
    # (rule_id, user_id) pairs dropped by an opted-out preference.
    dropped: list[tuple[str, str]] = field(default_factory=list)
    # (rule_id, recipient ref) pairs the directory could not resolve.
    unresolved: list[tuple[str, str]] = field(default_factory=list)
    # (rule_id, user_id) pairs skipped because the preference could not be applied.
    skipped: list[tuple[str, str]] = field(default_factory=list)

    @property
    def failed_attempts(self) -> list[DeliveryAttempt]:
        return [a for a in self.attempts if a.status == DeliveryStatus.FAILED]


class AlertPipeline:
    """Runs the alerting flow for each incoming event.

    Each event is an independent unit of work. For every matched rule and
    every resolved recipient the in-app notification record is written first;
    external channel sends then run concurrently and their failures never
    affect the stored record or any other recipient.
    """

    def __init__(
        self,
        evaluator: RuleEvaluator,
        preferences: PreferenceStore,
        notifications: NotificationStore,
        directory: RecipientDirectory,
        dispatcher: Dispatcher,
        resolver: PreferenceResolver | None = None,
        metrics: DeliveryMetrics | None = None,
        store_retry: StoreRetryConfig | None = None,
    ) -> None:
        self._evaluator = evaluator
        self._preferences = preferences
        self._notifications = notifications
        self._directory = directory
        self._dispatcher = dispatcher
        self._resolver = resolver or PreferenceResolver()
        self._metrics = metrics
        self._store_retry = store_retry or StoreRetryConfig()
        self._tasks: set[asyncio.Task[EventOutcome]] = set()

        # Stats
        self._events_processed = 0
        self._events_failed = 0

    @property
    def stats(self) -> dict[str, int]:
        return {
            "events_processed": self._events_processed,
            "events_failed": self._events_failed,
            "in_flight": len(self._tasks),
        }

    # ── Entry points ────────────────────────────────────────────

    async def on_event(self, event: Event) -> None:
        """Event source callback: schedules processing and returns."""
        self.submit(event)

    def submit(self, event: Event) -> asyncio.Task[EventOutcome]:
        task = asyncio.create_task(self.process(event))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def process(self, event: Event) -> EventOutcome:
        """Process one event to completion and return what it produced.

        Raises:
            StoreUnavailableError: a notification could not be persisted
                within the store retry budget.
        """
        with structlog.contextvars.bound_contextvars(event_type=event.type):
            outcome = EventOutcome(event=event)
            rules = await self._evaluator.evaluate(event)
            outcome.matched_rule_ids = [r.id for r in rules]

            sends: list[asyncio.Task[list[DeliveryAttempt]]] = []
            try:
                for rule in rules:
                    for recipient in await self._recipients(rule, outcome):
                        created = await self._notify(rule, recipient, event, outcome)
                        if created is None:
                            continue
                        notification, resolution = created
                        if resolution.external_channels:
                            sends.append(asyncio.create_task(
                                self._dispatcher.dispatch(
                                    notification, recipient, resolution.external_channels
                                )
                            ))
            finally:
                # Records already written still get their sends, even if a
                # later store write failed.
                for attempts in await asyncio.gather(*sends):
                    outcome.attempts.extend(attempts)

            self._events_processed += 1
            logger.info(
                "event_processed",
                rules_matched=len(rules),
                notifications=len(outcome.notifications),
                deliveries=len(outcome.attempts),
                failed=len(outcome.failed_attempts),
            )
            return outcome

    async def drain(self) -> None:
        """Wait for every submitted event to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        await self._dispatcher.close()

    # ── Internal ────────────────────────────────────────────────

    async def _recipients(self, rule: AlertRule, outcome: EventOutcome) -> list[Recipient]:
        """Resolve a rule's recipient refs, de-duplicated by user id."""
        seen: dict[str, Recipient] = {}
        for ref in rule.actions.recipients:
            try:
                resolved = await self._directory.resolve(ref)
            except RecipientResolutionError as exc:
                outcome.unresolved.append((rule.id, str(ref)))
                if self._metrics is not None:
                    self._metrics.record_unresolved()
                logger.warning(
                    "recipient_unresolvable",
                    rule_id=rule.id,
                    recipient=str(ref),
                    error=str(exc),
                )
                continue
            for recipient in resolved:
                seen.setdefault(recipient.user_id, recipient)
        return list(seen.values())

    async def _notify(
        self,
        rule: AlertRule,
        recipient: Recipient,
        event: Event,
        outcome: EventOutcome,
    ) -> tuple[Notification, Resolution] | None:
        preference = await self._preferences.get(recipient.user_id)
        try:
            resolution = self._resolver.resolve(rule, preference, event.occurred_at)
        except Exception:
            outcome.skipped.append((rule.id, recipient.user_id))
            logger.exception(
                "preference_resolution_failed",
                rule_id=rule.id,
                user_id=recipient.user_id,
            )
            return None
        if resolution is None:
            outcome.dropped.append((rule.id, recipient.user_id))
            if self._metrics is not None:
                self._metrics.record_opt_out()
            return None
        if resolution.suppressed and self._metrics is not None:
            self._metrics.record_suppressed(len(resolution.suppressed))

        text = format_notification(rule, event)
        notification = await self._store(
            Notification(
                user_id=recipient.user_id,
                title=text.title,
                message=text.message,
                category=text.category,
                priority=rule.actions.priority,
                metadata={
                    "rule_id": rule.id,
                    "rule_name": rule.name,
                    "event_type": event.type,
                    "event_fields": dict(event.fields),
                    "occurred_at": event.occurred_at.isoformat(),
                    "channels": sorted(str(c) for c in resolution.channels),
                    "suppressed_channels": sorted(str(c) for c in resolution.suppressed),
                    "quiet_hours": resolution.quiet_hours,
                },
            )
        )
        outcome.notifications.append(notification)
        return notification, resolution

    async def _store(self, notification: Notification) -> Notification:
        """Persist one record, retrying while the store is unavailable."""
        cfg = self._store_retry
        attempt = 1
        while True:
            try:
                return await self._notifications.create(notification)
            except StoreUnavailableError as exc:
                if attempt >= cfg.max_attempts:
                    raise
                delay = cfg.backoff_base_secs * cfg.backoff_factor ** (attempt - 1)
                logger.warning(
                    "notification_store_retry",
                    user_id=notification.user_id,
                    attempt=attempt,
                    delay_secs=delay,
                    error=str(exc),
                )
                await asyncio.sleep(delay)
                attempt += 1

    def _task_done(self, task: asyncio.Task[EventOutcome]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._events_failed += 1
            logger.error(
                "event_processing_failed",
                error=f"{type(exc).__name__}: {exc}",
                exc_info=exc,
            )
