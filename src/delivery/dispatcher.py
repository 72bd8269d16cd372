"""Dispatcher: sends resolved notifications to external channels with retries."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable

import structlog

from src.core.config import DispatchConfig
from src.core.logging import DELIVERY_LOGGER
from src.core.types import (
    ChannelKind,
    DeliveryAttempt,
    DeliveryStatus,
    Notification,
    Recipient,
)
from src.delivery.channels import ChannelSender
from src.delivery.metrics import DeliveryMetrics

# Dedicated structured logger for final delivery outcomes.
delivery_logger = structlog.get_logger(DELIVERY_LOGGER)

logger = structlog.get_logger(__name__)


class Dispatcher:
    """Invokes channel senders for a notification.

    - Each channel is attempted up to ``max_attempts`` times, with
      exponential backoff between attempts and a timeout per attempt.
    - Channels and recipients are independent: one failing send never
      affects another, and nothing here touches the notification store.
    - In-app is never sent from here; the stored record is the in-app copy.
    """

    def __init__(
        self,
        senders: Iterable[ChannelSender] = (),
        config: DispatchConfig | None = None,
        metrics: DeliveryMetrics | None = None,
    ) -> None:
        self._senders: dict[ChannelKind, ChannelSender] = {s.channel: s for s in senders}
        self._config = config or DispatchConfig()
        self._metrics = metrics

    @property
    def channels(self) -> frozenset[ChannelKind]:
        return frozenset(self._senders)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the attempt after *attempt* (1-based)."""
        cfg = self._config
        return cfg.backoff_base_secs * cfg.backoff_factor ** (attempt - 1)

    async def dispatch(
        self,
        notification: Notification,
        recipient: Recipient,
        channels: Iterable[ChannelKind],
    ) -> list[DeliveryAttempt]:
        external = sorted(c for c in channels if c.external)
        if not external:
            return []
        return list(
            await asyncio.gather(
                *(self._deliver(notification, recipient, ch) for ch in external)
            )
        )

    async def _deliver(
        self,
        notification: Notification,
        recipient: Recipient,
        channel: ChannelKind,
    ) -> DeliveryAttempt:
        started = time.time()
        sender = self._senders.get(channel)
        attempts = 0
        error: str | None = None
        status = DeliveryStatus.FAILED

        if sender is None:
            error = f"no sender configured for {channel}"
        elif recipient.address_for(channel) is None:
            error = f"no {channel} address for user {recipient.user_id}"
        else:
            for attempt in range(1, self._config.max_attempts + 1):
                attempts = attempt
                error = await self._try_send(sender, notification, recipient)
                if error is None:
                    status = DeliveryStatus.SENT
                    break
                logger.warning(
                    "channel_send_failed",
                    channel=str(channel),
                    user_id=recipient.user_id,
                    notification_id=notification.id,
                    attempt=attempt,
                    error=error,
                )
                if attempt < self._config.max_attempts:
                    await asyncio.sleep(self.backoff_delay(attempt))

        result = DeliveryAttempt(
            notification_id=notification.id,
            user_id=recipient.user_id,
            channel=channel,
            status=status,
            attempt_count=attempts,
            last_error=error if status == DeliveryStatus.FAILED else None,
            started_at=started,
            finished_at=time.time(),
        )
        self._log_outcome(result)
        if self._metrics is not None:
            self._metrics.record(result)
        return result

    async def _try_send(
        self,
        sender: ChannelSender,
        notification: Notification,
        recipient: Recipient,
    ) -> str | None:
        """One send attempt. Returns None on success or an error description."""
        timeout = self._config.send_timeout_secs
        try:
            ok = await asyncio.wait_for(
                sender.send(
                    recipient,
                    notification.title,
                    notification.message,
                    notification.priority,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            return f"timed out after {timeout}s"
        except Exception as exc:
            return f"{type(exc).__name__}: {exc}"
        if ok:
            return None
        return "sender reported failure"

    def _log_outcome(self, attempt: DeliveryAttempt) -> None:
        delivery_logger.info(
            "delivery",
            notification_id=attempt.notification_id,
            user_id=attempt.user_id,
            channel=str(attempt.channel),
            status=str(attempt.status),
            attempts=attempt.attempt_count,
            error=attempt.last_error,
        )

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for sender in self._senders.values():
            try:
                await sender.close()
            except Exception:
                logger.exception("channel_close_error", channel=str(sender.channel))
