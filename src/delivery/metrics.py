"""DeliveryMetrics: per-channel delivery outcome tracking.

Fed by the dispatcher with every final :class:`DeliveryAttempt` and
aggregates:
- Per-channel sent / failed counts and retry totals
- Delivery latency samples (first attempt → final outcome)
- Quiet-hours suppressions and recipient opt-outs reported by the pipeline
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from src.core.types import ChannelKind, DeliveryAttempt, DeliveryStatus


@dataclass
class ChannelStats:
    """Aggregated statistics for a single channel."""

    channel: ChannelKind
    sent: int = 0
    failed: int = 0
    attempts: int = 0

    @property
    def total(self) -> int:
        return self.sent + self.failed

    @property
    def retries(self) -> int:
        return max(self.attempts - self.total, 0)

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.sent / self.total


class DeliveryMetrics:
    """Collects delivery metrics.

    Usage::

        metrics = DeliveryMetrics()
        dispatcher = Dispatcher(senders, metrics=metrics)

        # Query at any time:
        summary = metrics.summary()
    """

    def __init__(self, max_latency_samples: int = 10_000) -> None:
        self._channel_stats: dict[ChannelKind, ChannelStats] = {}
        self._latencies: deque[float] = deque(maxlen=max_latency_samples)
        self._suppressed = 0
        self._opted_out = 0
        self._unresolved_recipients = 0

    # ── Recording ───────────────────────────────────────────────

    def record(self, attempt: DeliveryAttempt) -> None:
        stats = self._channel_stats.get(attempt.channel)
        if stats is None:
            stats = self._channel_stats[attempt.channel] = ChannelStats(attempt.channel)
        if attempt.status == DeliveryStatus.SENT:
            stats.sent += 1
        elif attempt.status == DeliveryStatus.FAILED:
            stats.failed += 1
        stats.attempts += attempt.attempt_count
        duration = attempt.duration_secs
        if duration is not None and attempt.status == DeliveryStatus.SENT:
            self._latencies.append(duration)

    def record_suppressed(self, count: int = 1) -> None:
        self._suppressed += count

    def record_opt_out(self) -> None:
        self._opted_out += 1

    def record_unresolved(self) -> None:
        self._unresolved_recipients += 1

    # ── Query methods ───────────────────────────────────────────

    def channel_stats(self) -> dict[ChannelKind, ChannelStats]:
        return dict(self._channel_stats)

    def latency_percentiles(self) -> dict[str, float]:
        """Return delivery latency percentiles (p50, p90, p99) in seconds."""
        if not self._latencies:
            return {"p50": 0.0, "p90": 0.0, "p99": 0.0, "min": 0.0, "max": 0.0}

        values = sorted(self._latencies)
        n = len(values)
        return {
            "p50": values[int(n * 0.50)],
            "p90": values[min(int(n * 0.90), n - 1)],
            "p99": values[min(int(n * 0.99), n - 1)],
            "min": values[0],
            "max": values[-1],
        }

    def summary(self) -> dict[str, object]:
        sent = sum(s.sent for s in self._channel_stats.values())
        failed = sum(s.failed for s in self._channel_stats.values())
        return {
            "sent": sent,
            "failed": failed,
            "suppressed_channels": self._suppressed,
            "opted_out": self._opted_out,
            "unresolved_recipients": self._unresolved_recipients,
            "channels": {
                str(ch): {
                    "sent": s.sent,
                    "failed": s.failed,
                    "retries": s.retries,
                    "success_rate": round(s.success_rate, 4),
                }
                for ch, s in sorted(self._channel_stats.items())
            },
            "latency": self.latency_percentiles(),
        }
