"""Event sources feeding the alerting pipeline."""

from src.events.base import (
    EventCallback,
    EventSource,
    EventSourceClosedError,
    PollingEventSource,
    QueueEventSource,
)
from src.events.simulator import GENERATORS, EventSimulator

__all__ = [
    "GENERATORS",
    "EventCallback",
    "EventSimulator",
    "EventSource",
    "EventSourceClosedError",
    "PollingEventSource",
    "QueueEventSource",
]
