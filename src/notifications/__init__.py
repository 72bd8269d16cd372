"""Notification records: store, queries, stats and formatting."""

from src.notifications.formatters import (
    EVENT_TYPES,
    EventTypeInfo,
    FormattedNotification,
    event_type_info,
    format_notification,
)
from src.notifications.store import NotificationStore, apply_filter, compute_stats

__all__ = [
    "EVENT_TYPES",
    "EventTypeInfo",
    "FormattedNotification",
    "NotificationStore",
    "apply_filter",
    "compute_stats",
    "event_type_info",
    "format_notification",
]
