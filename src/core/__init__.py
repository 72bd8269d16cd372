"""Core module: config, types, logging."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.logging import setup_logging
from src.core.types import (
    AlertRule,
    AlertRuleUpdate,
    ChannelKind,
    Condition,
    ConditionOperator,
    DeliveryAttempt,
    DeliveryStatus,
    Event,
    EventPreference,
    Notification,
    NotificationFilter,
    NotificationPreference,
    NotificationStats,
    Priority,
    QuietHours,
    Recipient,
    RecipientRef,
    RuleActions,
)

__all__ = [
    "AlertRule",
    "AlertRuleUpdate",
    "ChannelKind",
    "Condition",
    "ConditionOperator",
    "DeliveryAttempt",
    "DeliveryStatus",
    "Event",
    "EventPreference",
    "Notification",
    "NotificationFilter",
    "NotificationPreference",
    "NotificationStats",
    "Priority",
    "QuietHours",
    "Recipient",
    "RecipientRef",
    "RuleActions",
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
