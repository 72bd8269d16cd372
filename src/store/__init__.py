"""Repository interfaces and in-memory backends."""

from src.store.base import NotificationRepo, PreferenceRepo, RuleRepo
from src.store.exceptions import RecordNotFoundError, StoreError, StoreUnavailableError
from src.store.memory import (
    InMemoryNotificationRepo,
    InMemoryPreferenceRepo,
    InMemoryRuleRepo,
)

__all__ = [
    "InMemoryNotificationRepo",
    "InMemoryPreferenceRepo",
    "InMemoryRuleRepo",
    "NotificationRepo",
    "PreferenceRepo",
    "RecordNotFoundError",
    "RuleRepo",
    "StoreError",
    "StoreUnavailableError",
]
