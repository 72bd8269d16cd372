"""Repository interfaces the pipeline depends on.

Business logic talks only to these contracts so that any durable backend
can be plugged in. Implementations raise
:class:`~src.store.exceptions.StoreUnavailableError` when the backing store
cannot be reached; they must never drop a write silently.
"""

from __future__ import annotations

import abc
from typing import Any

from src.core.types import AlertRule, Notification, NotificationPreference


class RuleRepo(abc.ABC):
    """Persistence for alert rule definitions."""

    @abc.abstractmethod
    async def add(self, rule: AlertRule) -> None:
        """Insert a new rule at the end of the insertion order."""

    @abc.abstractmethod
    async def get(self, rule_id: str) -> AlertRule | None:
        ...

    @abc.abstractmethod
    async def list(self) -> list[AlertRule]:
        """All rules in insertion order."""

    @abc.abstractmethod
    async def update_fields(self, rule_id: str, changes: dict[str, Any]) -> AlertRule | None:
        """Atomically apply *changes* to the named fields only.

        Returns the updated rule, or None if the id is unknown.
        """

    @abc.abstractmethod
    async def remove(self, rule_id: str) -> bool:
        ...


class PreferenceRepo(abc.ABC):
    """Persistence for per-user notification preferences."""

    @abc.abstractmethod
    async def get(self, user_id: str) -> NotificationPreference | None:
        ...

    @abc.abstractmethod
    async def put(self, preference: NotificationPreference) -> None:
        """Replace the stored preference wholesale."""

    @abc.abstractmethod
    async def update_fields(
        self, user_id: str, changes: dict[str, Any]
    ) -> NotificationPreference:
        """Merge *changes* into the stored preference (creating it if absent).

        ``event_preferences`` is merged per event type.
        """

    @abc.abstractmethod
    async def remove(self, user_id: str) -> bool:
        ...


class NotificationRepo(abc.ABC):
    """Persistence for notification records."""

    @abc.abstractmethod
    async def add(self, notification: Notification) -> None:
        ...

    @abc.abstractmethod
    async def get(self, notification_id: str) -> Notification | None:
        ...

    @abc.abstractmethod
    async def list_for_user(self, user_id: str) -> list[Notification]:
        """All of a user's notifications in creation order."""

    @abc.abstractmethod
    async def set_read(self, notification_id: str) -> bool:
        """Mark one record read. Returns True if its state changed."""

    @abc.abstractmethod
    async def set_all_read(self, user_id: str) -> int:
        """Mark every record of *user_id* read. Returns the number changed."""

    @abc.abstractmethod
    async def remove(self, notification_id: str) -> bool:
        ...
