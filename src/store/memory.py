"""In-memory repository backends.

Rules and preferences are read-mostly: writers build a new mapping and swap
it in, so readers always see a complete snapshot without locking.
Updates are applied per field (only keys present in a single update call
are written), which gives field-set merge rather than wholesale
last-write-wins.
"""

from __future__ import annotations

from typing import Any

from src.core.types import (
    AlertRule,
    EventPreference,
    Notification,
    NotificationPreference,
    utc_now,
)
from src.store.base import NotificationRepo, PreferenceRepo, RuleRepo


class InMemoryRuleRepo(RuleRepo):
    def __init__(self) -> None:
        self._rules: dict[str, AlertRule] = {}

    async def add(self, rule: AlertRule) -> None:
        rules = dict(self._rules)
        rules[rule.id] = rule
        self._rules = rules

    async def get(self, rule_id: str) -> AlertRule | None:
        return self._rules.get(rule_id)

    async def list(self) -> list[AlertRule]:
        return list(self._rules.values())

    async def update_fields(self, rule_id: str, changes: dict[str, Any]) -> AlertRule | None:
        current = self._rules.get(rule_id)
        if current is None:
            return None
        updated = AlertRule.model_validate(
            {**current.model_dump(), **changes, "updated_at": utc_now()}
        )
        rules = dict(self._rules)
        rules[rule_id] = updated  # keeps insertion position
        self._rules = rules
        return updated

    async def remove(self, rule_id: str) -> bool:
        if rule_id not in self._rules:
            return False
        rules = dict(self._rules)
        del rules[rule_id]
        self._rules = rules
        return True


class InMemoryPreferenceRepo(PreferenceRepo):
    def __init__(self) -> None:
        self._prefs: dict[str, NotificationPreference] = {}

    async def get(self, user_id: str) -> NotificationPreference | None:
        return self._prefs.get(user_id)

    async def put(self, preference: NotificationPreference) -> None:
        prefs = dict(self._prefs)
        prefs[preference.user_id] = preference
        self._prefs = prefs

    async def update_fields(
        self, user_id: str, changes: dict[str, Any]
    ) -> NotificationPreference:
        current = self._prefs.get(user_id) or NotificationPreference(user_id=user_id)
        update: dict[str, Any] = {}
        if "event_preferences" in changes:
            merged: dict[str, EventPreference] = dict(current.event_preferences)
            for event_type, pref in (changes["event_preferences"] or {}).items():
                merged[event_type] = EventPreference.model_validate(pref)
            update["event_preferences"] = merged
        if "quiet_hours" in changes:
            update["quiet_hours"] = changes["quiet_hours"]
        updated = NotificationPreference.model_validate(
            {**current.model_dump(), **_dump(update)}
        )
        await self.put(updated)
        return updated

    async def remove(self, user_id: str) -> bool:
        if user_id not in self._prefs:
            return False
        prefs = dict(self._prefs)
        del prefs[user_id]
        self._prefs = prefs
        return True


class InMemoryNotificationRepo(NotificationRepo):
    """Notification records grouped per user, with an id index."""

    def __init__(self) -> None:
        self._by_user: dict[str, dict[str, Notification]] = {}
        self._owner: dict[str, str] = {}

    async def add(self, notification: Notification) -> None:
        self._by_user.setdefault(notification.user_id, {})[notification.id] = notification
        self._owner[notification.id] = notification.user_id

    async def get(self, notification_id: str) -> Notification | None:
        user_id = self._owner.get(notification_id)
        if user_id is None:
            return None
        return self._by_user[user_id].get(notification_id)

    async def list_for_user(self, user_id: str) -> list[Notification]:
        return list(self._by_user.get(user_id, {}).values())

    async def set_read(self, notification_id: str) -> bool:
        current = await self.get(notification_id)
        if current is None or current.read:
            return False
        self._by_user[current.user_id][notification_id] = current.model_copy(
            update={"read": True}
        )
        return True

    async def set_all_read(self, user_id: str) -> int:
        records = self._by_user.get(user_id, {})
        changed = 0
        for nid, record in list(records.items()):
            if not record.read:
                records[nid] = record.model_copy(update={"read": True})
                changed += 1
        return changed

    async def remove(self, notification_id: str) -> bool:
        user_id = self._owner.pop(notification_id, None)
        if user_id is None:
            return False
        self._by_user[user_id].pop(notification_id, None)
        return True


def _dump(values: dict[str, Any]) -> dict[str, Any]:
    return {
        k: v.model_dump() if hasattr(v, "model_dump") else v
        for k, v in values.items()
    }
