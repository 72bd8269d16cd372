"""PreferenceStore: per-user notification preferences."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from src.core.types import (
    ChannelKind,
    EventPreference,
    NotificationPreference,
    NotificationPreferenceUpdate,
)
from src.store.base import PreferenceRepo
from src.store.memory import InMemoryPreferenceRepo

logger = structlog.get_logger(__name__)


class PreferenceStore:
    """Holds :class:`NotificationPreference` records keyed by user id.

    Users without a stored record get the defaults: every channel enabled
    for every event type and no quiet hours.
    """

    def __init__(self, repo: PreferenceRepo | None = None) -> None:
        self._repo = repo or InMemoryPreferenceRepo()

    async def get(self, user_id: str) -> NotificationPreference:
        pref = await self._repo.get(user_id)
        if pref is None:
            return NotificationPreference(user_id=user_id)
        return pref

    async def put(
        self,
        user_id: str,
        preference: NotificationPreference | dict[str, Any],
    ) -> NotificationPreference:
        data = (
            preference.model_dump()
            if isinstance(preference, NotificationPreference)
            else dict(preference)
        )
        data["user_id"] = user_id
        pref = NotificationPreference.model_validate(data)
        await self._repo.put(pref)
        logger.info("preferences_replaced", user_id=user_id)
        return pref

    async def update(
        self,
        user_id: str,
        changes: NotificationPreferenceUpdate | dict[str, Any],
    ) -> NotificationPreference:
        if not isinstance(changes, NotificationPreferenceUpdate):
            changes = NotificationPreferenceUpdate.model_validate(changes)
        fields = {name: getattr(changes, name) for name in changes.model_fields_set}
        pref = await self._repo.update_fields(user_id, fields)
        logger.info("preferences_updated", user_id=user_id, fields=sorted(fields))
        return pref

    async def set_event_preference(
        self,
        user_id: str,
        event_type: str,
        enabled: bool | None = None,
        channels: Iterable[ChannelKind | str] | None = None,
    ) -> NotificationPreference:
        """Toggle one event type or change its channel set."""
        current = (await self.get(user_id)).event_preferences.get(event_type)
        entry = current or EventPreference()
        update: dict[str, Any] = {}
        if enabled is not None:
            update["enabled"] = enabled
        if channels is not None:
            update["channels"] = {ChannelKind(c) for c in channels}
        entry = entry.model_copy(update=update)
        return await self.update(user_id, {"event_preferences": {event_type: entry}})

    async def delete(self, user_id: str) -> bool:
        return await self._repo.remove(user_id)
