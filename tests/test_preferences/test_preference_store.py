"""Tests for PreferenceStore: defaults, replace, field-set merge."""

from __future__ import annotations

from datetime import time

from src.core.types import ChannelKind, NotificationPreference, QuietHours
from src.preferences.store import PreferenceStore


class TestPreferenceStore:
    async def test_defaults_for_unknown_user(self) -> None:
        pref = await PreferenceStore().get("alice")
        assert pref.user_id == "alice"
        assert pref.event_preferences == {}
        assert pref.quiet_hours is None

    async def test_put_replaces_wholesale(self) -> None:
        store = PreferenceStore()
        await store.put("alice", {
            "event_preferences": {"payment_failed": {"enabled": False}},
            "quiet_hours": {"enabled": True, "start": "22:00", "end": "07:00"},
        })
        await store.put("alice", NotificationPreference(user_id="ignored"))
        pref = await store.get("alice")
        assert pref.user_id == "alice"
        assert pref.event_preferences == {}
        assert pref.quiet_hours is None

    async def test_update_only_touches_given_fields(self) -> None:
        store = PreferenceStore()
        await store.update("alice", {"quiet_hours": {"enabled": True, "timezone": "Europe/Berlin"}})
        await store.update("alice", {"event_preferences": {"sla_breach": {"channels": ["email"]}}})
        pref = await store.get("alice")
        assert pref.quiet_hours is not None
        assert pref.quiet_hours.timezone == "Europe/Berlin"
        assert pref.event_preferences["sla_breach"].channels == {ChannelKind.EMAIL}

    async def test_update_merges_event_preferences(self) -> None:
        store = PreferenceStore()
        await store.update("alice", {"event_preferences": {"sla_breach": {"enabled": False}}})
        await store.update("alice", {"event_preferences": {"payment_failed": {"enabled": False}}})
        pref = await store.get("alice")
        assert set(pref.event_preferences) == {"sla_breach", "payment_failed"}

    async def test_update_can_clear_quiet_hours(self) -> None:
        store = PreferenceStore()
        await store.update("alice", {"quiet_hours": QuietHours(enabled=True)})
        await store.update("alice", {"quiet_hours": None})
        assert (await store.get("alice")).quiet_hours is None

    async def test_quiet_hours_times_parsed(self) -> None:
        store = PreferenceStore()
        pref = await store.update(
            "alice", {"quiet_hours": {"enabled": True, "start": "23:30", "end": "06:15"}}
        )
        assert pref.quiet_hours is not None
        assert pref.quiet_hours.start == time(23, 30)
        assert pref.quiet_hours.end == time(6, 15)

    async def test_set_event_preference(self) -> None:
        store = PreferenceStore()
        await store.set_event_preference("alice", "payment_failed", channels=["email", "in-app"])
        await store.set_event_preference("alice", "payment_failed", enabled=False)
        entry = (await store.get("alice")).event_preferences["payment_failed"]
        assert entry.enabled is False
        assert entry.channels == {ChannelKind.EMAIL, ChannelKind.IN_APP}

    async def test_delete(self) -> None:
        store = PreferenceStore()
        await store.update("alice", {"quiet_hours": {"enabled": True}})
        assert await store.delete("alice") is True
        assert await store.delete("alice") is False
        assert (await store.get("alice")).quiet_hours is None
