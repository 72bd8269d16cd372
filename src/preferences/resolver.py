"""Preference resolution and the quiet-hours gate.

For one ``(rule, recipient)`` pair this narrows the rule's channel set by the
recipient's per-event preference, then mutes interruptive channels while the
recipient is inside their quiet-hours window.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from src.core.types import (
    AlertRule,
    ChannelKind,
    NotificationPreference,
    Priority,
    QuietHours,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Channels a notification should go out on for one recipient."""

    channels: frozenset[ChannelKind]
    suppressed: frozenset[ChannelKind] = frozenset()
    quiet_hours: bool = False

    @property
    def external_channels(self) -> frozenset[ChannelKind]:
        return frozenset(c for c in self.channels if c.external)


def _zone(name: str) -> ZoneInfo | timezone:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning("quiet_hours_unknown_timezone", timezone=name)
        return timezone.utc


def in_quiet_hours(quiet: QuietHours | None, at: datetime) -> bool:
    """True if *at* falls inside ``[start, end)`` in the recipient's zone.

    ``start > end`` spans midnight. ``start == end`` is an empty window.
    """
    if quiet is None or not quiet.enabled:
        return False
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    local = at.astimezone(_zone(quiet.timezone)).time().replace(tzinfo=None)
    start, end = quiet.start, quiet.end
    if start == end:
        return False
    if start < end:
        return start <= local < end
    return local >= start or local < end


class PreferenceResolver:
    """Applies recipient preferences and quiet hours to a matched rule."""

    def resolve(
        self,
        rule: AlertRule,
        preference: NotificationPreference,
        occurred_at: datetime,
    ) -> Resolution | None:
        """Return the resolved channel set, or None to drop the recipient."""
        channels = set(rule.actions.channels)

        event_pref = preference.event_preferences.get(rule.event_type)
        if event_pref is not None:
            if not event_pref.enabled:
                logger.debug(
                    "recipient_opted_out",
                    user_id=preference.user_id,
                    rule_id=rule.id,
                    event_type=rule.event_type,
                )
                return None
            channels &= event_pref.channels

        priority = rule.actions.priority
        if priority == Priority.CRITICAL or not in_quiet_hours(
            preference.quiet_hours, occurred_at
        ):
            return Resolution(channels=frozenset(channels))

        suppressed = frozenset(c for c in channels if c.interruptive)
        if suppressed:
            logger.info(
                "quiet_hours_suppressed",
                user_id=preference.user_id,
                rule_id=rule.id,
                channels=sorted(suppressed),
            )
        return Resolution(
            channels=frozenset(channels - suppressed),
            suppressed=suppressed,
            quiet_hours=True,
        )
