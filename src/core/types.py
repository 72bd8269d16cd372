"""Domain types for the alerting and notification pipeline."""

from __future__ import annotations

import time
import uuid
from datetime import datetime, time as dt_time, timezone
from enum import IntEnum, StrEnum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex[:16]


class Priority(IntEnum):
    """Notification priority: ordered so comparisons work naturally."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: Any) -> Priority:
        """Accept a Priority, its int value, or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"unknown priority: {value!r}") from None
        return cls(value)


class ChannelKind(StrEnum):
    """Delivery mechanisms."""

    EMAIL = "email"
    SMS = "sms"
    SLACK = "slack"
    PUSH = "push"
    IN_APP = "in-app"

    @property
    def interruptive(self) -> bool:
        return self in INTERRUPTIVE_CHANNELS

    @property
    def external(self) -> bool:
        return self is not ChannelKind.IN_APP


INTERRUPTIVE_CHANNELS: frozenset[ChannelKind] = frozenset(
    {ChannelKind.SMS, ChannelKind.PUSH}
)


class ConditionOperator(StrEnum):
    """Condition comparison operators."""

    EQUALS = "equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"


class DeliveryStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class RecipientKind(StrEnum):
    USER = "user"
    ROLE = "role"
    ADDRESS = "address"


# ── Events ──────────────────────────────────────────────────────


class Event(BaseModel):
    """A timestamped fact from an external domain source."""

    model_config = ConfigDict(frozen=True)

    type: str
    fields: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=utc_now)

    @field_validator("occurred_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ── Rules ───────────────────────────────────────────────────────


class Condition(BaseModel):
    """One field-operator-value test within a rule.

    ``operator`` keeps whatever was configured so that a rule with an
    unknown operator can still be stored; the evaluator treats it as
    never-matching.
    """

    field: str = ""
    operator: ConditionOperator | str
    value: Any = None


class RecipientRef(BaseModel):
    """Reference to one or more recipients, resolved by the directory."""

    model_config = ConfigDict(frozen=True)

    kind: RecipientKind = RecipientKind.ADDRESS
    value: str

    @classmethod
    def parse(cls, raw: str | dict[str, Any] | RecipientRef) -> RecipientRef:
        """Parse ``user:<id>``, ``role:<name>`` or a literal address."""
        if isinstance(raw, RecipientRef):
            return raw
        if isinstance(raw, dict):
            return cls.model_validate(raw)
        if not isinstance(raw, str):
            raise ValueError(f"invalid recipient {raw!r}")
        prefix, sep, rest = raw.partition(":")
        if sep and prefix in (RecipientKind.USER, RecipientKind.ROLE) and rest:
            return cls(kind=RecipientKind(prefix), value=rest.strip())
        return cls(kind=RecipientKind.ADDRESS, value=raw.strip())

    def __str__(self) -> str:
        if self.kind == RecipientKind.ADDRESS:
            return self.value
        return f"{self.kind}:{self.value}"


class Recipient(BaseModel):
    """A concrete delivery target produced by the recipient directory."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    addresses: dict[ChannelKind, str] = Field(default_factory=dict)

    def address_for(self, channel: ChannelKind) -> str | None:
        return self.addresses.get(channel) or None


class RuleActions(BaseModel):
    channels: set[ChannelKind] = Field(
        default_factory=lambda: {ChannelKind.EMAIL, ChannelKind.IN_APP}
    )
    recipients: list[RecipientRef] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM

    @field_validator("recipients", mode="before")
    @classmethod
    def _parse_recipients(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [RecipientRef.parse(v) for v in value]
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _parse_priority(cls, value: Any) -> Priority:
        return Priority.parse(value)

    @field_serializer("priority")
    def _dump_priority(self, priority: Priority) -> str:
        return priority.label

    @field_serializer("channels")
    def _dump_channels(self, channels: set[ChannelKind]) -> list[str]:
        return sorted(str(c) for c in channels)

    @field_serializer("recipients")
    def _dump_recipients(self, recipients: list[RecipientRef]) -> list[str]:
        return [str(r) for r in recipients]


class AlertRule(BaseModel):
    """A named, enable/disable-able matcher of events to deliveries."""

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    description: str = ""
    enabled: bool = True
    event_type: str = Field(min_length=1)
    conditions: list[Condition] = Field(default_factory=list)
    actions: RuleActions = Field(default_factory=RuleActions)
    created_by: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AlertRuleUpdate(BaseModel):
    """Partial rule update: only fields explicitly set are applied."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    enabled: bool | None = None
    event_type: str | None = Field(default=None, min_length=1)
    conditions: list[Condition] | None = None
    actions: RuleActions | None = None


# ── Preferences ─────────────────────────────────────────────────


class EventPreference(BaseModel):
    enabled: bool = True
    channels: set[ChannelKind] = Field(default_factory=lambda: set(ChannelKind))

    @field_serializer("channels")
    def _dump_channels(self, channels: set[ChannelKind]) -> list[str]:
        return sorted(str(c) for c in channels)


class QuietHours(BaseModel):
    """Recipient-local window during which interruptive channels are muted."""

    enabled: bool = False
    start: dt_time = dt_time(22, 0)
    end: dt_time = dt_time(8, 0)
    timezone: str = "UTC"

    @field_validator("start", "end")
    @classmethod
    def _local_time(cls, value: dt_time) -> dt_time:
        if value.tzinfo is not None:
            raise ValueError("quiet-hours times are local; set the zone in timezone")
        return value

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            raise ValueError(f"unknown timezone {value!r}") from None
        return value


class NotificationPreference(BaseModel):
    """Per-user delivery preferences.

    An absent ``event_preferences`` entry means the rule's channel set is
    used unchanged.
    """

    user_id: str
    event_preferences: dict[str, EventPreference] = Field(default_factory=dict)
    quiet_hours: QuietHours | None = None


class NotificationPreferenceUpdate(BaseModel):
    event_preferences: dict[str, EventPreference] | None = None
    quiet_hours: QuietHours | None = None


# ── Notifications ───────────────────────────────────────────────


class Notification(BaseModel):
    """Durable record of an alert delivered to one user."""

    id: str = Field(default_factory=new_id)
    user_id: str
    title: str
    message: str = ""
    category: str = "system"
    priority: Priority = Priority.MEDIUM
    read: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("priority", mode="before")
    @classmethod
    def _parse_priority(cls, value: Any) -> Priority:
        return Priority.parse(value)

    @field_serializer("priority")
    def _dump_priority(self, priority: Priority) -> str:
        return priority.label


class NotificationFilter(BaseModel):
    category: str | None = None
    read: bool | None = None
    search: str | None = None
    priority: Priority | None = None
    since: datetime | None = None
    until: datetime | None = None
    limit: int | None = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)

    @field_validator("priority", mode="before")
    @classmethod
    def _parse_priority(cls, value: Any) -> Priority | None:
        if value is None or value == "":
            return None
        return Priority.parse(value)

    @field_validator("since", "until")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class NotificationStats(BaseModel):
    total: int = 0
    unread: int = 0
    by_priority: dict[str, int] = Field(
        default_factory=lambda: {p.label: 0 for p in Priority}
    )
    by_category: dict[str, int] = Field(default_factory=dict)


class DeliveryAttempt(BaseModel):
    """Outcome of sending one notification over one external channel."""

    notification_id: str
    user_id: str
    channel: ChannelKind
    status: DeliveryStatus = DeliveryStatus.PENDING
    attempt_count: int = 0
    last_error: str | None = None
    started_at: float = Field(default_factory=time.time)
    finished_at: float | None = None

    @property
    def duration_secs(self) -> float | None:
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at
