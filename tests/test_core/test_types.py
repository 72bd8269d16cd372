"""Tests for domain types: priority parsing, recipient refs, serialisation."""

from __future__ import annotations

from datetime import datetime, time as dt_time, timezone

import pytest
from pydantic import ValidationError

from src.core.types import (
    AlertRule,
    ChannelKind,
    DeliveryAttempt,
    Event,
    Notification,
    NotificationFilter,
    NotificationStats,
    Priority,
    QuietHours,
    RecipientKind,
    RecipientRef,
    RuleActions,
)


class TestPriority:
    def test_ordering(self) -> None:
        assert Priority.LOW < Priority.MEDIUM < Priority.HIGH < Priority.CRITICAL

    def test_parse_name_case_insensitive(self) -> None:
        assert Priority.parse("critical") is Priority.CRITICAL
        assert Priority.parse(" High ") is Priority.HIGH

    def test_parse_int(self) -> None:
        assert Priority.parse(0) is Priority.LOW

    def test_parse_unknown(self) -> None:
        with pytest.raises(ValueError):
            Priority.parse("urgent")

    def test_label(self) -> None:
        assert Priority.MEDIUM.label == "medium"


class TestChannelKind:
    def test_interruptive(self) -> None:
        assert ChannelKind.SMS.interruptive
        assert ChannelKind.PUSH.interruptive
        assert not ChannelKind.EMAIL.interruptive
        assert not ChannelKind.SLACK.interruptive
        assert not ChannelKind.IN_APP.interruptive

    def test_in_app_not_external(self) -> None:
        assert not ChannelKind.IN_APP.external
        assert ChannelKind.EMAIL.external


class TestRecipientRef:
    def test_parse_user(self) -> None:
        ref = RecipientRef.parse("user:alice")
        assert ref.kind == RecipientKind.USER
        assert ref.value == "alice"

    def test_parse_role(self) -> None:
        ref = RecipientRef.parse("role:finance")
        assert ref.kind == RecipientKind.ROLE
        assert ref.value == "finance"

    def test_parse_literal_address(self) -> None:
        ref = RecipientRef.parse("ops@example.com")
        assert ref.kind == RecipientKind.ADDRESS
        assert ref.value == "ops@example.com"

    def test_unknown_prefix_is_literal(self) -> None:
        ref = RecipientRef.parse("mailto:ops@example.com")
        assert ref.kind == RecipientKind.ADDRESS

    def test_str_round_trip(self) -> None:
        assert str(RecipientRef.parse("role:finance")) == "role:finance"
        assert str(RecipientRef.parse("#alerts")) == "#alerts"

    def test_non_string_recipient_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RuleActions.model_validate({"recipients": [5]})


class TestQuietHours:
    def test_defaults(self) -> None:
        quiet = QuietHours()
        assert quiet.start == dt_time(22, 0)
        assert quiet.timezone == "UTC"

    def test_offset_times_rejected(self) -> None:
        with pytest.raises(ValidationError):
            QuietHours.model_validate({"enabled": True, "start": "22:00Z", "end": "06:00Z"})

    @pytest.mark.parametrize("tz", ["America", "Mars/Olympus_Mons"])
    def test_unknown_timezone_rejected(self, tz: str) -> None:
        with pytest.raises(ValidationError):
            QuietHours(enabled=True, timezone=tz)

    def test_named_zone_accepted(self) -> None:
        assert QuietHours(timezone="Europe/Berlin").timezone == "Europe/Berlin"


class TestRuleModels:
    def test_rule_defaults(self) -> None:
        rule = AlertRule(name="r", event_type="payment_failed")
        assert rule.enabled is True
        assert rule.conditions == []
        assert rule.actions.channels == {ChannelKind.EMAIL, ChannelKind.IN_APP}
        assert rule.actions.priority == Priority.MEDIUM
        assert rule.id

    def test_rule_requires_name(self) -> None:
        with pytest.raises(ValidationError):
            AlertRule(name="", event_type="payment_failed")

    def test_actions_parse_strings(self) -> None:
        actions = RuleActions.model_validate({
            "channels": ["sms", "in-app"],
            "recipients": ["user:alice", "role:finance"],
            "priority": "high",
        })
        assert actions.channels == {ChannelKind.SMS, ChannelKind.IN_APP}
        assert actions.recipients[1].kind == RecipientKind.ROLE
        assert actions.priority == Priority.HIGH

    def test_actions_json_dump(self) -> None:
        actions = RuleActions(
            channels={ChannelKind.SMS, ChannelKind.EMAIL},
            recipients=["user:alice"],  # type: ignore[list-item]
            priority=Priority.CRITICAL,
        )
        data = actions.model_dump(mode="json")
        assert data == {
            "channels": ["email", "sms"],
            "recipients": ["user:alice"],
            "priority": "critical",
        }


class TestEvent:
    def test_naive_timestamp_assumed_utc(self) -> None:
        ev = Event(type="x", occurred_at=datetime(2024, 1, 1, 12, 0))
        assert ev.occurred_at.tzinfo == timezone.utc

    def test_frozen(self) -> None:
        ev = Event(type="x")
        with pytest.raises(ValidationError):
            ev.type = "y"  # type: ignore[misc]


class TestNotificationModels:
    def test_notification_priority_serialised_as_label(self) -> None:
        n = Notification(user_id="u", title="t", priority="high")  # type: ignore[arg-type]
        assert n.priority == Priority.HIGH
        assert n.model_dump(mode="json")["priority"] == "high"

    def test_filter_parses_query_strings(self) -> None:
        f = NotificationFilter.model_validate({
            "read": "false",
            "priority": "critical",
            "limit": "5",
            "since": "2024-01-01T00:00:00",
        })
        assert f.read is False
        assert f.priority == Priority.CRITICAL
        assert f.limit == 5
        assert f.since is not None and f.since.tzinfo == timezone.utc

    def test_filter_rejects_negative_offset(self) -> None:
        with pytest.raises(ValidationError):
            NotificationFilter(offset=-1)

    def test_stats_initialise_every_priority(self) -> None:
        stats = NotificationStats()
        assert stats.by_priority == {"low": 0, "medium": 0, "high": 0, "critical": 0}

    def test_delivery_attempt_duration(self) -> None:
        attempt = DeliveryAttempt(
            notification_id="n",
            user_id="u",
            channel=ChannelKind.EMAIL,
            started_at=10.0,
            finished_at=12.5,
        )
        assert attempt.duration_secs == 2.5
        pending = DeliveryAttempt(notification_id="n", user_id="u", channel=ChannelKind.SMS)
        assert pending.duration_secs is None
