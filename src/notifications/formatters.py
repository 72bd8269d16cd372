"""Pure functions that turn a matched rule + event into notification text."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from src.core.types import AlertRule, Event

Describer = Callable[[dict[str, Any]], str]


# ── Per-event-type describers ───────────────────────────────────


def _money(fields: dict[str, Any]) -> str:
    amount = fields.get("amount")
    if amount is None:
        return ""
    currency = str(fields.get("currency", "USD")).upper()
    try:
        return f"{float(amount):,.2f} {currency}"
    except (TypeError, ValueError):
        return f"{amount} {currency}"


def _describe_payment_failed(fields: dict[str, Any]) -> str:
    parts = ["Payment failed"]
    if fields.get("customer"):
        parts.append(f"for {fields['customer']}")
    money = _money(fields)
    if money:
        parts.append(f"({money})")
    if fields.get("reason"):
        parts.append(f"- {fields['reason']}")
    return " ".join(parts)


def _describe_payment_received(fields: dict[str, Any]) -> str:
    money = _money(fields)
    who = fields.get("customer", "a customer")
    return f"Received {money} from {who}" if money else f"Payment received from {who}"


def _describe_sla_breach(fields: dict[str, Any]) -> str:
    target = fields.get("sla", fields.get("ticket", "SLA"))
    overdue = fields.get("minutes_overdue")
    if overdue is not None:
        return f"{target} breached by {overdue} minutes"
    return f"{target} breached"


def _describe_trial_expiring(fields: dict[str, Any]) -> str:
    account = fields.get("account", "An account")
    days = fields.get("days_remaining")
    if days is not None:
        return f"{account} trial expires in {days} day(s)"
    return f"{account} trial is expiring"


def _describe_security_incident(fields: dict[str, Any]) -> str:
    kind = fields.get("incident", "Security incident")
    source = fields.get("source_ip") or fields.get("user")
    return f"{kind} detected from {source}" if source else f"{kind} detected"


def _describe_generic(fields: dict[str, Any]) -> str:
    shown = [f"{k}={v}" for k, v in sorted(fields.items()) if not isinstance(v, (dict, list))]
    return ", ".join(shown[:6])


@dataclass(frozen=True)
class EventTypeInfo:
    """Presentation data for one event type."""

    label: str
    category: str
    describe: Describer = _describe_generic


EVENT_TYPES: dict[str, EventTypeInfo] = {
    "payment_failed": EventTypeInfo("Payment Failed", "billing", _describe_payment_failed),
    "payment_received": EventTypeInfo("Payment Received", "billing", _describe_payment_received),
    "subscription_change": EventTypeInfo("Subscription Change", "billing"),
    "trial_expiring": EventTypeInfo("Trial Expiring", "account", _describe_trial_expiring),
    "sla_breach": EventTypeInfo("SLA Breach", "operations", _describe_sla_breach),
    "security_incident": EventTypeInfo(
        "Security Incident", "security", _describe_security_incident
    ),
    "new_application": EventTypeInfo("New Job Application", "recruitment"),
    "application_status_change": EventTypeInfo("Application Status Change", "recruitment"),
    "interview_scheduled": EventTypeInfo("Interview Scheduled", "recruitment"),
    "job_posted": EventTypeInfo("Job Posted", "recruitment"),
    "user_signup": EventTypeInfo("New User Signup", "account"),
    "support_ticket": EventTypeInfo("Support Ticket", "support"),
    "system_announcement": EventTypeInfo("System Announcement", "system"),
}

_DEFAULT_CATEGORY = "system"


def event_type_info(event_type: str) -> EventTypeInfo:
    info = EVENT_TYPES.get(event_type)
    if info is not None:
        return info
    return EventTypeInfo(event_type.replace("_", " ").title(), _DEFAULT_CATEGORY)


@dataclass(frozen=True)
class FormattedNotification:
    title: str
    message: str
    category: str


def format_notification(rule: AlertRule, event: Event) -> FormattedNotification:
    """Build title / message / category for a rule firing on an event."""
    info = event_type_info(event.type)
    detail = info.describe(event.fields)
    message_parts = [p for p in (rule.description, detail) if p]
    return FormattedNotification(
        title=rule.name or info.label,
        message="\n".join(message_parts) or info.label,
        category=info.category,
    )
