"""Alert rule exceptions."""

from __future__ import annotations

from src.store.exceptions import RecordNotFoundError


class RuleError(Exception):
    """Base exception for alert rule errors."""


class RuleNotFoundError(RuleError, RecordNotFoundError):
    """No rule exists with the given id."""


class MalformedConditionError(RuleError):
    """A condition has an unknown operator, no field, or an unusable value."""
