"""Rule evaluation: match an incoming event against enabled alert rules."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from src.core.types import AlertRule, Condition, ConditionOperator, Event
from src.rules.exceptions import MalformedConditionError
from src.rules.store import RuleStore

logger = structlog.get_logger(__name__)

_OPERATOR_ALIASES: dict[str, ConditionOperator] = {
    "==": ConditionOperator.EQUALS,
    "eq": ConditionOperator.EQUALS,
    ">": ConditionOperator.GREATER_THAN,
    "gt": ConditionOperator.GREATER_THAN,
    "<": ConditionOperator.LESS_THAN,
    "lt": ConditionOperator.LESS_THAN,
}

_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def resolve_operator(raw: ConditionOperator | str) -> ConditionOperator:
    if isinstance(raw, ConditionOperator):
        return raw
    key = str(raw).strip().lower()
    if key in _OPERATOR_ALIASES:
        return _OPERATOR_ALIASES[key]
    try:
        return ConditionOperator(key)
    except ValueError:
        raise MalformedConditionError(f"unknown operator {raw!r}") from None


def _numeric_threshold(value: Any) -> float:
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
    raise MalformedConditionError(f"non-numeric threshold {value!r}")


def _equals(actual: Any, expected: Any) -> bool:
    # Type-aware: 250 == 250.0, but "250" != 250 and True != 1.
    if _is_number(actual) and _is_number(expected):
        return actual == expected
    if type(actual) is not type(expected):
        return False
    return actual == expected


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return isinstance(expected, str) and expected in actual
    if isinstance(actual, (list, tuple, set, frozenset)):
        return any(_equals(item, expected) for item in actual)
    return False


def evaluate_condition(condition: Condition, fields: dict[str, Any]) -> bool:
    """Evaluate one condition against event fields.

    Raises:
        MalformedConditionError: the condition itself is unusable.
    """
    if not condition.field:
        raise MalformedConditionError("condition has no field")
    op = resolve_operator(condition.operator)

    actual = fields.get(condition.field, _MISSING)
    if actual is _MISSING:
        return False

    if op == ConditionOperator.EQUALS:
        return _equals(actual, condition.value)
    if op == ConditionOperator.CONTAINS:
        return _contains(actual, condition.value)

    threshold = _numeric_threshold(condition.value)
    if not _is_number(actual):
        return False
    if op == ConditionOperator.GREATER_THAN:
        return actual > threshold
    return actual < threshold


def rule_matches(rule: AlertRule, event: Event) -> bool:
    """AND all conditions; a rule with no conditions matches every event.

    A malformed condition never matches and is logged as a configuration
    warning. The rule stays enabled.
    """
    for index, condition in enumerate(rule.conditions):
        try:
            ok = evaluate_condition(condition, event.fields)
        except MalformedConditionError as exc:
            logger.warning(
                "condition_malformed",
                rule_id=rule.id,
                rule_name=rule.name,
                condition_index=index,
                error=str(exc),
            )
            return False
        if not ok:
            return False
    return True


def match_rules(event: Event, rules: Iterable[AlertRule]) -> list[AlertRule]:
    """Return every enabled rule for ``event.type`` that matches, in input order."""
    return [
        rule
        for rule in rules
        if rule.enabled and rule.event_type == event.type and rule_matches(rule, event)
    ]


class RuleEvaluator:
    """Matches events against the rules held by a :class:`RuleStore`.

    All matching rules fire independently; there is no first-match-wins.
    Matches come back in rule-store insertion order.
    """

    def __init__(self, store: RuleStore) -> None:
        self._store = store

    async def evaluate(self, event: Event) -> list[AlertRule]:
        rules = await self._store.snapshot()
        matches = match_rules(event, rules)
        if matches:
            logger.info(
                "rules_matched",
                event_type=event.type,
                rule_ids=[r.id for r in matches],
            )
        else:
            logger.debug("no_rules_matched", event_type=event.type)
        return matches
