"""RuleStore: CRUD over alert rule definitions."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from src.core.types import AlertRule, AlertRuleUpdate, utc_now
from src.rules.exceptions import RuleNotFoundError
from src.store.base import RuleRepo
from src.store.memory import InMemoryRuleRepo

logger = structlog.get_logger(__name__)

_IMMUTABLE_FIELDS = frozenset({"id", "created_by", "created_at", "updated_at"})


class RuleStore:
    """Owns :class:`AlertRule` definitions.

    Rules are only mutated through :meth:`update` / :meth:`set_enabled`.
    Updates apply the fields set in that call and nothing else, so two
    concurrent edits touching different fields do not clobber each other.
    """

    def __init__(self, repo: RuleRepo | None = None) -> None:
        self._repo = repo or InMemoryRuleRepo()

    async def create(
        self,
        rule: AlertRule | dict[str, Any],
        created_by: str = "",
    ) -> AlertRule:
        if isinstance(rule, AlertRule):
            data = rule.model_dump()
        else:
            data = dict(rule)
        now = utc_now()
        if created_by:
            data["created_by"] = created_by
        data.setdefault("created_at", now)
        data["updated_at"] = now
        new_rule = AlertRule.model_validate(data)
        await self._repo.add(new_rule)
        logger.info(
            "rule_created",
            rule_id=new_rule.id,
            name=new_rule.name,
            event_type=new_rule.event_type,
            enabled=new_rule.enabled,
        )
        return new_rule

    async def get(self, rule_id: str) -> AlertRule:
        rule = await self._repo.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    async def list(
        self,
        event_type: str | None = None,
        enabled: bool | None = None,
    ) -> list[AlertRule]:
        rules = await self._repo.list()
        if event_type is not None:
            rules = [r for r in rules if r.event_type == event_type]
        if enabled is not None:
            rules = [r for r in rules if r.enabled == enabled]
        return rules

    async def snapshot(self) -> tuple[AlertRule, ...]:
        """Rules as seen at this instant, in insertion order."""
        return tuple(await self._repo.list())

    async def update(
        self,
        rule_id: str,
        changes: AlertRuleUpdate | dict[str, Any],
    ) -> AlertRule:
        if not isinstance(changes, AlertRuleUpdate):
            changes = AlertRuleUpdate.model_validate(
                {k: v for k, v in changes.items() if k not in _IMMUTABLE_FIELDS}
            )
        fields = {
            name: getattr(changes, name)
            for name in changes.model_fields_set
            if getattr(changes, name) is not None
        }
        updated = await self._repo.update_fields(rule_id, fields)
        if updated is None:
            raise RuleNotFoundError(rule_id)
        logger.info("rule_updated", rule_id=rule_id, fields=sorted(fields))
        return updated

    async def set_enabled(self, rule_id: str, enabled: bool) -> AlertRule:
        return await self.update(rule_id, AlertRuleUpdate(enabled=enabled))

    async def delete(self, rule_id: str) -> bool:
        removed = await self._repo.remove(rule_id)
        if removed:
            logger.info("rule_deleted", rule_id=rule_id)
        return removed

    async def load(self, rules: Iterable[AlertRule | dict[str, Any]]) -> list[AlertRule]:
        """Bootstrap rules (e.g. from settings)."""
        return [await self.create(r) for r in rules]
