"""Alert rules: storage and event matching."""

from src.rules.evaluator import RuleEvaluator, evaluate_condition, match_rules, rule_matches
from src.rules.exceptions import MalformedConditionError, RuleError, RuleNotFoundError
from src.rules.store import RuleStore

__all__ = [
    "MalformedConditionError",
    "RuleError",
    "RuleEvaluator",
    "RuleNotFoundError",
    "RuleStore",
    "evaluate_condition",
    "match_rules",
    "rule_matches",
]
