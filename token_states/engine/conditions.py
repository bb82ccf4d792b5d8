"""
Condition Evaluator
===================
Pure predicate evaluation of a single condition against a TokenState.

Conditions may arrive as pydantic models or as raw dicts read straight from a
document. Anything the evaluator does not understand (unknown `type`, unknown
`operator`, missing or mistyped `value`) evaluates to False, so one malformed
rule can never break a reconciliation batch; it just never matches.
"""

import logging
from typing import Any, Iterable, Mapping

from token_states.models.token_state import TokenState

logger = logging.getLogger(__name__)


def _as_mapping(condition: Any) -> Mapping[str, Any]:
    if hasattr(condition, "model_dump"):
        return condition.model_dump()
    if isinstance(condition, Mapping):
        return condition
    return {}


def compare(left: float, operator: str, right: float) -> bool:
    """Numeric comparison for the enumerated operators; unknown ones fail closed."""
    if operator == "<":
        return left < right
    elif operator == "<=":
        return left <= right
    elif operator == ">":
        return left > right
    elif operator == ">=":
        return left >= right
    return False


def _check_hp_percent(condition: Mapping[str, Any], state: TokenState) -> bool:
    hp_percent = state.hp / state.max_hp if state.max_hp > 0 else 0
    return compare(hp_percent, condition.get("operator"), float(condition["value"]))


def _check_hp_value(condition: Mapping[str, Any], state: TokenState) -> bool:
    return compare(state.hp, condition.get("operator"), float(condition["value"]))


def _check_in_combat(condition: Mapping[str, Any], state: TokenState) -> bool:
    value = condition.get("value")
    return isinstance(value, bool) and bool(state.in_combat) == value


def _check_status_effect(condition: Mapping[str, Any], state: TokenState) -> bool:
    requested = condition.get("value")
    if not isinstance(requested, (list, tuple)):
        return False

    # Set intersection against the raw list length: duplicate requests make all-of unsatisfiable
    matched = set(requested) & state.active_conditions

    operator = condition.get("operator")
    if operator == "any-of":
        return len(matched) > 0
    elif operator == "all-of":
        return len(matched) == len(requested)
    return False


_CHECKS = {
    "hp-percent": _check_hp_percent,
    "hp-value": _check_hp_value,
    "in-combat": _check_in_combat,
    "status-effect": _check_status_effect,
}


def evaluate(condition: Any, state: TokenState) -> bool:
    """
    Evaluate one condition against a token state.

    Args:
        condition: A condition model or a dict with `type`, `operator`, `value`.
        state: The projected token state.

    Returns:
        True if the condition holds. Never raises.
    """
    data = _as_mapping(condition)
    check = _CHECKS.get(data.get("type"))
    if check is None:
        return False
    try:
        return bool(check(data, state))
    except (KeyError, TypeError, ValueError) as e:
        logger.debug(f"Condition {dict(data)} treated as unmatched: {e}")
        return False


def evaluate_all(conditions: Iterable[Any], state: TokenState) -> bool:
    """Left-to-right conjunction with short-circuit. An empty list holds."""
    for condition in conditions:
        if not evaluate(condition, state):
            return False
    return True
