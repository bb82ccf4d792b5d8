"""
Condition models.

A condition is a tagged variant keyed by `type`. Operators are stored as plain
strings so a stored rule with an operator this version does not know still
loads; the evaluator treats such a condition as never satisfied.
"""

from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

NUMERIC_OPERATORS = ("<", "<=", ">", ">=")
STATUS_OPERATORS = ("any-of", "all-of")

ConditionType = Literal["hp-percent", "hp-value", "in-combat", "status-effect"]


class _ConditionBase(BaseModel):
    model_config = ConfigDict(extra="ignore")


class HpPercentCondition(_ConditionBase):
    type: Literal["hp-percent"] = "hp-percent"
    operator: str = Field("<=", description="One of <, <=, >, >=.")
    value: float = Field(0.5, description="Fraction of max HP in [0, 1].")


class HpValueCondition(_ConditionBase):
    type: Literal["hp-value"] = "hp-value"
    operator: str = Field("<=", description="One of <, <=, >, >=.")
    value: float = Field(10, description="Raw HP value.")


class InCombatCondition(_ConditionBase):
    type: Literal["in-combat"] = "in-combat"
    value: bool = True


class StatusEffectCondition(_ConditionBase):
    type: Literal["status-effect"] = "status-effect"
    operator: str = Field("any-of", description="'any-of' or 'all-of'.")
    value: List[str] = Field(
        default_factory=list, description="Status slugs, order preserved, duplicates kept."
    )


Condition = Annotated[
    Union[HpPercentCondition, HpValueCondition, InCombatCondition, StatusEffectCondition],
    Field(discriminator="type"),
]


def default_condition(condition_type: str = "hp-percent") -> BaseModel:
    """Fresh condition of the given type, as the editor creates it."""
    if condition_type == "hp-value":
        return HpValueCondition()
    if condition_type == "in-combat":
        return InCombatCondition()
    if condition_type == "status-effect":
        return StatusEffectCondition()
    return HpPercentCondition()


def describe_condition(condition: BaseModel) -> str:
    """Short human readable summary, used in log lines and notifications."""
    if isinstance(condition, HpPercentCondition):
        return f"HP % {condition.operator} {condition.value}"
    if isinstance(condition, HpValueCondition):
        return f"HP {condition.operator} {condition.value}"
    if isinstance(condition, InCombatCondition):
        return "In Combat: Yes" if condition.value else "In Combat: No"
    if isinstance(condition, StatusEffectCondition):
        mode = "all" if condition.operator == "all-of" else "any"
        return f"Status ({mode}): {', '.join(condition.value) or 'none'}"
    return repr(condition)
