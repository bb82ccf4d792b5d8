from dataclasses import dataclass, field, replace
from typing import FrozenSet


@dataclass(frozen=True)
class TokenState:
    """
    Minimal snapshot of a token that conditions are evaluated against.

    Derived fresh on every evaluation and never persisted.
    """

    hp: float = 0
    max_hp: float = 0
    active_conditions: FrozenSet[str] = field(default_factory=frozenset)
    in_combat: bool = False

    def __post_init__(self):
        if not isinstance(self.active_conditions, frozenset):
            object.__setattr__(self, "active_conditions", frozenset(self.active_conditions))

    @property
    def hp_percent(self) -> float:
        return self.hp / self.max_hp if self.max_hp > 0 else 0

    def with_changes(self, **changes) -> "TokenState":
        """Copy with some fields replaced (used to synthesize a previous state)."""
        return replace(self, **changes)

    def with_condition(self, slug: str) -> "TokenState":
        return replace(self, active_conditions=self.active_conditions | {slug})

    def without_condition(self, slug: str) -> "TokenState":
        return replace(self, active_conditions=self.active_conditions - {slug})
