from token_states.models.conditions import (
    Condition,
    HpPercentCondition,
    HpValueCondition,
    InCombatCondition,
    StatusEffectCondition,
)
from token_states.models.config import (
    AppearanceRule,
    DefaultAppearance,
    LegacyRule,
    SoundRule,
    TokenStateConfig,
)
from token_states.models.documents import (
    ActorDocument,
    CombatantDocument,
    CombatDocument,
    SceneDocument,
    TokenDocument,
)
from token_states.models.messages import ApplyStateRequest, SoundDescriptor
from token_states.models.token_state import TokenState

__all__ = [
    "Condition",
    "HpPercentCondition",
    "HpValueCondition",
    "InCombatCondition",
    "StatusEffectCondition",
    "AppearanceRule",
    "DefaultAppearance",
    "LegacyRule",
    "SoundRule",
    "TokenStateConfig",
    "ActorDocument",
    "CombatantDocument",
    "CombatDocument",
    "SceneDocument",
    "TokenDocument",
    "ApplyStateRequest",
    "SoundDescriptor",
    "TokenState",
]
