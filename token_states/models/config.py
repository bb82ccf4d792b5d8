"""
Authored configuration models.

`TokenStateConfig` is the canonical, versioned document stored on a token (or
prototype token) under `flags["token-states"].config`. The legacy trigger /
effect rules are kept only as input models for the one-time adapter in
`token_states.services.legacy_migration`.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from token_states.constants import CONFIG_VERSION, DEFAULT_SCALE, DEFAULT_VOLUME
from token_states.models.conditions import Condition


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DefaultAppearance(_ConfigModel):
    """Appearance used when no rule matches."""

    image: str = ""
    scale: float = Field(DEFAULT_SCALE, gt=0)


class AppearanceRule(_ConfigModel):
    """An image variant. All `conditions` must hold (empty list always holds)."""

    id: str
    name: str = ""
    conditions: List[Condition] = Field(default_factory=list)
    image: str = ""
    scale: float = Field(DEFAULT_SCALE, gt=0)


class SoundRule(_ConfigModel):
    """
    A one-shot cue.

    Fires on the false -> true edge of `trigger` while every entry of
    `conditions` holds for the current state. A rule carrying `rule_id`
    instead fires when the token enters the appearance rule with that id.
    """

    id: str
    name: str = ""
    trigger: Optional[Condition] = None
    conditions: List[Condition] = Field(default_factory=list)
    src: str = ""
    volume: float = Field(DEFAULT_VOLUME, ge=0, le=1)
    rule_id: Optional[str] = Field(None, alias="ruleId")

    @model_validator(mode="after")
    def _needs_trigger_or_rule(self):
        if self.trigger is None and not self.rule_id:
            raise ValueError(f"Sound rule '{self.id}' needs a trigger or a ruleId")
        return self


class TokenStateConfig(_ConfigModel):
    version: Literal[1] = CONFIG_VERSION
    default: DefaultAppearance = Field(default_factory=DefaultAppearance)
    token_states: List[AppearanceRule] = Field(default_factory=list, alias="tokenStates")
    sounds: List[SoundRule] = Field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        """JSON-ready dict in the stored (camelCase) shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# LEGACY RULE FORMAT
# =============================================================================


class TokenUpdateEffect(_ConfigModel):
    type: Literal["token-update"] = "token-update"
    value: Dict[str, Any] = Field(default_factory=dict)


class PlaySoundEffect(_ConfigModel):
    type: Literal["play-sound"] = "play-sound"
    src: str
    volume: Optional[float] = None


LegacyEffect = Annotated[Union[TokenUpdateEffect, PlaySoundEffect], Field(discriminator="type")]


class LegacyRule(_ConfigModel):
    """Trigger/effect rule as stored by older versions under `flags.rules`."""

    id: str
    triggers: List[Dict[str, Any]] = Field(default_factory=list)
    effects: List[LegacyEffect] = Field(default_factory=list)
