"""
Document shapes of the external store (scenes, tokens, actors).

These mirror what the host keeps per document; the engine reads them and only
ever writes partial patches back.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from token_states.constants import MODULE_ID


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class TextureData(_Document):
    src: str = ""
    scale_x: float = Field(1.0, alias="scaleX")
    scale_y: float = Field(1.0, alias="scaleY")


class RingSubject(_Document):
    texture: Optional[str] = None
    scale: Optional[float] = None


class RingData(_Document):
    enabled: bool = False
    subject: RingSubject = Field(default_factory=RingSubject)


class PrototypeToken(_Document):
    """Template a new token is created from; carries its own module flags."""

    name: str = ""
    texture: TextureData = Field(default_factory=TextureData)
    ring: RingData = Field(default_factory=RingData)
    flags: Dict[str, Any] = Field(default_factory=dict)

    @property
    def module_flags(self) -> Dict[str, Any]:
        return self.flags.get(MODULE_ID) or {}


class ActorDocument(_Document):
    id: str
    name: str = ""
    system: Dict[str, Any] = Field(
        default_factory=dict, description="Game system data, hp lives at attributes.hp."
    )
    conditions: List[str] = Field(default_factory=list, description="Active condition slugs.")
    prototype_token: PrototypeToken = Field(default_factory=PrototypeToken, alias="prototypeToken")


class TokenDocument(_Document):
    id: str
    scene_id: Optional[str] = Field(None, alias="sceneId")
    name: str = ""
    actor_id: Optional[str] = Field(None, alias="actorId")
    in_combat: bool = Field(False, alias="inCombat")
    texture: TextureData = Field(default_factory=TextureData)
    ring: RingData = Field(default_factory=RingData)
    flags: Dict[str, Any] = Field(default_factory=dict)

    # Resolved by the store when loading; never persisted on the token row
    actor: Optional[ActorDocument] = Field(None, exclude=True)

    @property
    def module_flags(self) -> Dict[str, Any]:
        return self.flags.get(MODULE_ID) or {}

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SceneDocument(_Document):
    id: str
    name: str = ""


class CombatantDocument(_Document):
    id: str = ""
    token_id: Optional[str] = Field(None, alias="tokenId")
    scene_id: Optional[str] = Field(None, alias="sceneId")


class CombatDocument(_Document):
    id: str = ""
    scene_id: Optional[str] = Field(None, alias="sceneId")
    combatants: List[CombatantDocument] = Field(default_factory=list)
