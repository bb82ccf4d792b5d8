from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class ApplyStateRequest(BaseModel):
    """
    Forward request sent by a non-privileged participant to the privileged one.
    `resync` marks a bulk re-evaluation (e.g. canvas load) rather than an
    organic transition.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["applyState"]
    scene_id: StrictStr = Field(..., alias="sceneId")
    token_ids: List[StrictStr] = Field(..., alias="tokenIds")
    resync: bool = False

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class SoundDescriptor(BaseModel):
    src: str
    volume: float = 0.8
    loop: bool = False
