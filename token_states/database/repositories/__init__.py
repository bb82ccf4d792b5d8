from .base_repository import BaseRepository
from .scene_repository import SceneRepository
from .token_repository import TokenRepository
from .actor_repository import ActorRepository

__all__ = [
    "BaseRepository",
    "SceneRepository",
    "TokenRepository",
    "ActorRepository",
]
