"""
Interfaces of the external collaborators the engine talks to.

The host supplies concrete implementations; `token_states.database` ships a
SQLite-backed DocumentStore and this module ships logging fallbacks for
notifications, forwarding and audio so the engine runs headless.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from token_states.models.documents import ActorDocument, SceneDocument, TokenDocument
from token_states.models.messages import SoundDescriptor

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Key-value document store keyed by scene and token identity."""

    @abstractmethod
    def get_scene(self, scene_id: str) -> Optional[SceneDocument]:
        pass

    @abstractmethod
    def list_scenes(self) -> List[SceneDocument]:
        pass

    @abstractmethod
    def get_tokens(
        self, scene_id: str, token_ids: Optional[List[str]] = None
    ) -> List[TokenDocument]:
        """Tokens of a scene with their actor resolved. Unknown ids are skipped."""
        pass

    @abstractmethod
    def get_actor(self, actor_id: str) -> Optional[ActorDocument]:
        pass

    @abstractmethod
    def update_tokens(self, scene_id: str, updates: List[Dict[str, Any]]) -> List[str]:
        """
        Apply a batch of partial patches (`{"_id": ..., **fields}`) to one scene.

        Returns the ids that were updated; ids no longer in the scene are skipped.
        Raises MissingDocumentError if the scene itself is gone.
        """
        pass

    @abstractmethod
    def update_actor(self, actor_id: str, patch: Dict[str, Any]) -> None:
        pass

    def get_token(self, scene_id: str, token_id: str) -> Optional[TokenDocument]:
        tokens = self.get_tokens(scene_id, [token_id])
        return tokens[0] if tokens else None


class ForwardChannel(ABC):
    """Application-level broadcast channel between participants."""

    @abstractmethod
    def emit(self, payload: Dict[str, Any]) -> None:
        pass


class AudioDispatcher(ABC):
    @abstractmethod
    def play(self, sound: SoundDescriptor, broadcast: bool = False) -> None:
        pass


class Notifier(ABC):
    """User-visible notifications (toasts in the host UI)."""

    @abstractmethod
    def info(self, message: str) -> None:
        pass

    @abstractmethod
    def warn(self, message: str) -> None:
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        pass


class LoggingNotifier(Notifier):
    def info(self, message: str) -> None:
        logger.info(message)

    def warn(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)


class LoggingForwardChannel(ForwardChannel):
    def emit(self, payload: Dict[str, Any]) -> None:
        logger.info(f"Forward request: {payload}")


class LoggingAudioDispatcher(AudioDispatcher):
    def play(self, sound: SoundDescriptor, broadcast: bool = False) -> None:
        logger.info(f"Playing {sound.src} at volume {sound.volume} (broadcast={broadcast})")


@dataclass
class LocalView:
    """What the local participant currently has on screen."""

    scene_id: Optional[str] = None
    token_ids: Set[str] = field(default_factory=set)

    def knows(self, token: TokenDocument) -> bool:
        return token.scene_id == self.scene_id and token.id in self.token_ids
