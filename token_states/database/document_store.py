"""SQLite-backed DocumentStore."""

import logging
from typing import Any, Dict, List, Optional

from token_states.database.db_manager import DBManager
from token_states.models.documents import ActorDocument, SceneDocument, TokenDocument
from token_states.services.collaborators import DocumentStore

logger = logging.getLogger(__name__)


class SqliteDocumentStore(DocumentStore):
    """DocumentStore over an open DBManager. Tokens come back with their actor attached."""

    def __init__(self, db: DBManager):
        self.db = db

    def get_scene(self, scene_id: str) -> Optional[SceneDocument]:
        return self.db.scenes.get_by_id(scene_id)

    def list_scenes(self) -> List[SceneDocument]:
        return self.db.scenes.get_all()

    def get_tokens(
        self, scene_id: str, token_ids: Optional[List[str]] = None
    ) -> List[TokenDocument]:
        if token_ids is None:
            tokens = self.db.tokens.get_by_scene(scene_id)
        else:
            tokens = [self.db.tokens.get(scene_id, token_id) for token_id in token_ids]
            tokens = [token for token in tokens if token is not None]

        actors = self.db.actors.get_many([t.actor_id for t in tokens if t.actor_id])
        for token in tokens:
            token.actor = actors.get(token.actor_id) if token.actor_id else None
        return tokens

    def get_actor(self, actor_id: str) -> Optional[ActorDocument]:
        return self.db.actors.get_by_id(actor_id)

    def update_tokens(self, scene_id: str, updates: List[Dict[str, Any]]) -> List[str]:
        written = self.db.tokens.update_many(scene_id, updates)
        logger.debug(f"Wrote {len(written)} token update(s) to scene {scene_id}")
        return written

    def update_actor(self, actor_id: str, patch: Dict[str, Any]) -> None:
        self.db.actors.update(actor_id, patch)
