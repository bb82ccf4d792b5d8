"""Repository for actor documents."""

import json
from typing import Any, Dict, List, Optional

from token_states.engine.patches import apply_patch
from token_states.exceptions import MissingDocumentError
from token_states.models.documents import ActorDocument
from .base_repository import BaseRepository


class ActorRepository(BaseRepository):
    def create_table(self):
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS actors (
                id TEXT PRIMARY KEY,
                data_json TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        self._commit()

    def save(self, actor: ActorDocument) -> int:
        """Create or replace an actor. Returns the version number."""
        data = actor.model_dump(mode="json", by_alias=True)
        cursor = self._execute(
            """INSERT INTO actors (id, data_json, version)
               VALUES (?, ?, 1)
               ON CONFLICT(id)
               DO UPDATE SET
                   data_json = excluded.data_json,
                   version = version + 1,
                   updated_at = CURRENT_TIMESTAMP
               RETURNING version""",
            (actor.id, json.dumps(data)),
        )
        row = cursor.fetchone()
        self._commit()
        return row["version"] if row else 1

    def get_by_id(self, actor_id: str) -> Optional[ActorDocument]:
        row = self._fetchone("SELECT data_json FROM actors WHERE id = ?", (actor_id,))
        if not row:
            return None
        data = self._load_json(row["data_json"])
        data["id"] = actor_id
        return ActorDocument.model_validate(data)

    def get_many(self, actor_ids: List[str]) -> Dict[str, ActorDocument]:
        actors = {}
        for actor_id in set(actor_ids):
            actor = self.get_by_id(actor_id)
            if actor is not None:
                actors[actor_id] = actor
        return actors

    def update(self, actor_id: str, patch: Dict[str, Any]) -> int:
        """Apply a partial patch to the stored actor. Returns the new version."""
        row = self._fetchone("SELECT data_json FROM actors WHERE id = ?", (actor_id,))
        if not row:
            raise MissingDocumentError("Actor", actor_id)
        data = apply_patch(self._load_json(row["data_json"]), patch)
        data["id"] = actor_id
        return self.save(ActorDocument.model_validate(data))

    def delete(self, actor_id: str):
        self._execute("DELETE FROM actors WHERE id = ?", (actor_id,))
        self._commit()
