"""Repository for token documents, stored per scene."""

import json
import logging
from typing import Any, Dict, List, Optional

from token_states.engine.patches import apply_patch
from token_states.exceptions import MissingDocumentError
from token_states.models.documents import TokenDocument
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TokenRepository(BaseRepository):
    """Handles token rows. Actor resolution is left to the caller."""

    def create_table(self):
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS tokens (
                scene_id TEXT NOT NULL,
                token_id TEXT NOT NULL,
                data_json TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (scene_id, token_id),
                FOREIGN KEY (scene_id) REFERENCES scenes (id) ON DELETE CASCADE
            );
            """
        )
        self._commit()

    def _to_document(self, scene_id: str, token_id: str, raw: Optional[str]) -> TokenDocument:
        data = self._load_json(raw)
        data["id"] = token_id
        data["sceneId"] = scene_id
        return TokenDocument.model_validate(data)

    def _write(self, token: TokenDocument) -> int:
        cursor = self._execute(
            """INSERT INTO tokens (scene_id, token_id, data_json, version)
               VALUES (?, ?, ?, 1)
               ON CONFLICT(scene_id, token_id)
               DO UPDATE SET
                   data_json = excluded.data_json,
                   version = version + 1,
                   updated_at = CURRENT_TIMESTAMP
               RETURNING version""",
            (token.scene_id, token.id, json.dumps(token.to_document())),
        )
        row = cursor.fetchone()
        return row["version"] if row else 1

    def save(self, token: TokenDocument) -> int:
        """Create or replace a token. Returns the version number."""
        if not token.scene_id:
            raise ValueError(f"Token {token.id} has no scene")
        version = self._write(token)
        self._commit()
        return version

    def get(self, scene_id: str, token_id: str) -> Optional[TokenDocument]:
        row = self._fetchone(
            "SELECT data_json FROM tokens WHERE scene_id = ? AND token_id = ?",
            (scene_id, token_id),
        )
        return self._to_document(scene_id, token_id, row["data_json"]) if row else None

    def get_by_scene(self, scene_id: str) -> List[TokenDocument]:
        rows = self._fetchall(
            "SELECT token_id, data_json FROM tokens WHERE scene_id = ? ORDER BY rowid",
            (scene_id,),
        )
        return [self._to_document(scene_id, row["token_id"], row["data_json"]) for row in rows]

    def update_many(self, scene_id: str, updates: List[Dict[str, Any]]) -> List[str]:
        """
        Apply partial patches to tokens of one scene in a single transaction.

        Each update is `{"_id": token_id, **patch}`. Tokens that no longer exist
        are skipped. Returns the ids that were written.
        """
        if not self._fetchone("SELECT id FROM scenes WHERE id = ?", (scene_id,)):
            raise MissingDocumentError("Scene", scene_id)

        written = []
        if not self.conn.in_transaction:
            self._execute("BEGIN")
        try:
            for update in updates:
                patch = dict(update)
                token_id = patch.pop("_id", None)
                token = self.get(scene_id, token_id) if token_id else None
                if token is None:
                    logger.warning(f"Token {token_id} is no longer in scene {scene_id}; skipped")
                    continue

                data = apply_patch(token.to_document(), patch)
                data["id"] = token_id
                data["sceneId"] = scene_id
                self._write(TokenDocument.model_validate(data))
                written.append(token_id)
        except Exception:
            self.conn.rollback()
            raise
        self._commit()
        return written

    def delete(self, scene_id: str, token_id: str):
        self._execute(
            "DELETE FROM tokens WHERE scene_id = ? AND token_id = ?", (scene_id, token_id)
        )
        self._commit()
