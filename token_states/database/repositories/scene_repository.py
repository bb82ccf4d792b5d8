"""Repository for scene documents."""

from typing import List, Optional

from token_states.models.documents import SceneDocument
from .base_repository import BaseRepository


class SceneRepository(BaseRepository):
    """Scenes are the grouping (and batching) boundary for tokens."""

    def create_table(self):
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS scenes (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL DEFAULT '',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        self._commit()

    def create(self, scene: SceneDocument) -> SceneDocument:
        self._execute(
            "INSERT INTO scenes (id, name) VALUES (?, ?)",
            (scene.id, scene.name),
        )
        self._commit()
        return scene

    def get_by_id(self, scene_id: str) -> Optional[SceneDocument]:
        row = self._fetchone("SELECT id, name FROM scenes WHERE id = ?", (scene_id,))
        return SceneDocument(id=row["id"], name=row["name"]) if row else None

    def get_all(self) -> List[SceneDocument]:
        rows = self._fetchall("SELECT id, name FROM scenes ORDER BY created_at, id")
        return [SceneDocument(id=row["id"], name=row["name"]) for row in rows]

    def delete(self, scene_id: str):
        """Delete a scene; its tokens go with it (ON DELETE CASCADE)."""
        self._execute("DELETE FROM scenes WHERE id = ?", (scene_id,))
        self._commit()
