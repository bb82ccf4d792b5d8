import logging
import sqlite3
from typing import Optional

from token_states.database.repositories import (
    ActorRepository,
    SceneRepository,
    TokenRepository,
)

logger = logging.getLogger(__name__)


class DBManager:
    """
    Database connection manager with repository-based access.

    Usage:
        with DBManager("token_states.db") as db:
            db.create_tables()
            tokens = db.tokens.get_by_scene("scene-1")
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.conn = None

        # Repositories (initialized in __enter__)
        self.scenes: Optional[SceneRepository] = None
        self.tokens: Optional[TokenRepository] = None
        self.actors: Optional[ActorRepository] = None

    def __enter__(self):
        # Autocommit mode; batched writes open their own transaction.
        # Writes are run through asyncio.to_thread, hence check_same_thread=False.
        self.conn = sqlite3.connect(
            self.db_path, timeout=30.0, isolation_level=None, check_same_thread=False
        )

        # Enable Write-Ahead Logging (WAL).
        self.conn.execute("PRAGMA journal_mode=WAL;")

        # Enforce foreign keys (tokens cascade with their scene)
        self.conn.execute("PRAGMA foreign_keys=ON;")

        self.conn.row_factory = sqlite3.Row

        self.scenes = SceneRepository(self.conn)
        self.tokens = TokenRepository(self.conn)
        self.actors = ActorRepository(self.conn)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.conn:
            self.conn.close()
            self.conn = None

    def create_tables(self):
        """Initialize all database tables."""
        if not self.conn:
            with self as db:
                db._create_all_tables_and_indexes()
        else:
            self._create_all_tables_and_indexes()

    def _create_all_tables_and_indexes(self):
        # Scenes first: tokens reference them
        for repo in (self.scenes, self.actors, self.tokens):
            if repo:
                repo.create_table()

        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tokens_scene_id ON tokens(scene_id);"
        )
        logger.debug(f"Tables ready in {self.db_path}")
