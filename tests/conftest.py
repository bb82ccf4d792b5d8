import pytest

from token_states.config import Role, Settings
from token_states.database.db_manager import DBManager
from token_states.database.document_store import SqliteDocumentStore
from token_states.models.documents import SceneDocument

from factories import RecordingAudio, RecordingChannel, RecordingNotifier


@pytest.fixture
def db():
    with DBManager(":memory:") as manager:
        manager.create_tables()
        yield manager


@pytest.fixture
def store(db):
    return SqliteDocumentStore(db)


@pytest.fixture
def scene(db):
    return db.scenes.create(SceneDocument(id="scene-1", name="Crypt"))


@pytest.fixture
def seed(db, scene):
    """Persist an actor and its token, returning the stored token id."""

    def _seed(actor, token):
        db.actors.save(actor)
        db.tokens.save(token)
        return token.id

    return _seed


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def audio():
    return RecordingAudio()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def privileged_settings():
    return Settings(db_path=":memory:", role=Role.PRIVILEGED)


@pytest.fixture
def player_settings():
    return Settings(db_path=":memory:", role=Role.NON_PRIVILEGED)
