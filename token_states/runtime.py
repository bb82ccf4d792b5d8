"""
Runtime wiring: one object owning the database, the gateway and the hooks
of a participant's session.
"""

import logging
from typing import Optional

from token_states.config import Settings
from token_states.database.db_manager import DBManager
from token_states.database.document_store import SqliteDocumentStore
from token_states.services.authority_gateway import AuthorityGateway
from token_states.services.collaborators import (
    AudioDispatcher,
    ForwardChannel,
    LocalView,
    LoggingAudioDispatcher,
    LoggingForwardChannel,
    LoggingNotifier,
    Notifier,
)
from token_states.services.config_service import ConfigService
from token_states.services.hooks import HookBus, HookSet, register_token_state_hooks

logger = logging.getLogger(__name__)


class TokenStatesRuntime:
    """
    Usage:
        with TokenStatesRuntime(Settings.from_env()) as runtime:
            await runtime.bus.emit("canvasReady", "scene-1")
    """

    def __init__(
        self,
        settings: Settings,
        channel: Optional[ForwardChannel] = None,
        audio: Optional[AudioDispatcher] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.settings = settings
        self.db = DBManager(settings.db_path)
        self.bus = HookBus()
        self.channel = channel or LoggingForwardChannel()
        self.audio = audio or LoggingAudioDispatcher()
        self.notifier = notifier or LoggingNotifier()

        self.store: Optional[SqliteDocumentStore] = None
        self.gateway: Optional[AuthorityGateway] = None
        self.configs: Optional[ConfigService] = None
        self.hooks: Optional[HookSet] = None

    def __enter__(self):
        self.db.__enter__()
        self.db.create_tables()

        self.store = SqliteDocumentStore(self.db)
        self.gateway = AuthorityGateway(
            self.settings, self.store, self.channel, self.audio, LocalView()
        )
        self.configs = ConfigService(self.store, self.notifier)
        self.hooks = register_token_state_hooks(self.bus, self.gateway, self.store)
        logger.info(f"Token states runtime started as {self.settings.role.value}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.hooks:
            self.hooks.dispose()
            self.hooks = None
        self.db.__exit__(exc_type, exc_val, exc_tb)
