"""
Runtime settings.

Values come from the environment (a `.env` file is loaded by the entry point
through python-dotenv). Every setting has a default so the engine also works
embedded in tests without any environment at all.
"""

import logging
import os
from enum import Enum
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Role(str, Enum):
    """Authority of the local participant. Fixed for the whole session."""

    PRIVILEGED = "privileged"
    NON_PRIVILEGED = "non-privileged"


class Settings(BaseModel):
    db_path: str = Field("token_states.db", description="SQLite file backing the document store.")
    log_level: str = Field("INFO", description="Root log level passed to setup_logging().")
    role: Role = Field(Role.PRIVILEGED, description="Whether this participant may persist state.")
    suppress_sounds_on_resync: bool = Field(
        True,
        description="Mute sound cues when a full canvas resynchronization re-evaluates every token.",
    )
    broadcast_sounds: bool = Field(
        True, description="Ask the audio collaborator to play cues for every participant."
    )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Build settings from TOKEN_STATES_* environment variables."""
        if env_file is not None:
            load_dotenv(env_file)

        values = {}
        if "TOKEN_STATES_DB_PATH" in os.environ:
            values["db_path"] = os.environ["TOKEN_STATES_DB_PATH"]
        if "TOKEN_STATES_LOG_LEVEL" in os.environ:
            values["log_level"] = os.environ["TOKEN_STATES_LOG_LEVEL"]
        if "TOKEN_STATES_ROLE" in os.environ:
            values["role"] = os.environ["TOKEN_STATES_ROLE"].strip().lower()
        for key, field_name in (
            ("TOKEN_STATES_SUPPRESS_SOUNDS_ON_RESYNC", "suppress_sounds_on_resync"),
            ("TOKEN_STATES_BROADCAST_SOUNDS", "broadcast_sounds"),
        ):
            raw = os.environ.get(key)
            if raw is not None:
                values[field_name] = raw.strip().lower() in _TRUE_VALUES

        settings = cls(**values)
        logger.debug(f"Loaded settings: {settings.model_dump()}")
        return settings
