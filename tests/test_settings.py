import logging

import pytest

from token_states.config import Role, Settings
from token_states.utils.logger_config import EmojiFormatter, setup_logging

ENV_KEYS = [
    "TOKEN_STATES_DB_PATH",
    "TOKEN_STATES_LOG_LEVEL",
    "TOKEN_STATES_ROLE",
    "TOKEN_STATES_SUPPRESS_SOUNDS_ON_RESYNC",
    "TOKEN_STATES_BROADCAST_SOUNDS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so teardown also removes values a .env file loads
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def test_defaults():
    settings = Settings.from_env()
    assert settings.db_path == "token_states.db"
    assert settings.role == Role.PRIVILEGED
    assert settings.suppress_sounds_on_resync is True


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TOKEN_STATES_DB_PATH", "/tmp/table.db")
    monkeypatch.setenv("TOKEN_STATES_ROLE", " Non-Privileged ")
    monkeypatch.setenv("TOKEN_STATES_SUPPRESS_SOUNDS_ON_RESYNC", "no")
    monkeypatch.setenv("TOKEN_STATES_BROADCAST_SOUNDS", "On")

    settings = Settings.from_env()
    assert settings.db_path == "/tmp/table.db"
    assert settings.role == Role.NON_PRIVILEGED
    assert settings.suppress_sounds_on_resync is False
    assert settings.broadcast_sounds is True


def test_env_file_is_loaded(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("TOKEN_STATES_LOG_LEVEL=DEBUG\n")

    settings = Settings.from_env(str(env_file))
    assert settings.log_level == "DEBUG"


def test_unknown_role_is_rejected(monkeypatch):
    monkeypatch.setenv("TOKEN_STATES_ROLE", "overlord")
    with pytest.raises(ValueError):
        Settings.from_env()


def test_setup_logging_accepts_level_names():
    root = logging.getLogger()
    previous_level, previous_handlers = root.level, list(root.handlers)
    try:
        setup_logging("warning")
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, EmojiFormatter)

        setup_logging("chatty")
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)


def test_emoji_prefix():
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "broken", None, None)
    assert EmojiFormatter("%(message)s").format(record) == "❌ broken"
