"""Shared identifiers for flags, events and the forward channel."""

MODULE_ID = "token-states"

# Keys inside token.flags[MODULE_ID]
CONFIG_FLAG = "config"
LEGACY_RULES_FLAG = "rules"
STATE_FLAG = "state"
DEFAULTS_FLAG = "_defaults"

# Prefix marking a key for deletion inside an update patch
DELETE_PREFIX = "-="

SOCKET_EVENT = f"module.{MODULE_ID}"
APPLY_STATE_MESSAGE = "applyState"

CONFIG_VERSION = 1

MIN_SCALE = 0.1
MAX_SCALE = 3.0
DEFAULT_SCALE = 1.0
DEFAULT_VOLUME = 0.8
