"""Token State Projector: document -> TokenState snapshot."""

import logging
from typing import Optional

from token_states.engine.patches import get_path
from token_states.models.documents import TokenDocument
from token_states.models.token_state import TokenState

logger = logging.getLogger(__name__)

HP_VALUE_PATH = "attributes.hp.value"
HP_MAX_PATH = "attributes.hp.max"


def _number(value) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def project_token_state(token: TokenDocument) -> Optional[TokenState]:
    """
    Derive the evaluation snapshot for a token.

    Returns None when the token has no actor. Callers must skip such tokens
    rather than evaluating a zero state, which would wrongly satisfy
    conditions like `hp-value <= 0`.
    """
    actor = token.actor
    if actor is None:
        logger.debug(f"Token {token.id} has no actor; nothing to evaluate")
        return None

    return TokenState(
        hp=_number(get_path(actor.system, HP_VALUE_PATH, 0)),
        max_hp=_number(get_path(actor.system, HP_MAX_PATH, 0)),
        active_conditions=frozenset(str(slug) for slug in actor.conditions if slug),
        in_combat=bool(token.in_combat),
    )
