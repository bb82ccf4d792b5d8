"""
Reconciliation Engine
=====================
Turns a batch of tokens into the minimal set of document patches and the
sound cues to play.

Per token (independently):
1. Load the structured config (legacy rules are adapted in memory).
2. Project the token state; skip tokens without an actor.
3. Resolve the appearance rule.
4. No match: restore and clear the `_defaults` snapshot if present, with the
   configured default image (when set) laid over it; otherwise fall back to the
   configured default appearance. Clear the `state` marker.
5. Match: capture `_defaults` on the first match, in the same patch as the
   new appearance; write appearance fields only when the texture differs;
   always record the matched rule id in `state`.
6. Collect sounds: trigger edges against a previous TokenState when the
   caller has one, and rule-entry sounds against the remembered marker.

Patches for a token are deep-merged into a single update and grouped by scene
so the store gets one write per scene.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from token_states.constants import CONFIG_FLAG, DEFAULTS_FLAG, LEGACY_RULES_FLAG, MODULE_ID, STATE_FLAG
from token_states.engine.patches import build_patch, delete_patch, get_path, merge_patch
from token_states.engine.projector import project_token_state
from token_states.engine.resolver import (
    resolve_appearance,
    resolve_rule_entry_sounds,
    resolve_sounds,
)
from token_states.models.config import AppearanceRule, DefaultAppearance, SoundRule, TokenStateConfig
from token_states.models.documents import TokenDocument
from token_states.models.token_state import TokenState
from token_states.services.config_service import parse_stored_config
from token_states.services.legacy_migration import migrate_legacy_rules

logger = logging.getLogger(__name__)

FLAGS_PATH = f"flags.{MODULE_ID}"
STATE_PATH = f"{FLAGS_PATH}.{STATE_FLAG}"
DEFAULTS_PATH = f"{FLAGS_PATH}.{DEFAULTS_FLAG}"


@dataclass
class ReconcileResult:
    updates_by_scene: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    sounds_to_play: List[SoundRule] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.updates_by_scene and not self.sounds_to_play


class _UpdateQueue:
    """Per-scene, per-token accumulation of merged patches."""

    def __init__(self):
        self._scenes: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def queue(self, token: TokenDocument, patch: Dict[str, Any]):
        if not token.scene_id:
            logger.warning(f"Token {token.id} has no scene; update dropped")
            return
        scene_updates = self._scenes.setdefault(token.scene_id, {})
        existing = scene_updates.setdefault(token.id, {"_id": token.id})
        merge_patch(existing, patch)

    def by_scene(self) -> Dict[str, List[Dict[str, Any]]]:
        return {scene_id: list(updates.values()) for scene_id, updates in self._scenes.items()}


# =============================================================================
# CONFIG & APPEARANCE HELPERS
# =============================================================================


def load_token_config(token: TokenDocument) -> Optional[TokenStateConfig]:
    """
    Structured config of a token, adapting legacy rules when that is all it has.

    Returns None when the token is not configured. Raises ValidationError when
    the stored config is malformed.
    """
    flags = token.module_flags
    if flags.get(CONFIG_FLAG) is not None:
        return parse_stored_config(flags[CONFIG_FLAG])
    if flags.get(LEGACY_RULES_FLAG) is not None:
        return migrate_legacy_rules(flags[LEGACY_RULES_FLAG])
    return None


def current_texture(token: TokenDocument) -> Optional[str]:
    """The texture reference that distinguishes one appearance from another."""
    if token.ring.enabled:
        return token.ring.subject.texture
    return token.texture.src


def appearance_patch(
    token: TokenDocument,
    appearance: Union[AppearanceRule, DefaultAppearance],
    ring_enabled: Optional[bool] = None,
) -> Dict[str, Any]:
    if ring_enabled is None:
        ring_enabled = token.ring.enabled
    if ring_enabled:
        return {"ring": {"subject": {"texture": appearance.image, "scale": appearance.scale}}}
    return {
        "texture": {
            "src": appearance.image,
            "scaleX": appearance.scale,
            "scaleY": appearance.scale,
        }
    }


def snapshot_defaults(token: TokenDocument) -> Dict[str, Any]:
    """Appearance fields to restore once no rule matches any more."""
    return {
        "ring": token.ring.model_dump(mode="json", by_alias=True),
        "texture": token.texture.model_dump(mode="json", by_alias=True),
    }


# =============================================================================
# PER-TOKEN RECONCILIATION
# =============================================================================


def _reconcile_token(
    token: TokenDocument,
    config: TokenStateConfig,
    state: TokenState,
    previous: Optional[TokenState],
    updates: _UpdateQueue,
    sounds: List[SoundRule],
):
    flags = token.module_flags
    stored_defaults = flags.get(DEFAULTS_FLAG)
    previous_rule_id = flags.get(STATE_FLAG)

    matched = resolve_appearance(config.token_states, config.default, state)

    if not isinstance(matched, AppearanceRule):
        if stored_defaults:
            restore = copy.deepcopy(stored_defaults)
            if matched.image:
                # Settle on the configured default so the next pass compares equal
                restored_ring = get_path(stored_defaults, "ring.enabled", token.ring.enabled)
                merge_patch(restore, appearance_patch(token, matched, bool(restored_ring)))
            merge_patch(restore, delete_patch(DEFAULTS_PATH))
            updates.queue(token, restore)
        elif matched.image and matched.image != current_texture(token):
            updates.queue(token, appearance_patch(token, matched))
        updates.queue(token, build_patch(STATE_PATH, None))
        matched_rule_id = None
    else:
        patch: Dict[str, Any] = {}
        if not stored_defaults:
            merge_patch(patch, build_patch(DEFAULTS_PATH, snapshot_defaults(token)))
        if matched.image and matched.image != current_texture(token):
            merge_patch(patch, appearance_patch(token, matched))
        merge_patch(patch, build_patch(STATE_PATH, matched.id))
        updates.queue(token, patch)
        matched_rule_id = matched.id

    if previous is not None:
        sounds.extend(resolve_sounds(config.sounds, state, previous))
    sounds.extend(
        resolve_rule_entry_sounds(config.sounds, matched_rule_id, previous_rule_id, state)
    )


def reconcile(
    tokens: Iterable[Optional[TokenDocument]],
    previous_states: Optional[Mapping[str, TokenState]] = None,
) -> ReconcileResult:
    """
    Compute the patches and sounds for a batch of tokens.

    Args:
        tokens: Token documents with their actor resolved. None entries are ignored.
        previous_states: Optional token id -> TokenState before the transition
            that caused this pass. Trigger sounds only fire for tokens listed here.

    Returns:
        ReconcileResult with one update per token grouped by scene, and the
        sounds to play (not yet de-duplicated).
    """
    previous_states = previous_states or {}
    updates = _UpdateQueue()
    sounds: List[SoundRule] = []

    for token in tokens:
        if token is None:
            continue
        try:
            config = load_token_config(token)
        except ValidationError as e:
            logger.warning(f"Token {token.id} has a malformed token state config, skipping: {e}")
            continue
        if config is None:
            continue

        state = project_token_state(token)
        if state is None:
            continue

        _reconcile_token(token, config, state, previous_states.get(token.id), updates, sounds)

    result = ReconcileResult(updates_by_scene=updates.by_scene(), sounds_to_play=sounds)
    logger.debug(
        f"Reconciled {sum(len(u) for u in result.updates_by_scene.values())} token(s), "
        f"{len(sounds)} sound(s)"
    )
    return result
