"""
Legacy rule adapter.

Older versions stored trigger/effect rules under `flags.rules`. They are
converted once into the structured TokenStateConfig so there is a single
evaluation path:

* each rule becomes an AppearanceRule (triggers -> conditions, with the old
  `combat` trigger renamed `in-combat`),
* its `token-update` effect supplies image and scale,
* each `play-sound` effect becomes a SoundRule bound to the rule through
  `ruleId`, firing when the token enters that rule.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from token_states.constants import CONFIG_FLAG, DEFAULT_SCALE, DEFAULT_VOLUME, LEGACY_RULES_FLAG, MODULE_ID
from token_states.engine.patches import get_path
from token_states.models.config import (
    AppearanceRule,
    DefaultAppearance,
    LegacyRule,
    PlaySoundEffect,
    SoundRule,
    TokenStateConfig,
    TokenUpdateEffect,
)
from token_states.services.collaborators import DocumentStore
from token_states.services.config_service import normalize_condition

logger = logging.getLogger(__name__)

_KNOWN_EFFECTS = ("token-update", "play-sound")


def _appearance_from_update(value: Dict[str, Any]) -> Dict[str, Any]:
    """Pick image/scale out of a raw token-update payload."""
    image = get_path(value, "ring.subject.texture")
    scale = get_path(value, "ring.subject.scale")
    if image is None:
        texture = value.get("texture")
        image = texture if isinstance(texture, str) else get_path(value, "texture.src")
        scale = get_path(value, "texture.scaleX", value.get("scaleX"))
    return {
        "image": image if isinstance(image, str) else "",
        "scale": scale if isinstance(scale, (int, float)) and scale > 0 else DEFAULT_SCALE,
    }


def _parse_rule(raw: Any) -> Optional[LegacyRule]:
    if not isinstance(raw, dict):
        return None
    data = dict(raw)
    data["effects"] = [
        e for e in data.get("effects") or [] if isinstance(e, dict) and e.get("type") in _KNOWN_EFFECTS
    ]
    try:
        return LegacyRule.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Skipping malformed legacy rule {raw.get('id')!r}: {e}")
        return None


def migrate_legacy_rules(
    rules: List[Any], default: Optional[DefaultAppearance] = None
) -> TokenStateConfig:
    """Convert a legacy rule list into an equivalent structured config."""
    token_states: List[AppearanceRule] = []
    sounds: List[SoundRule] = []

    for raw in rules or []:
        rule = _parse_rule(raw)
        if rule is None:
            continue

        appearance = {"image": "", "scale": DEFAULT_SCALE}
        for effect in rule.effects:
            if isinstance(effect, TokenUpdateEffect):
                appearance = _appearance_from_update(effect.value)
            elif isinstance(effect, PlaySoundEffect):
                sounds.append(
                    SoundRule(
                        id=f"{rule.id}-sound-{len(sounds)}",
                        rule_id=rule.id,
                        src=effect.src,
                        volume=effect.volume if effect.volume is not None else DEFAULT_VOLUME,
                    )
                )

        token_states.append(
            AppearanceRule(
                id=rule.id,
                name=rule.id,
                conditions=[normalize_condition(t) for t in rule.triggers],
                **appearance,
            )
        )

    return TokenStateConfig(
        default=default or DefaultAppearance(),
        token_states=token_states,
        sounds=sounds,
    )


def migrate_token_flags(flags: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Patch (relative to the token document) replacing legacy rules with a config.

    Returns None when there is nothing to migrate: no legacy rules, or a
    structured config already exists (which always wins).
    """
    module_flags = flags.get(MODULE_ID) or {}
    rules = module_flags.get(LEGACY_RULES_FLAG)
    if rules is None:
        return None

    changes: Dict[str, Any] = {f"-={LEGACY_RULES_FLAG}": None}
    if module_flags.get(CONFIG_FLAG) is None:
        changes[CONFIG_FLAG] = migrate_legacy_rules(rules).to_document()
    return {"flags": {MODULE_ID: changes}}


def migrate_scene_tokens(store: DocumentStore, scene_id: str) -> int:
    """
    Persist the structured config on every token of a scene still carrying
    legacy rules. Returns the number of tokens rewritten.
    """
    updates = []
    for token in store.get_tokens(scene_id):
        patch = migrate_token_flags(token.flags)
        if patch is not None:
            updates.append({"_id": token.id, **patch})

    if not updates:
        return 0
    written = store.update_tokens(scene_id, updates)
    logger.info(f"Migrated legacy rules on {len(written)} token(s) in scene {scene_id}")
    return len(written)
