"""
Config Service
==============
Authoring-side operations on token state configurations:

1. Lenient normalization of raw (possibly old or hand-edited) config data.
2. JSON import/export with descriptive validation errors.
3. Storing/removing configs on tokens and prototype tokens.
4. One-way copies between a prototype token and its placed tokens.

None of these run automatically; the host UI calls them explicitly.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from token_states.constants import (
    CONFIG_FLAG,
    DEFAULT_SCALE,
    DEFAULT_VOLUME,
    LEGACY_RULES_FLAG,
    MAX_SCALE,
    MIN_SCALE,
    MODULE_ID,
)
from token_states.exceptions import ConfigValidationError, MissingDocumentError
from token_states.models.conditions import (
    NUMERIC_OPERATORS,
    HpPercentCondition,
    HpValueCondition,
    InCombatCondition,
    StatusEffectCondition,
    default_condition,
)
from token_states.models.config import (
    AppearanceRule,
    DefaultAppearance,
    LegacyRule,
    SoundRule,
    TokenStateConfig,
)
from token_states.models.documents import PrototypeToken, SceneDocument, TokenDocument
from token_states.services.collaborators import DocumentStore, Notifier

logger = logging.getLogger(__name__)


# =============================================================================
# NORMALIZATION
# =============================================================================


def random_id() -> str:
    return uuid.uuid4().hex[:16]


def to_float(value: Any, fallback: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


def clamp(value: Any, low: float, high: float, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if number != number or number in (float("inf"), float("-inf")):
        return low
    return min(high, max(low, number))


def normalize_numeric_operator(value: Any) -> str:
    return value if value in NUMERIC_OPERATORS else "<="


def normalize_condition(raw: Any):
    """Coerce a raw condition dict into a valid condition model."""
    data = raw if isinstance(raw, dict) else {}
    condition_type = data.get("type")

    if condition_type == "hp-percent":
        return HpPercentCondition(
            operator=normalize_numeric_operator(data.get("operator")),
            value=clamp(data.get("value", 0.5), 0, 1, 0.5),
        )
    if condition_type == "hp-value":
        return HpValueCondition(
            operator=normalize_numeric_operator(data.get("operator")),
            value=to_float(data.get("value", 0), 0),
        )
    if condition_type in ("in-combat", "combat"):
        return InCombatCondition(value=bool(data.get("value")))
    if condition_type == "status-effect":
        values = data.get("value")
        return StatusEffectCondition(
            operator="all-of" if data.get("operator") == "all-of" else "any-of",
            value=[str(v).strip() for v in values if str(v).strip()]
            if isinstance(values, list)
            else [],
        )
    return default_condition()


def _normalize_conditions(data: Dict[str, Any], fallback: List[Any]) -> List[Any]:
    if isinstance(data.get("conditions"), list):
        return [normalize_condition(c) for c in data["conditions"]]
    if "condition" in data:
        return [normalize_condition(data["condition"])]
    return fallback


def _rule_id(data: Dict[str, Any]) -> str:
    value = data.get("id")
    return value if isinstance(value, str) and value else random_id()


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def normalize_appearance_rule(raw: Any) -> AppearanceRule:
    data = raw if isinstance(raw, dict) else {}
    return AppearanceRule(
        id=_rule_id(data),
        name=_text(data, "name"),
        conditions=_normalize_conditions(data, [default_condition()]),
        image=_text(data, "image"),
        scale=clamp(data.get("scale", DEFAULT_SCALE), MIN_SCALE, MAX_SCALE, DEFAULT_SCALE),
    )


def normalize_sound_rule(raw: Any) -> SoundRule:
    data = raw if isinstance(raw, dict) else {}
    rule_id = data.get("ruleId", data.get("rule_id"))
    if "trigger" in data:
        trigger = normalize_condition(data["trigger"])
    elif "condition" in data:
        trigger = normalize_condition(data["condition"])
    elif isinstance(rule_id, str) and rule_id:
        trigger = None
    else:
        trigger = default_condition("in-combat")

    return SoundRule(
        id=_rule_id(data),
        name=_text(data, "name"),
        trigger=trigger,
        conditions=[normalize_condition(c) for c in data.get("conditions") or []]
        if isinstance(data.get("conditions"), list)
        else [],
        src=_text(data, "src"),
        volume=clamp(data.get("volume", DEFAULT_VOLUME), 0, 1, DEFAULT_VOLUME),
        rule_id=rule_id if isinstance(rule_id, str) and rule_id else None,
    )


def normalize_config(raw: Any) -> TokenStateConfig:
    """
    Build a valid TokenStateConfig from arbitrary input.

    Missing pieces get editor defaults, numbers are clamped to their ranges and
    older single-`condition` rows are upgraded to `conditions` lists.
    """
    data = raw if isinstance(raw, dict) else {}
    default = data.get("default") if isinstance(data.get("default"), dict) else {}
    token_states = data.get("tokenStates", data.get("token_states"))
    sounds = data.get("sounds")

    return TokenStateConfig(
        default=DefaultAppearance(
            image=_text(default, "image"),
            scale=clamp(default.get("scale", DEFAULT_SCALE), MIN_SCALE, MAX_SCALE, DEFAULT_SCALE),
        ),
        token_states=[normalize_appearance_rule(r) for r in token_states]
        if isinstance(token_states, list)
        else [],
        sounds=[normalize_sound_rule(s) for s in sounds] if isinstance(sounds, list) else [],
    )


def parse_stored_config(raw: Any) -> Optional[TokenStateConfig]:
    """Strict load of a stored config. Raises pydantic's ValidationError when malformed."""
    if raw is None:
        return None
    if isinstance(raw, TokenStateConfig):
        return raw
    return TokenStateConfig.model_validate(raw)


# =============================================================================
# DEFAULTS FROM DOCUMENTS
# =============================================================================


def default_appearance_for(token: Union[TokenDocument, PrototypeToken]) -> DefaultAppearance:
    """The appearance a token shows right now, used as the config's default."""
    if token.ring.enabled:
        return DefaultAppearance(
            image=token.ring.subject.texture or token.texture.src or "",
            scale=token.ring.subject.scale or token.texture.scale_x or DEFAULT_SCALE,
        )
    return DefaultAppearance(
        image=token.texture.src or "", scale=token.texture.scale_x or DEFAULT_SCALE
    )


def create_default_config(token: Union[TokenDocument, PrototypeToken]) -> TokenStateConfig:
    return TokenStateConfig(default=default_appearance_for(token))


# =============================================================================
# JSON IMPORT / EXPORT
# =============================================================================


def export_config_json(config: TokenStateConfig) -> str:
    return json.dumps(config.to_document(), indent=2)


def _load_json(text: Any, label: str) -> Any:
    try:
        return json.loads(str(text))
    except json.JSONDecodeError as e:
        raise ConfigValidationError(
            f"{label} is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})"
        ) from e


def validate_config_json(text: Any) -> Optional[TokenStateConfig]:
    """
    Parse authored config JSON.

    Returns None for an empty string (meaning "clear the config").
    Raises ConfigValidationError for malformed JSON or a non-object top level.
    """
    if text == "":
        return None
    parsed = _load_json(text, "Token state config")
    if not isinstance(parsed, dict):
        raise ConfigValidationError("Token state config must be a JSON object")
    try:
        return normalize_config(parsed)
    except ValidationError as e:
        raise ConfigValidationError(f"Token state config is invalid: {e}") from e


def validate_rules_json(text: Any) -> Optional[List[Dict[str, Any]]]:
    """Parse legacy rules JSON, which must be an array of rule objects."""
    if text == "":
        return None
    parsed = _load_json(text, "Rules")
    if not isinstance(parsed, list):
        raise ConfigValidationError("Rules must be an array")
    try:
        return [LegacyRule.model_validate(rule).model_dump(mode="json") for rule in parsed]
    except ValidationError as e:
        raise ConfigValidationError(f"Rules are invalid: {e}") from e


# =============================================================================
# SERVICE
# =============================================================================


@dataclass
class ActorTokens:
    """Placed tokens of one actor, split by whether they carry a config."""

    scenes: List[SceneDocument] = field(default_factory=list)
    configured_scenes: List[SceneDocument] = field(default_factory=list)
    tokens: List[TokenDocument] = field(default_factory=list)
    configured_tokens: List[TokenDocument] = field(default_factory=list)


def _config_flag_patch(value: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    # Delete before set so the new config replaces the stored one instead of merging into it
    flags: Dict[str, Any] = {f"-={CONFIG_FLAG}": None}
    if value is not None:
        flags[CONFIG_FLAG] = value
    return {"flags": {MODULE_ID: flags}}


class ConfigService:
    def __init__(self, store: DocumentStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier

    # --- Tokens ---

    def _require_token(self, scene_id: str, token_id: str) -> TokenDocument:
        token = self.store.get_token(scene_id, token_id)
        if token is None:
            raise MissingDocumentError("Token", token_id)
        return token

    def get_config(self, scene_id: str, token_id: str) -> Optional[TokenStateConfig]:
        token = self._require_token(scene_id, token_id)
        return parse_stored_config(token.module_flags.get(CONFIG_FLAG))

    def set_config(self, scene_id: str, token_id: str, config: Optional[TokenStateConfig]):
        self._require_token(scene_id, token_id)
        document = config.to_document() if config is not None else None
        self.store.update_tokens(scene_id, [{"_id": token_id, **_config_flag_patch(document)}])
        logger.info(f"Stored token state config on token {token_id}")

    def remove_config(self, scene_id: str, token_id: str):
        self.set_config(scene_id, token_id, None)
        self.notifier.info("Successfully removed the config")

    def import_config_json(self, scene_id: str, token_id: str, text: str) -> bool:
        """Validate and store authored JSON. On failure the stored config is untouched."""
        try:
            config = validate_config_json(text)
        except ConfigValidationError as e:
            self.notifier.error(f"Invalid token state config JSON: {e}")
            return False
        self.set_config(scene_id, token_id, config)
        return True

    def import_rules_json(self, scene_id: str, token_id: str, text: str) -> bool:
        """Store legacy rules JSON (kept for old exports; see legacy_migration)."""
        try:
            rules = validate_rules_json(text)
        except ConfigValidationError as e:
            self.notifier.error(f"Invalid rules JSON: {e}")
            return False
        self._require_token(scene_id, token_id)
        patch = {"flags": {MODULE_ID: {LEGACY_RULES_FLAG: rules}}}
        if rules is None:
            patch = {"flags": {MODULE_ID: {f"-={LEGACY_RULES_FLAG}": None}}}
        self.store.update_tokens(scene_id, [{"_id": token_id, **patch}])
        return True

    # --- Prototype tokens ---

    def _require_actor(self, actor_id: str):
        actor = self.store.get_actor(actor_id)
        if actor is None:
            raise MissingDocumentError("Actor", actor_id)
        return actor

    def get_prototype_config(self, actor_id: str) -> Optional[TokenStateConfig]:
        actor = self._require_actor(actor_id)
        return parse_stored_config(actor.prototype_token.module_flags.get(CONFIG_FLAG))

    def set_prototype_config(self, actor_id: str, config: Optional[TokenStateConfig]):
        self._require_actor(actor_id)
        document = config.to_document() if config is not None else None
        self.store.update_actor(actor_id, {"prototypeToken": _config_flag_patch(document)})
        logger.info(f"Stored token state config on prototype of actor {actor_id}")

    def remove_prototype_config(self, actor_id: str):
        self.set_prototype_config(actor_id, None)
        self.notifier.info("Successfully removed the config")

    def import_prototype_config_json(self, actor_id: str, text: str) -> bool:
        try:
            config = validate_config_json(text)
        except ConfigValidationError as e:
            self.notifier.error(f"Invalid token state config JSON: {e}")
            return False
        self.set_prototype_config(actor_id, config)
        return True

    # --- Sync between prototype and placed tokens ---

    def sync_to_prototype(self, scene_id: str, token_id: str) -> bool:
        """Overwrite the actor's prototype config with this token's config."""
        token = self._require_token(scene_id, token_id)
        if token.actor is None:
            self.notifier.warn("Token has no actor; nothing to sync")
            return False
        config = parse_stored_config(token.module_flags.get(CONFIG_FLAG))
        self.set_prototype_config(token.actor.id, config)
        self.notifier.info("Successfully synced the token config to the prototype token")
        return True

    def sync_from_prototype(self, scene_id: str, token_id: str) -> bool:
        """Overwrite this token's config with its actor's prototype config."""
        token = self._require_token(scene_id, token_id)
        if token.actor is None:
            self.notifier.warn("Token has no actor; nothing to sync")
            return False
        config = parse_stored_config(token.actor.prototype_token.module_flags.get(CONFIG_FLAG))
        self.set_config(scene_id, token_id, config)
        self.notifier.info("Successfully synced the prototype token's config to the token")
        return True

    def find_actor_tokens(self, actor_id: str) -> ActorTokens:
        found = ActorTokens()
        for scene in self.store.list_scenes():
            tokens = [t for t in self.store.get_tokens(scene.id) if t.actor_id == actor_id]
            configured = [t for t in tokens if t.module_flags.get(CONFIG_FLAG)]
            if tokens:
                found.scenes.append(scene)
                found.tokens.extend(tokens)
            if configured:
                found.configured_scenes.append(scene)
                found.configured_tokens.extend(configured)
        return found

    def sync_prototype_to_tokens(self, actor_id: str, configured_only: bool = False) -> int:
        """
        Copy the prototype config onto the actor's placed tokens.

        With `configured_only`, tokens without a config are left alone.
        Returns the number of tokens updated.
        """
        actor = self._require_actor(actor_id)
        config = actor.prototype_token.module_flags.get(CONFIG_FLAG)
        if not config:
            self.notifier.warn("No flags present on the prototype.")
            return 0

        found = self.find_actor_tokens(actor_id)
        targets = found.configured_tokens if configured_only else found.tokens

        by_scene: Dict[str, List[Dict[str, Any]]] = {}
        for token in targets:
            by_scene.setdefault(token.scene_id, []).append(
                {"_id": token.id, **_config_flag_patch(config)}
            )

        updated = 0
        for scene_id, updates in by_scene.items():
            updated += len(self.store.update_tokens(scene_id, updates))

        self.notifier.info(f"Update {updated} token{'' if updated == 1 else 's'}")
        return updated
