import json

import pytest

from token_states.exceptions import ConfigValidationError, MissingDocumentError
from token_states.models.conditions import HpPercentCondition, InCombatCondition, StatusEffectCondition
from token_states.models.config import TokenStateConfig
from token_states.models.documents import SceneDocument
from token_states.services.config_service import (
    ConfigService,
    create_default_config,
    export_config_json,
    normalize_config,
    validate_config_json,
    validate_rules_json,
)

from factories import BLOODIED_CONFIG, make_actor, make_token


@pytest.fixture
def service(store, notifier):
    return ConfigService(store, notifier)


@pytest.fixture
def configured(seed):
    seed(make_actor(), make_token(actor=make_actor(), config=BLOODIED_CONFIG))
    return "scene-1", "token-1"


# =============================================================================
# NORMALIZATION
# =============================================================================


def test_normalize_fills_defaults_and_clamps():
    config = normalize_config(
        {
            "default": {"image": "full.png", "scale": 9},
            "tokenStates": [
                {"name": "Low", "condition": {"type": "hp-percent", "operator": "≈", "value": 4}, "scale": 0}
            ],
            "sounds": [{"id": "s", "src": "x.ogg", "volume": "loud"}],
        }
    )

    assert config.default.scale == 3.0
    rule = config.token_states[0]
    assert rule.id
    assert rule.scale == 0.1
    assert rule.conditions == [HpPercentCondition(operator="<=", value=1.0)]

    sound = config.sounds[0]
    assert sound.volume == 0.8
    assert sound.trigger == InCombatCondition(value=True)


def test_normalize_status_effect_operator_and_values():
    config = normalize_config(
        {
            "tokenStates": [
                {
                    "id": "r",
                    "conditions": [
                        {"type": "status-effect", "operator": "some-of", "value": [" poisoned ", "", "prone"]}
                    ],
                }
            ]
        }
    )
    assert config.token_states[0].conditions == [
        StatusEffectCondition(operator="any-of", value=["poisoned", "prone"])
    ]


def test_normalize_garbage_gives_empty_config():
    assert normalize_config("nope") == TokenStateConfig()


# =============================================================================
# JSON
# =============================================================================


def test_validate_config_json_empty_clears():
    assert validate_config_json("") is None


def test_validate_config_json_reports_syntax_errors():
    with pytest.raises(ConfigValidationError) as error:
        validate_config_json('{"tokenStates": [}')
    assert "not valid JSON" in str(error.value)
    assert "line 1" in str(error.value)


def test_validate_config_json_requires_an_object():
    with pytest.raises(ConfigValidationError, match="must be a JSON object"):
        validate_config_json("[]")


def test_export_then_validate_keeps_the_config():
    config = TokenStateConfig.model_validate(BLOODIED_CONFIG)
    text = export_config_json(config)

    assert json.loads(text)["tokenStates"][0]["image"] == "bloodied.png"
    assert validate_config_json(text) == config


def test_validate_rules_json_requires_an_array():
    with pytest.raises(ConfigValidationError, match="must be an array"):
        validate_rules_json('{"id": "r"}')
    assert validate_rules_json('[{"id": "r", "triggers": [], "effects": []}]') == [
        {"id": "r", "triggers": [], "effects": []}
    ]


# =============================================================================
# TOKEN CONFIGS
# =============================================================================


def test_create_default_config_uses_current_image():
    token = make_token(image="hero.png")
    assert create_default_config(token).default.image == "hero.png"


def test_get_and_replace_config(service, configured):
    assert service.get_config(*configured).token_states[0].id == "bloodied"

    replacement = TokenStateConfig.model_validate({"default": {"image": "other.png"}})
    service.set_config(*configured, replacement)

    stored = service.get_config(*configured)
    assert stored.token_states == []
    assert stored.default.image == "other.png"


def test_remove_config(service, store, notifier, configured):
    service.remove_config(*configured)

    assert "config" not in store.get_token(*configured).module_flags
    assert notifier.of_level("info") == ["Successfully removed the config"]


def test_invalid_json_import_leaves_config_untouched(service, notifier, configured):
    assert service.import_config_json(*configured, "{broken") is False

    assert service.get_config(*configured).token_states[0].image == "bloodied.png"
    assert notifier.of_level("error")[0].startswith("Invalid token state config JSON")


def test_json_import_stores_normalized_config(service, configured):
    text = json.dumps({"tokenStates": [{"id": "r", "conditions": [], "image": "x.png"}]})
    assert service.import_config_json(*configured, text) is True
    assert service.get_config(*configured).token_states[0].image == "x.png"


def test_missing_token_raises(service, scene):
    with pytest.raises(MissingDocumentError):
        service.get_config("scene-1", "nobody")


# =============================================================================
# PROTOTYPE SYNC
# =============================================================================


def test_sync_to_and_from_prototype(service, configured):
    assert service.sync_to_prototype(*configured) is True
    assert service.get_prototype_config("actor-1").token_states[0].id == "bloodied"

    service.remove_config(*configured)
    assert service.sync_from_prototype(*configured) is True
    assert service.get_config(*configured).token_states[0].id == "bloodied"


def test_sync_prototype_to_tokens(service, db, seed, notifier):
    actor = make_actor()
    seed(actor, make_token("configured", actor=actor, config={"default": {"image": "old.png"}}))
    seed(actor, make_token("bare", actor=actor))
    db.scenes.create(SceneDocument(id="scene-2"))
    db.tokens.save(make_token("elsewhere", "scene-2", actor=actor))
    db.tokens.save(make_token("stranger", "scene-2", actor=make_actor("actor-2")))
    service.set_prototype_config("actor-1", TokenStateConfig.model_validate(BLOODIED_CONFIG))

    found = service.find_actor_tokens("actor-1")
    assert sorted(t.id for t in found.tokens) == ["bare", "configured", "elsewhere"]
    assert [s.id for s in found.configured_scenes] == ["scene-1"]

    assert service.sync_prototype_to_tokens("actor-1", configured_only=True) == 1
    assert service.get_config("scene-1", "bare") is None

    assert service.sync_prototype_to_tokens("actor-1") == 3
    assert service.get_config("scene-2", "elsewhere").token_states[0].id == "bloodied"
    assert notifier.of_level("info")[-1] == "Update 3 tokens"


def test_sync_prototype_without_config_warns(service, seed, notifier):
    seed(make_actor(), make_token(actor=make_actor()))
    assert service.sync_prototype_to_tokens("actor-1") == 0
    assert notifier.of_level("warn") == ["No flags present on the prototype."]
