import asyncio
import copy

import pytest

from token_states.config import Role, Settings
from token_states.models.token_state import TokenState
from token_states.services.authority_gateway import Applied, AuthorityGateway, Forwarded
from token_states.services.collaborators import LocalView

from factories import BLOODIED_CONFIG, RecordingChannel, make_actor, make_token

SOUND_CONFIG = dict(
    copy.deepcopy(BLOODIED_CONFIG),
    sounds=[
        {"id": "hurt", "ruleId": "bloodied", "src": "ouch.ogg", "volume": 0.6},
        {"id": "fight", "trigger": {"type": "in-combat", "value": True}, "src": "drums.ogg"},
    ],
)


@pytest.fixture
def bloodied(seed):
    actor = make_actor(hp=5, max_hp=20)
    seed(actor, make_token(actor=actor, config=SOUND_CONFIG, in_combat=True))
    return actor


@pytest.fixture
def gateway(privileged_settings, store, channel, audio):
    return AuthorityGateway(privileged_settings, store, channel, audio)


@pytest.fixture
def player_gateway(player_settings, store, channel, audio):
    view = LocalView(scene_id="scene-1", token_ids={"token-1"})
    return AuthorityGateway(player_settings, store, channel, audio, view)


def test_privileged_apply_writes_and_plays(gateway, store, audio, channel, bloodied):
    previous = {"token-1": TokenState(hp=20, max_hp=20, in_combat=False)}
    result = asyncio.run(gateway.apply(store.get_tokens("scene-1"), previous_states=previous))

    assert isinstance(result, Applied)
    assert result.written == {"scene-1": ["token-1"]}
    assert store.get_token("scene-1", "token-1").texture.src == "bloodied.png"
    assert [(sound.src, sound.volume, broadcast) for sound, broadcast in audio.played] == [
        ("drums.ogg", 0.8, True),
        ("ouch.ogg", 0.6, True),
    ]
    assert channel.payloads == []


def test_shared_sound_is_dispatched_once(gateway, store, audio, seed, bloodied):
    seed(bloodied, make_token("token-2", actor=bloodied, config=SOUND_CONFIG))
    asyncio.run(gateway.apply(store.get_tokens("scene-1")))
    assert audio.sources == ["ouch.ogg"]


def test_suppressed_sounds_still_persist(gateway, store, audio, bloodied):
    result = asyncio.run(gateway.apply(store.get_tokens("scene-1"), suppress_sounds=True))

    assert result.sounds == []
    assert audio.played == []
    assert store.get_token("scene-1", "token-1").module_flags["state"] == "bloodied"


def test_missing_scene_is_skipped(gateway, store, audio, bloodied):
    stray = make_token("stray", "scene-gone", actor=bloodied, config=SOUND_CONFIG)
    result = asyncio.run(gateway.apply([stray] + store.get_tokens("scene-1")))

    assert sorted(result.updates_by_scene) == ["scene-1", "scene-gone"]
    assert result.written == {"scene-1": ["token-1"]}


def test_non_privileged_forwards_known_tokens_only(player_gateway, store, channel, audio, seed, bloodied):
    seed(bloodied, make_token("token-2", actor=bloodied, config=SOUND_CONFIG))
    result = asyncio.run(player_gateway.apply(store.get_tokens("scene-1"), resync=True))

    assert isinstance(result, Forwarded)
    assert channel.payloads == [
        {"type": "applyState", "sceneId": "scene-1", "tokenIds": ["token-1"], "resync": True}
    ]
    assert "state" not in store.get_token("scene-1", "token-1").module_flags
    assert audio.played == []


def test_non_privileged_without_view_does_nothing(player_settings, store, channel, audio, bloodied):
    gateway = AuthorityGateway(player_settings, store, channel, audio)
    result = asyncio.run(gateway.apply(store.get_tokens("scene-1")))

    assert result == Forwarded(request=None)
    assert channel.payloads == []


def test_forward_failures_are_not_raised(player_settings, store, audio, bloodied):
    view = LocalView(scene_id="scene-1", token_ids={"token-1"})
    gateway = AuthorityGateway(player_settings, store, RecordingChannel(fail=True), audio, view)

    result = asyncio.run(gateway.apply(store.get_tokens("scene-1")))
    assert result.request.token_ids == ["token-1"]


# =============================================================================
# FORWARD REQUESTS
# =============================================================================


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "applyState",
        {"type": "applyState", "tokenIds": ["token-1"]},
        {"sceneId": "scene-1", "tokenIds": ["token-1"]},
        {"type": "applyState", "sceneId": "scene-1"},
        {"type": "applyState", "sceneId": 7, "tokenIds": ["token-1"]},
        {"type": "applyState", "sceneId": "scene-1", "tokenIds": "token-1"},
        {"type": "refresh", "sceneId": "scene-1", "tokenIds": ["token-1"]},
        {"type": "applyState", "sceneId": "scene-404", "tokenIds": ["token-1"]},
    ],
)
def test_malformed_or_unknown_requests_are_ignored(gateway, store, payload, bloodied):
    assert asyncio.run(gateway.handle_forward_request(payload)) is None
    assert "state" not in store.get_token("scene-1", "token-1").module_flags


def test_forward_request_is_applied(gateway, store, audio, bloodied):
    payload = {"type": "applyState", "sceneId": "scene-1", "tokenIds": ["token-1"]}
    result = asyncio.run(gateway.handle_forward_request(payload))

    assert result.written == {"scene-1": ["token-1"]}
    assert audio.sources == ["ouch.ogg"]


def test_resync_request_suppresses_sounds_by_default(gateway, audio, bloodied):
    payload = {"type": "applyState", "sceneId": "scene-1", "tokenIds": ["token-1"], "resync": True}
    result = asyncio.run(gateway.handle_forward_request(payload))

    assert result.written == {"scene-1": ["token-1"]}
    assert audio.played == []


def test_resync_replay_when_configured(store, channel, audio, bloodied):
    settings = Settings(role=Role.PRIVILEGED, suppress_sounds_on_resync=False, broadcast_sounds=False)
    gateway = AuthorityGateway(settings, store, channel, audio)
    payload = {"type": "applyState", "sceneId": "scene-1", "tokenIds": ["token-1"], "resync": True}

    asyncio.run(gateway.handle_forward_request(payload))
    assert [(sound.src, broadcast) for sound, broadcast in audio.played] == [("ouch.ogg", False)]


def test_non_privileged_ignores_requests(player_gateway, bloodied):
    payload = {"type": "applyState", "sceneId": "scene-1", "tokenIds": ["token-1"]}
    assert asyncio.run(player_gateway.handle_forward_request(payload)) is None
