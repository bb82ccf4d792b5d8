"""Document builders and recording collaborators shared by the tests."""

from token_states.models.documents import ActorDocument, TokenDocument
from token_states.services.collaborators import AudioDispatcher, ForwardChannel, Notifier

BLOODIED_CONFIG = {
    "version": 1,
    "default": {"image": "full.png", "scale": 1},
    "tokenStates": [
        {
            "id": "bloodied",
            "name": "Bloodied",
            "conditions": [{"type": "hp-percent", "operator": "<=", "value": 0.5}],
            "image": "bloodied.png",
            "scale": 1,
        }
    ],
    "sounds": [],
}


# Recording collaborators
class RecordingChannel(ForwardChannel):
    def __init__(self, fail: bool = False):
        self.payloads = []
        self.fail = fail

    def emit(self, payload):
        if self.fail:
            raise ConnectionError("socket closed")
        self.payloads.append(payload)


class RecordingAudio(AudioDispatcher):
    def __init__(self):
        self.played = []

    def play(self, sound, broadcast=False):
        self.played.append((sound, broadcast))

    @property
    def sources(self):
        return [sound.src for sound, _ in self.played]


class RecordingNotifier(Notifier):
    def __init__(self):
        self.messages = []

    def info(self, message):
        self.messages.append(("info", message))

    def warn(self, message):
        self.messages.append(("warn", message))

    def error(self, message):
        self.messages.append(("error", message))

    def of_level(self, level):
        return [message for lvl, message in self.messages if lvl == level]


def make_actor(actor_id="actor-1", hp=20, max_hp=20, conditions=(), **extra) -> ActorDocument:
    return ActorDocument(
        id=actor_id,
        name=actor_id,
        system={"attributes": {"hp": {"value": hp, "max": max_hp}}},
        conditions=list(conditions),
        **extra,
    )


def make_token(
    token_id="token-1",
    scene_id="scene-1",
    actor=None,
    config=None,
    module_flags=None,
    image="orig.png",
    ring=False,
    in_combat=False,
) -> TokenDocument:
    flags = dict(module_flags or {})
    if config is not None:
        flags["config"] = config
    data = {
        "id": token_id,
        "sceneId": scene_id,
        "actorId": actor.id if actor else None,
        "inCombat": in_combat,
        "texture": {"src": image, "scaleX": 1, "scaleY": 1},
        "ring": {"enabled": ring, "subject": {"texture": image if ring else None, "scale": 1}},
        "flags": {"token-states": flags} if flags else {},
    }
    token = TokenDocument.model_validate(data)
    token.actor = actor
    return token


