"""
Rule Resolver
=============
Selects the appearance for a token state and the sound cues fired by a
transition.

Appearance is level-triggered: first rule in authored order whose conditions
all hold, else the configured default. Sounds are edge-triggered on their
`trigger` and gated (level-triggered) by their extra `conditions`.
"""

from typing import Iterable, List, Optional, Sequence, Union

from token_states.engine.conditions import evaluate, evaluate_all
from token_states.models.config import AppearanceRule, DefaultAppearance, SoundRule
from token_states.models.token_state import TokenState


def resolve_appearance(
    rules: Sequence[AppearanceRule],
    default: DefaultAppearance,
    state: TokenState,
) -> Union[AppearanceRule, DefaultAppearance]:
    """First matching rule wins; position is the only priority."""
    for rule in rules:
        if evaluate_all(rule.conditions, state):
            return rule
    return default


def resolve_sounds(
    sounds: Iterable[SoundRule],
    current: TokenState,
    previous: TokenState,
) -> List[SoundRule]:
    """
    Sound rules whose trigger rose from false to true.

    Rule-entry sounds (those carrying `rule_id`) are handled by
    `resolve_rule_entry_sounds` and never fire here.
    """
    fired = []
    for sound in sounds:
        if sound.trigger is None or sound.rule_id:
            continue
        if (
            evaluate(sound.trigger, current)
            and not evaluate(sound.trigger, previous)
            and evaluate_all(sound.conditions, current)
        ):
            fired.append(sound)
    return fired


def resolve_rule_entry_sounds(
    sounds: Iterable[SoundRule],
    matched_rule_id: Optional[str],
    previous_rule_id: Optional[str],
    current: TokenState,
) -> List[SoundRule]:
    """
    Sounds tied to entering an appearance rule.

    The remembered `state` marker stands in for the previous state: a sound
    fires when the matched rule is its `rule_id` and the marker said otherwise.
    """
    if matched_rule_id is None or matched_rule_id == previous_rule_id:
        return []
    return [
        sound
        for sound in sounds
        if sound.rule_id == matched_rule_id and evaluate_all(sound.conditions, current)
    ]


def dedupe_sounds(sounds: Iterable[SoundRule]) -> List[SoundRule]:
    """Drop repeated `src` values, keeping the first occurrence and order."""
    seen = set()
    unique = []
    for sound in sounds:
        if sound.src in seen:
            continue
        seen.add(sound.src)
        unique.append(sound)
    return unique
