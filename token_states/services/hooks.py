"""
Lifecycle hooks.

`HookBus` is the event emitter the host adapter publishes lifecycle events on.
Every registration returns a `Subscription` handle; a `HookSet` groups the
handles owned by one lifecycle so they can be disposed together (e.g. on
reload) instead of living in a process-wide registry.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from token_states.constants import SOCKET_EVENT
from token_states.engine.projector import project_token_state
from token_states.models.documents import (
    ActorDocument,
    CombatantDocument,
    CombatDocument,
    TokenDocument,
)
from token_states.models.token_state import TokenState
from token_states.services.authority_gateway import AuthorityGateway
from token_states.services.collaborators import DocumentStore

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


# =============================================================================
# BUS & SUBSCRIPTIONS
# =============================================================================


@dataclass(eq=False)
class Subscription:
    bus: "HookBus"
    event: str
    handler: Handler
    once: bool = False
    active: bool = True

    def dispose(self):
        """Unsubscribe. Safe to call more than once."""
        if self.active:
            self.active = False
            self.bus._remove(self)


class HookBus:
    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def on(self, event: str, handler: Handler) -> Subscription:
        return self._add(Subscription(self, event, handler))

    def once(self, event: str, handler: Handler) -> Subscription:
        return self._add(Subscription(self, event, handler, once=True))

    def _add(self, subscription: Subscription) -> Subscription:
        self._subscriptions.setdefault(subscription.event, []).append(subscription)
        return subscription

    def _remove(self, subscription: Subscription):
        subscribers = self._subscriptions.get(subscription.event, [])
        if subscription in subscribers:
            subscribers.remove(subscription)

    def subscriber_count(self, event: str) -> int:
        return len(self._subscriptions.get(event, []))

    async def emit(self, event: str, *args, **kwargs) -> List[Any]:
        """
        Run every handler of `event` in registration order, awaiting async ones.

        A failing handler is logged and does not stop the others.
        """
        results = []
        for subscription in list(self._subscriptions.get(event, [])):
            if subscription.once:
                subscription.dispose()
            try:
                result = subscription.handler(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
                results.append(result)
            except Exception as e:
                logger.error(f"Hook handler for '{event}' failed: {e}", exc_info=True)
        return results


class HookSet:
    """Subscriptions owned by one lifecycle."""

    def __init__(self, bus: HookBus):
        self.bus = bus
        self.subscriptions: List[Subscription] = []

    def on(self, event: str, handler: Handler) -> Subscription:
        subscription = self.bus.on(event, handler)
        self.subscriptions.append(subscription)
        return subscription

    def once(self, event: str, handler: Handler) -> Subscription:
        subscription = self.bus.once(event, handler)
        self.subscriptions.append(subscription)
        return subscription

    def dispose(self):
        for subscription in self.subscriptions:
            subscription.dispose()
        self.subscriptions.clear()


# =============================================================================
# TOKEN STATE HOOKS
# =============================================================================


class TokenStateHooks:
    """Translates host lifecycle events into gateway calls."""

    def __init__(self, gateway: AuthorityGateway, store: DocumentStore):
        self.gateway = gateway
        self.store = store

    @property
    def view(self):
        return self.gateway.view

    def _previous(
        self, tokens: Iterable[TokenDocument], change: Callable[[TokenState], TokenState]
    ) -> Dict[str, TokenState]:
        """Synthesize the pre-event state of each token from its current state."""
        previous = {}
        for token in tokens:
            current = project_token_state(token)
            if current is not None:
                previous[token.id] = change(current)
        return previous

    def _scene_tokens(self, token_ids: Iterable[Optional[str]], scene_id: Optional[str] = None):
        scene_id = scene_id or self.view.scene_id
        ids = [token_id for token_id in token_ids if token_id]
        if not scene_id or not ids:
            return []
        return self.store.get_tokens(scene_id, ids)

    async def on_create_token(self, token: TokenDocument):
        return await self.gateway.apply(self._scene_tokens([token.id], token.scene_id))

    async def on_update_actor(
        self, actor: ActorDocument, changes: Optional[dict] = None, options: Optional[dict] = None
    ):
        if not self.view.scene_id:
            return None
        tokens = [t for t in self.store.get_tokens(self.view.scene_id) if t.actor_id == actor.id]

        damage = (options or {}).get("damageTaken")
        previous = None
        if isinstance(damage, (int, float)) and not isinstance(damage, bool):
            previous = self._previous(tokens, lambda s: s.with_changes(hp=s.hp + damage))
        return await self.gateway.apply(tokens, previous_states=previous)

    async def on_combat(self, combat: CombatDocument):
        tokens = self._scene_tokens((c.token_id for c in combat.combatants), combat.scene_id)
        return await self.gateway.apply(tokens)

    async def on_create_combatant(self, combatant: CombatantDocument):
        tokens = self._scene_tokens([combatant.token_id], combatant.scene_id)
        previous = self._previous(tokens, lambda s: s.with_changes(in_combat=False))
        return await self.gateway.apply(tokens, previous_states=previous)

    async def on_update_combatant(self, combatant: CombatantDocument):
        tokens = self._scene_tokens([combatant.token_id], combatant.scene_id)
        return await self.gateway.apply(tokens)

    async def on_delete_combatant(self, combatant: CombatantDocument):
        tokens = self._scene_tokens([combatant.token_id], combatant.scene_id)
        previous = self._previous(tokens, lambda s: s.with_changes(in_combat=True))
        return await self.gateway.apply(tokens, previous_states=previous)

    async def on_status_effect(self, token: TokenDocument, status: str, active: bool = True):
        """Before the toggle the status was absent if it is now active, and present if not."""
        tokens = self._scene_tokens([token.id], token.scene_id)
        if active:
            previous = self._previous(tokens, lambda s: s.without_condition(status))
        else:
            previous = self._previous(tokens, lambda s: s.with_condition(status))
        return await self.gateway.apply(tokens, previous_states=previous)

    async def on_canvas_ready(self, scene_id: str):
        """Full resynchronization of the scene now on screen."""
        tokens = self.store.get_tokens(scene_id)
        self.view.scene_id = scene_id
        self.view.token_ids = {token.id for token in tokens}
        suppress = self.gateway.settings.suppress_sounds_on_resync
        return await self.gateway.apply(tokens, suppress_sounds=suppress, resync=True)

    async def on_socket(self, payload: Any):
        return await self.gateway.handle_forward_request(payload)


def register_token_state_hooks(
    bus: HookBus, gateway: AuthorityGateway, store: DocumentStore
) -> HookSet:
    """Wire every lifecycle event the engine reacts to. Dispose the returned set to undo."""
    hooks = TokenStateHooks(gateway, store)
    subscriptions = HookSet(bus)

    if gateway.is_privileged:
        subscriptions.on(SOCKET_EVENT, hooks.on_socket)

    subscriptions.on("createToken", hooks.on_create_token)
    subscriptions.on("updateActor", hooks.on_update_actor)

    subscriptions.on("createCombat", hooks.on_combat)
    subscriptions.on("updateCombat", hooks.on_combat)
    subscriptions.on("deleteCombat", hooks.on_combat)

    subscriptions.on("createCombatant", hooks.on_create_combatant)
    subscriptions.on("updateCombatant", hooks.on_update_combatant)
    subscriptions.on("deleteCombatant", hooks.on_delete_combatant)

    subscriptions.on("applyTokenStatusEffect", hooks.on_status_effect)
    subscriptions.on("canvasReady", hooks.on_canvas_ready)

    logger.info(f"Registered {len(subscriptions.subscriptions)} token state hooks")
    return subscriptions
