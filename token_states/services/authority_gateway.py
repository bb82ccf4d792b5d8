"""
Authority Gateway
=================
Single-writer arbitration in front of the Reconciliation Engine.

Only the privileged participant persists reconciliation results. Everyone
else forwards a request (scene id + token ids) over the channel and returns
without touching any document. The role is fixed for the session and checked
once, at the entry point.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from token_states.config import Role, Settings
from token_states.constants import APPLY_STATE_MESSAGE
from token_states.engine.reconciler import reconcile
from token_states.engine.resolver import dedupe_sounds
from token_states.exceptions import MissingDocumentError
from token_states.models.config import SoundRule
from token_states.models.documents import TokenDocument
from token_states.models.messages import ApplyStateRequest, SoundDescriptor
from token_states.models.token_state import TokenState
from token_states.services.collaborators import (
    AudioDispatcher,
    DocumentStore,
    ForwardChannel,
    LocalView,
)

logger = logging.getLogger(__name__)


@dataclass
class Applied:
    """Privileged path: what was written and which sounds were dispatched."""

    updates_by_scene: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    written: Dict[str, List[str]] = field(default_factory=dict)
    sounds: List[SoundRule] = field(default_factory=list)


@dataclass
class Forwarded:
    """Non-privileged path. `request` is None when there was no viewed scene."""

    request: Optional[ApplyStateRequest] = None


ApplyResult = Union[Applied, Forwarded]


class AuthorityGateway:
    def __init__(
        self,
        settings: Settings,
        store: DocumentStore,
        channel: ForwardChannel,
        audio: AudioDispatcher,
        view: Optional[LocalView] = None,
    ):
        self.settings = settings
        self.store = store
        self.channel = channel
        self.audio = audio
        self.view = view or LocalView()

    @property
    def is_privileged(self) -> bool:
        return self.settings.role == Role.PRIVILEGED

    async def apply(
        self,
        tokens: Iterable[Optional[TokenDocument]],
        previous_states: Optional[Mapping[str, TokenState]] = None,
        suppress_sounds: bool = False,
        resync: bool = False,
    ) -> ApplyResult:
        """
        Reconcile and persist (privileged) or forward (non-privileged).

        Args:
            tokens: Tokens touched by the triggering event. None entries are ignored.
            previous_states: token id -> state before the event, for trigger sounds.
            suppress_sounds: Persist but do not dispatch any sound.
            resync: Bulk re-evaluation (e.g. canvas load); forwarded along so the
                privileged side can apply its resync sound policy.
        """
        clean = [token for token in tokens if token is not None]
        if not self.is_privileged:
            return self._forward(clean, resync)

        result = reconcile(clean, previous_states)

        written: Dict[str, List[str]] = {}
        for scene_id, updates in result.updates_by_scene.items():
            if self.store.get_scene(scene_id) is None:
                logger.warning(f"Scene {scene_id} no longer exists; skipping {len(updates)} update(s)")
                continue
            try:
                written[scene_id] = await asyncio.to_thread(self.store.update_tokens, scene_id, updates)
            except MissingDocumentError as e:
                logger.warning(f"Skipping updates for scene {scene_id}: {e}")
            except sqlite3.Error as e:
                logger.error(f"Failed to write updates for scene {scene_id}: {e}", exc_info=True)

        sounds = dedupe_sounds(result.sounds_to_play)
        if suppress_sounds:
            if sounds:
                logger.debug(f"Suppressed {len(sounds)} sound(s)")
            sounds = []
        for sound in sounds:
            self.audio.play(
                SoundDescriptor(src=sound.src, volume=sound.volume),
                broadcast=self.settings.broadcast_sounds,
            )

        return Applied(updates_by_scene=result.updates_by_scene, written=written, sounds=sounds)

    def _forward(self, tokens: List[TokenDocument], resync: bool) -> Forwarded:
        if not self.view.scene_id:
            logger.debug("No scene in view; nothing to forward")
            return Forwarded()

        request = ApplyStateRequest(
            type=APPLY_STATE_MESSAGE,
            scene_id=self.view.scene_id,
            token_ids=[token.id for token in tokens if self.view.knows(token)],
            resync=resync,
        )
        try:
            self.channel.emit(request.to_payload())
        except Exception as e:
            # No ack or retry: the view stays stale until the next event
            logger.warning(f"Forward request for scene {request.scene_id} failed: {e}")
        return Forwarded(request=request)

    async def handle_forward_request(self, payload: Any) -> Optional[Applied]:
        """
        Entry point for requests arriving on the channel.

        Malformed payloads, unknown scenes and requests reaching a
        non-privileged participant are ignored.
        """
        if not self.is_privileged:
            return None
        try:
            request = ApplyStateRequest.model_validate(payload)
        except ValidationError:
            logger.debug(f"Ignoring malformed forward request: {payload!r}")
            return None

        if self.store.get_scene(request.scene_id) is None:
            logger.debug(f"Ignoring forward request for unknown scene {request.scene_id}")
            return None

        tokens = self.store.get_tokens(request.scene_id, request.token_ids)
        suppress = request.resync and self.settings.suppress_sounds_on_resync
        result = await self.apply(tokens, suppress_sounds=suppress)
        return result if isinstance(result, Applied) else None
