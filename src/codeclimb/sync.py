from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from .types import Quest

logger = logging.getLogger(__name__)

QUEST_UPDATED = "quest-updated"
INBOUND_EVENTS = ("quest-update", "skill-progress-update", "rating-update")

Handler = Callable[[dict[str, Any]], Awaitable[None]]


class QuestEventHub:
    """In-process fan-out of quest events to whatever transport subscribes.

    Delivery failures are logged and do not undo the mutation that triggered
    them: by the time an event is emitted the quest is already saved.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event) or []
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: str, payload: dict[str, Any]) -> int:
        delivered = 0
        for handler in list(self._handlers.get(event) or []):
            try:
                await handler(payload)
                delivered += 1
            except Exception:
                logger.exception("event_delivery_failed event=%s", event)
        return delivered

    async def publish_quest(self, quest: Quest) -> int:
        return await self.emit(QUEST_UPDATED, quest.to_dict())

    async def receive(self, event: str, payload: dict[str, Any]) -> int:
        if event not in INBOUND_EVENTS:
            raise ValueError(f"unsupported inbound event: {event}")
        logger.info("inbound_event event=%s", event)
        return await self.emit(event, payload)


@dataclass
class ReconcileResult:
    state: str  # in_sync | local_newer | remote_newer | conflict
    differing_steps: list[str] = field(default_factory=list)


def reconcile(local: Quest, remote: Quest) -> ReconcileResult:
    """Compare a client's cached quest with the canonical copy.

    ``local.version`` is the version the client last loaded; a higher remote
    version means someone else saved since then.
    """
    if local.id != remote.id:
        raise ValueError("cannot reconcile different quests")
    local_steps = {s.id: s.is_completed for s in local.steps}
    remote_steps = {s.id: s.is_completed for s in remote.steps}
    differing = sorted(
        sid for sid in set(local_steps) | set(remote_steps)
        if local_steps.get(sid) != remote_steps.get(sid)
    )
    if not differing and local.status == remote.status:
        return ReconcileResult("in_sync")
    if remote.version <= local.version:
        return ReconcileResult("local_newer", differing)

    local_touched = (
        local.updated_at is not None
        and remote.updated_at is not None
        and local.updated_at > remote.updated_at
    )
    server_completed = remote.status == "COMPLETED" and local.status != "COMPLETED"
    if local_touched or (server_completed and differing):
        return ReconcileResult("conflict", differing)
    return ReconcileResult("remote_newer", differing)
