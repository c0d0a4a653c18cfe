"""
event_router.py — Pushes realtime events to connected users.
Delivery is fire-and-forget: an offline recipient is simply skipped, nothing
is queued and nothing is retried.
"""

import asyncio
import logging

from services import events
from services.events import OutboundEvent
from services.presence import PresenceMap

logger = logging.getLogger(__name__)


class EventRouter:
    def __init__(self, presence: PresenceMap | None = None):
        self.presence = presence or PresenceMap()
        # Orders presence mutations and numbers their snapshots; sends happen outside it
        self._online_lock = asyncio.Lock()
        self._snapshot_seq = 0
        self._snapshot_seen = {}

    # ------------------------------------------------------------------
    async def emit(self, user_id: int, event: OutboundEvent, payload) -> bool:
        """Deliver to the user's live connection. False when the user is offline."""
        connection = self.presence.lookup(user_id)
        if connection is None:
            return False
        return await connection.send(events.envelope(event, payload))

    async def emit_many(self, user_ids, event: OutboundEvent, payload) -> int:
        """Deliver once per distinct live connection among `user_ids`."""
        frame = events.envelope(event, payload)
        targets = []
        for user_id in user_ids:
            connection = self.presence.lookup(user_id)
            if connection is not None and all(connection is not t for t in targets):
                targets.append(connection)
        results = await asyncio.gather(*(c.send(frame) for c in targets))
        return sum(1 for ok in results if ok)

    async def broadcast(self, event: OutboundEvent, payload) -> int:
        frame = events.envelope(event, payload)
        results = await asyncio.gather(*(c.send(frame) for c in self.presence.connections()))
        return sum(1 for ok in results if ok)

    # ------------------------------------------------------------------
    async def connect(self, user_id: int, connection) -> None:
        async with self._online_lock:
            await self.presence.register(user_id, connection)
            logger.info(f"User {user_id} connected ({len(self.presence)} online)")
            snapshot = self._online_snapshot()
        await self._deliver_snapshot(*snapshot)

    async def disconnect(self, user_id: int, connection) -> None:
        async with self._online_lock:
            self._snapshot_seen.pop(connection, None)
            removed = await self.presence.unregister(user_id, connection)
            if not removed:
                logger.info(f"Stale disconnect for user {user_id} ignored")
                return
            logger.info(f"User {user_id} disconnected ({len(self.presence)} online)")
            snapshot = self._online_snapshot()
        await self._deliver_snapshot(*snapshot)

    def _online_snapshot(self):
        """Number the current online list and capture its recipients. Call with the lock held."""
        self._snapshot_seq += 1
        frame = events.envelope(
            OutboundEvent.GET_ONLINE_USERS,
            events.online_users(self.presence.list_online_ids()),
        )
        return self._snapshot_seq, frame, self.presence.connections()

    async def _deliver_snapshot(self, seq: int, frame: dict, targets) -> int:
        results = await asyncio.gather(*(self._send_snapshot(c, seq, frame) for c in targets))
        return sum(1 for ok in results if ok)

    async def _send_snapshot(self, connection, seq: int, frame: dict) -> bool:
        if self.presence.lookup(connection.user_id) is not connection:
            return False
        # A connection never gets an older snapshot after a newer one
        if self._snapshot_seen.get(connection, 0) > seq:
            return False
        self._snapshot_seen[connection] = seq
        return await connection.send(frame)


# Process-wide router; the presence map lives and dies with this process
event_router = EventRouter()


def get_event_router() -> EventRouter:
    return event_router
