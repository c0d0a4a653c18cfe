"""
presence.py — Who is online right now.
Process-local map of user id -> live connection handle. It starts empty on
every boot and is never persisted; running several server processes would need
a shared presence store instead.
"""

import asyncio
import logging
import uuid

from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class Connection:
    """A live WebSocket bound to an authenticated user.

    Sends are serialized per connection so every peer receives its events in
    the order they were emitted.
    """

    def __init__(self, websocket, user_id: int):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self._send_lock = asyncio.Lock()

    async def send(self, frame: dict) -> bool:
        async with self._send_lock:
            if self.websocket.application_state != WebSocketState.CONNECTED:
                return False
            try:
                await self.websocket.send_json(frame)
                return True
            except Exception as e:  # peer gone mid-send
                logger.debug(f"Dropped {frame.get('event')} for user {self.user_id}: {e}")
                return False

    def __repr__(self):
        return f"<Connection(id={self.id[:8]}, user_id={self.user_id})>"


class PresenceMap:
    def __init__(self):
        self._connections: dict[int, Connection] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: int, connection) -> None:
        """Bind `user_id` to `connection`, replacing any previous binding.

        The replaced connection is left open; closing it is the transport's job.
        """
        async with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = connection
        if previous is not None and previous is not connection:
            logger.info(f"User {user_id} reconnected; superseding {previous!r}")

    async def unregister(self, user_id: int, connection) -> bool:
        """Drop the binding only if it still points at `connection`."""
        async with self._lock:
            if self._connections.get(user_id) is not connection:
                return False
            del self._connections[user_id]
            return True

    def lookup(self, user_id: int):
        return self._connections.get(user_id)

    def list_online_ids(self) -> list[int]:
        return list(self._connections)

    def connections(self) -> list:
        return list(self._connections.values())

    def __len__(self):
        return len(self._connections)

    def __contains__(self, user_id):
        return user_id in self._connections
