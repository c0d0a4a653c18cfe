"""
socket_dispatcher.py — Turns inbound socket frames into coordinator calls.
Each frame maps to exactly one MessageService method. Every frame gets its own
short-lived database session so it sees the current relationship state.
"""

import json
import logging

from pydantic import ValidationError

from services.errors import ChatError, Internal
from services.events import InboundEvent, UnknownEvent, parse_frame
from services.message_service import MessageService
from services.store import ChatStore

logger = logging.getLogger(__name__)


class SocketDispatcher:
    def __init__(self, router, session_factory, uploader=None):
        self.router = router
        self.session_factory = session_factory
        self.uploader = uploader

    async def handle(self, connection, raw: str) -> bool:
        """Process one frame from `connection`. Returns False when it was dropped."""
        try:
            event, command = parse_frame(json.loads(raw))
        except UnknownEvent as e:
            logger.warning(f"Ignoring unknown socket event {e} from user {connection.user_id}")
            return False
        except (ValueError, ValidationError) as e:
            logger.warning(f"Ignoring malformed socket frame from user {connection.user_id}: {e}")
            return False

        db = self.session_factory()
        try:
            service = MessageService(ChatStore(db), self.router, self.uploader)
            if event is InboundEvent.SEND_MESSAGE:
                await service.relay_message(connection.user_id, command)
            elif event is InboundEvent.TYPING:
                await service.typing(connection.user_id, command.receiverId, command.isTyping)
            return True
        except Internal as e:
            logger.error(f"Socket {event.value} from user {connection.user_id} failed: {e}")
            return False
        except ChatError as e:
            logger.info(f"Denied socket {event.value} from user {connection.user_id}: {e.detail}")
            return False
        finally:
            db.close()
