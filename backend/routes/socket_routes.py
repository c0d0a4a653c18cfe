import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from database import get_session_factory
from services.connection_auth import authenticate_connection
from services.errors import Internal, Unauthenticated
from services.event_router import EventRouter, get_event_router
from services.presence import Connection
from services.socket_dispatcher import SocketDispatcher
from services.store import ChatStore
from services.upload_service import ImageUploader, get_uploader

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def socket_endpoint(
    websocket: WebSocket,
    session_factory=Depends(get_session_factory),
    events: EventRouter = Depends(get_event_router),
    uploader: ImageUploader = Depends(get_uploader),
):
    """Realtime channel. The connection is refused unless it carries a valid token."""
    db = session_factory()
    try:
        user_id = authenticate_connection(websocket, ChatStore(db)).id
    except Unauthenticated as e:
        logger.info(f"Refused socket connection: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    except Internal:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return
    finally:
        db.close()

    await websocket.accept()
    connection = Connection(websocket, user_id)
    await events.connect(user_id, connection)

    dispatcher = SocketDispatcher(events, session_factory, uploader)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = message.get("text")
            if raw is None:
                logger.warning(f"Ignoring binary socket frame from user {user_id}")
                continue
            await dispatcher.handle(connection, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await events.disconnect(user_id, connection)
