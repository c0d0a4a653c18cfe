"""
events.py — Realtime wire format.
Every frame is a JSON envelope {"event": <name>, "data": <payload>}. Outbound
names form a closed enum and each one has exactly one payload builder below;
inbound frames are parsed into typed commands and anything else is rejected.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class OutboundEvent(str, Enum):
    GET_ONLINE_USERS = "getOnlineUsers"
    NEW_MESSAGE = "newMessage"
    MESSAGE_DELETED = "messageDeleted"
    USER_TYPING = "userTyping"
    FRIEND_REQUEST_RECEIVED = "friendRequestReceived"
    FRIEND_REQUEST_RESPONSE_RECEIVED = "friendRequestResponseReceived"
    FRIEND_REMOVED = "friendRemoved"
    USER_BLOCKED = "userBlocked"


class InboundEvent(str, Enum):
    SEND_MESSAGE = "sendMessage"
    TYPING = "typing"


def envelope(event: OutboundEvent, payload) -> dict:
    return {"event": OutboundEvent(event).value, "data": payload}


# ── Serializers shared by HTTP responses and event payloads ──────────
def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def public_profile(user) -> dict:
    return {
        "id": user.id,
        "fullName": user.full_name,
        "email": user.email,
        "profilePic": user.profile_pic or "",
    }


def message_payload(message) -> dict:
    """A persisted message as clients see it. Content of a message deleted for
    everyone is never exposed."""
    hidden = bool(message.delete_for_everyone)
    return {
        "id": message.id,
        "senderId": message.sender_id,
        "receiverId": message.receiver_id,
        "text": None if hidden else message.text,
        "image": None if hidden else message.image,
        "createdAt": _iso(message.created_at),
        "deletedFor": sorted(message.deleted_for),
        "deleteForEveryone": hidden,
    }


def friend_request_payload(request) -> dict:
    return {
        "id": request.id,
        "from": public_profile(request.sender),
        "status": request.status,
        "createdAt": _iso(request.created_at),
    }


# ── Outbound payload builders (one per OutboundEvent) ────────────────
def online_users(user_ids) -> list:
    return list(user_ids)


def message_deleted(message_id: int, delete_for_everyone: bool) -> dict:
    return {"messageId": message_id, "deleteForEveryone": bool(delete_for_everyone)}


def user_typing(sender_id: int, is_typing: bool) -> dict:
    return {"senderId": sender_id, "isTyping": bool(is_typing)}


def friend_request_received(request) -> dict:
    return {"request": friend_request_payload(request)}


def friend_request_response(responder, status: str, request_id: int) -> dict:
    return {"from": public_profile(responder), "status": status, "requestId": request_id}


def user_ref(user_id: int) -> dict:
    """Payload of friendRemoved / userBlocked."""
    return {"userId": user_id}


# ── Inbound commands ─────────────────────────────────────────────────
class SocketFrame(BaseModel):
    event: str
    data: dict = {}


class SendMessageCommand(BaseModel):
    receiverId: int
    senderId: Optional[int] = None
    id: Optional[int] = None  # set when relaying a message already persisted over HTTP
    text: Optional[str] = None
    image: Optional[str] = None


class TypingCommand(BaseModel):
    receiverId: int
    isTyping: bool = False


COMMANDS = {
    InboundEvent.SEND_MESSAGE: SendMessageCommand,
    InboundEvent.TYPING: TypingCommand,
}


class UnknownEvent(ValueError):
    pass


def parse_frame(raw) -> tuple[InboundEvent, BaseModel]:
    """Decode one inbound frame into (event, command).

    Raises UnknownEvent for names outside InboundEvent and
    pydantic.ValidationError for malformed envelopes or payloads.
    """
    frame = SocketFrame.model_validate(raw)
    try:
        event = InboundEvent(frame.event)
    except ValueError:
        raise UnknownEvent(frame.event) from None
    return event, COMMANDS[event].model_validate(frame.data)
