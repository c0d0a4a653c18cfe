from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from typing import Optional

from auth import get_current_user
from services import events
from services.message_service import MessageService, get_message_service

router = APIRouter(prefix="/api/messages", tags=["Messages"])


# ── Pydantic schemas ──────────────────────────────────────────────
class SendMessageRequest(BaseModel):
    text: Optional[str] = None
    image: Optional[str] = None  # data URL or base64


class DeleteMessageRequest(BaseModel):
    deleteForEveryone: bool = False


# ── Routes ────────────────────────────────────────────────────────
@router.get("/users")
async def get_users_for_sidebar(
    current_user_id: int = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    """Friends the current user can chat with."""
    partners = await service.get_conversation_partners(current_user_id)
    return [events.public_profile(u) for u in partners]


@router.get("/{other_id}")
async def get_messages(
    other_id: int,
    current_user_id: int = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    """Get chat history with a specific friend, oldest first."""
    messages = await service.get_messages(current_user_id, other_id)
    return [events.message_payload(m) for m in messages]


@router.post("/send/{other_id}", status_code=status.HTTP_201_CREATED)
async def send_message(
    other_id: int,
    body: SendMessageRequest,
    current_user_id: int = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    """Send a message to a friend."""
    message = await service.send_message(current_user_id, other_id, body.text, body.image)
    return events.message_payload(message)


@router.delete("/{message_id}")
async def delete_message(
    message_id: int,
    body: Optional[DeleteMessageRequest] = None,
    current_user_id: int = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    """Hide a message for yourself, or (sender only) for everyone."""
    for_everyone = bool(body and body.deleteForEveryone)
    await service.delete_message(current_user_id, message_id, for_everyone)
    return {"message": "Message deleted for everyone" if for_everyone else "Message deleted for you"}
