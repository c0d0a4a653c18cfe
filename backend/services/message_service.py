"""
message_service.py — Message lifecycle.
Every operation runs authorize -> persist -> route, and a rejected operation
raises before anything is written or pushed to a client.
"""

import logging

from fastapi import Depends
from starlette.concurrency import run_in_threadpool

from services import events
from services.errors import BadRequest, Forbidden, NotFound
from services.event_router import EventRouter, get_event_router
from services.events import OutboundEvent
from services.relationship_gate import RelationshipSnapshot, can_interact, check_can_message
from services.store import ChatStore, get_store
from services.upload_service import ImageUploader, get_uploader

logger = logging.getLogger(__name__)


class MessageService:
    def __init__(self, store: ChatStore, router: EventRouter, uploader=None):
        self.store = store
        self.router = router
        self.uploader = uploader

    # ------------------------------------------------------------------
    def _load_pair(self, self_id: int, other_id: int, missing: str = "User not found"):
        me = self.store.find_user_by_id(self_id)
        other = self.store.find_user_by_id(other_id)
        if me is None or other is None:
            raise NotFound(missing)
        return RelationshipSnapshot.of(me), RelationshipSnapshot.of(other)

    async def _route_new_message(self, message) -> None:
        # One emit per distinct connection: sender and receiver may share one.
        # Participants who hid the message are skipped.
        hidden = message.deleted_for
        await self.router.emit_many(
            [uid for uid in (message.receiver_id, message.sender_id) if uid not in hidden],
            OutboundEvent.NEW_MESSAGE,
            events.message_payload(message),
        )

    # ------------------------------------------------------------------
    async def send_message(self, sender_id: int, receiver_id: int,
                           text: str | None = None, image: str | None = None):
        text = (text or "").strip() or None
        if not text and not image:
            raise BadRequest("Message cannot be completely empty")

        sender, receiver = self._load_pair(sender_id, receiver_id, "Receiver not found")
        check_can_message(sender, receiver)

        image_url = None
        if image:
            if self.uploader is None:
                raise BadRequest("Image uploads are not available")
            uploaded = await run_in_threadpool(self.uploader.upload_image, image, f"messages/{sender_id}")
            image_url = uploaded["url"]

        message = self.store.insert_message(sender_id, receiver_id, text, image_url)
        await self._route_new_message(message)
        return message

    async def relay_message(self, sender_id: int, command):
        """Realtime `sendMessage`. Relays a message persisted over HTTP (when the
        command carries its id) or sends a new one, applying the same checks."""
        if command.senderId is not None and command.senderId != sender_id:
            raise Forbidden("Cannot send messages on behalf of another user")

        if command.id is None:
            return await self.send_message(sender_id, command.receiverId, command.text, command.image)

        message = self.store.find_message_by_id(command.id)
        if message is None:
            raise NotFound("Message not found")
        if message.sender_id != sender_id or message.receiver_id != command.receiverId:
            raise Forbidden("Not the sender of this message")
        if message.delete_for_everyone:
            raise BadRequest("Message was deleted")

        sender, receiver = self._load_pair(sender_id, message.receiver_id, "Receiver not found")
        check_can_message(sender, receiver)

        await self._route_new_message(message)
        return message

    async def get_messages(self, viewer_id: int, other_id: int) -> list:
        viewer, other = self._load_pair(viewer_id, other_id)
        check_can_message(viewer, other, blocked_detail="Cannot view messages with blocked user")
        return self.store.find_messages_between(viewer_id, other_id, viewer_id=viewer_id)

    async def get_conversation_partners(self, user_id: int) -> list:
        me = self.store.find_user_by_id(user_id)
        if me is None:
            raise NotFound("User not found")
        mine = RelationshipSnapshot.of(me)
        partners = []
        for user in self.store.find_conversation_partners(user_id):
            interaction = can_interact(mine, RelationshipSnapshot.of(user))
            if interaction.are_friends and not interaction.blocked:
                partners.append(user)
        return partners

    async def delete_message(self, requester_id: int, message_id: int, delete_for_everyone: bool = False):
        message = self.store.find_message_by_id(message_id)
        if message is None:
            raise NotFound("Message not found")

        is_sender = message.sender_id == requester_id
        is_receiver = message.receiver_id == requester_id
        if not is_sender and not is_receiver:
            raise Forbidden("Not authorized to delete this message")
        if delete_for_everyone and not is_sender:
            raise Forbidden("Only the sender can delete for everyone")

        if delete_for_everyone:
            message = self.store.update_message(message_id, {
                "delete_for_everyone": True,
                "deleted_for": [message.sender_id, message.receiver_id],
            })
            await self.router.emit_many(
                [message.receiver_id, message.sender_id],
                OutboundEvent.MESSAGE_DELETED,
                events.message_deleted(message_id, True),
            )
        else:
            message = self.store.update_message(message_id, {"deleted_for": [requester_id]})
            await self.router.emit(
                requester_id,
                OutboundEvent.MESSAGE_DELETED,
                events.message_deleted(message_id, False),
            )
        return message

    async def typing(self, sender_id: int, receiver_id: int, is_typing: bool) -> bool:
        """Forward a typing indicator. Silently dropped unless the pair may chat."""
        try:
            sender, receiver = self._load_pair(sender_id, receiver_id)
        except NotFound:
            return False
        interaction = can_interact(sender, receiver)
        if interaction.blocked or not interaction.are_friends:
            logger.info(f"Typing indicator {sender_id} -> {receiver_id} dropped")
            return False
        return await self.router.emit(
            receiver_id,
            OutboundEvent.USER_TYPING,
            events.user_typing(sender_id, is_typing),
        )


def get_message_service(
    store: ChatStore = Depends(get_store),
    router: EventRouter = Depends(get_event_router),
    uploader: ImageUploader = Depends(get_uploader),
) -> MessageService:
    return MessageService(store, router, uploader)
