"""
friend_service.py — Friend requests, friendships and blocks.
Both halves of a friendship are written with idempotent set operations, so a
call that failed between the two writes can be retried until both sides agree.
"""

import logging

from fastapi import Depends

from models.friend_request import PENDING, ACCEPTED, REJECTED
from services import events
from services.errors import BadRequest, Conflict, Forbidden, NotFound
from services.event_router import EventRouter, get_event_router
from services.events import OutboundEvent
from services.relationship_gate import RelationshipSnapshot, check_can_request, is_blocked
from services.store import ChatStore, get_store

logger = logging.getLogger(__name__)

ACTIONS = {"accept": ACCEPTED, "reject": REJECTED}


class FriendService:
    def __init__(self, store: ChatStore, router: EventRouter):
        self.store = store
        self.router = router

    def _user(self, user_id: int):
        user = self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def _link_friends(self, a: int, b: int) -> None:
        self.store.push_to_user_set(a, "friends", b)
        self.store.push_to_user_set(b, "friends", a)

    def _unlink_friends(self, a: int, b: int) -> None:
        self.store.pull_from_user_set(a, "friends", b)
        self.store.pull_from_user_set(b, "friends", a)

    # ------------------------------------------------------------------
    async def search(self, self_id: int, email_query: str) -> dict:
        if not email_query or not email_query.strip():
            raise BadRequest("Email query is required")
        me = RelationshipSnapshot.of(self._user(self_id))
        found = self.store.find_user_by_email_pattern(email_query, exclude_id=self_id)
        if found is None:
            raise NotFound("User not found")
        other = RelationshipSnapshot.of(found)
        if is_blocked(me, other):
            raise Forbidden("User is blocked")
        return {
            "user": events.public_profile(found),
            "isFriend": other.id in me.friends,
            "hasSentRequest": me.id in other.pending_from,
            "hasPendingRequest": other.id in me.pending_from,
        }

    async def send(self, from_id: int, to_id: int):
        sender_user = self._user(from_id)
        receiver_user = self._user(to_id)
        check_can_request(RelationshipSnapshot.of(sender_user), RelationshipSnapshot.of(receiver_user))

        request = self.store.add_friend_request(to_id, from_id)
        logger.info(f"Friend request {request.id}: {from_id} -> {to_id}")
        await self.router.emit(
            to_id,
            OutboundEvent.FRIEND_REQUEST_RECEIVED,
            events.friend_request_received(request),
        )
        return request

    async def respond(self, requester_id: int, request_id: int, action: str):
        status = ACTIONS.get(action)
        if status is None:
            raise BadRequest("Action must be 'accept' or 'reject'")

        me = self._user(requester_id)
        request = self.store.find_friend_request(requester_id, request_id)
        if request is None:
            raise NotFound("Friend request not found")
        if request.status != PENDING:
            raise Conflict("Request already handled")

        sender_id = request.from_user_id
        if status == ACCEPTED:
            sender = self.store.find_user_by_id(sender_id)
            if sender is None:
                raise NotFound("User not found")
            # Block state may have changed since the request was sent
            if is_blocked(RelationshipSnapshot.of(me), RelationshipSnapshot.of(sender)):
                raise Forbidden("Cannot accept request from blocked user")
            # Friends are linked before the status leaves pending
            self._link_friends(requester_id, sender_id)

        request = self.store.update_friend_request(request, status)
        logger.info(f"Friend request {request_id} {status} by {requester_id}")

        await self.router.emit(
            sender_id,
            OutboundEvent.FRIEND_REQUEST_RESPONSE_RECEIVED,
            events.friend_request_response(me, status, request_id),
        )
        return request

    async def list_pending(self, self_id: int) -> list:
        self._user(self_id)
        return self.store.find_pending_requests(self_id)

    async def remove(self, self_id: int, other_id: int) -> None:
        me = self._user(self_id)
        if other_id not in me.friend_ids:
            raise BadRequest("User is not in your friends list")
        self._unlink_friends(self_id, other_id)
        await self.router.emit(other_id, OutboundEvent.FRIEND_REMOVED, events.user_ref(self_id))

    async def block(self, self_id: int, other_id: int) -> None:
        if self_id == other_id:
            raise BadRequest("You cannot block yourself")
        me = self._user(self_id)
        other = self._user(other_id)
        if other_id in me.blocked_ids:
            raise BadRequest("User is already blocked")

        if other_id in me.friend_ids or self_id in other.friend_ids:
            self._unlink_friends(self_id, other_id)
        self.store.push_to_user_set(self_id, "blockedUsers", other_id)
        logger.info(f"User {self_id} blocked {other_id}")

        await self.router.emit(other_id, OutboundEvent.USER_BLOCKED, events.user_ref(self_id))

    async def unblock(self, self_id: int, other_id: int) -> None:
        me = self._user(self_id)
        if other_id not in me.blocked_ids:
            raise BadRequest("User is not blocked")
        self.store.pull_from_user_set(self_id, "blockedUsers", other_id)

    async def list_blocked(self, self_id: int) -> list:
        me = self._user(self_id)
        return self.store.find_users_by_ids(me.blocked_ids)


def get_friend_service(
    store: ChatStore = Depends(get_store),
    router: EventRouter = Depends(get_event_router),
) -> FriendService:
    return FriendService(store, router)
