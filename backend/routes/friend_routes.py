from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from auth import get_current_user
from services import events
from services.friend_service import FriendService, get_friend_service

router = APIRouter(prefix="/api/friends", tags=["Friends"])


class RespondRequest(BaseModel):
    action: str  # "accept" or "reject"


@router.get("/search")
async def search_users(
    email: str = Query(...),
    current_user_id: int = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    """Find a user by (partial) email, with friendship/request flags."""
    return await service.search(current_user_id, email)


@router.post("/request/{user_id}")
async def send_friend_request(
    user_id: int,
    current_user_id: int = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    request = await service.send(current_user_id, user_id)
    return {"message": "Friend request sent successfully", "requestId": request.id}


@router.put("/request/{request_id}")
async def handle_friend_request(
    request_id: int,
    body: RespondRequest,
    current_user_id: int = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    request = await service.respond(current_user_id, request_id, body.action)
    return {"message": f"Friend request {request.status}", "status": request.status}


@router.get("/requests")
async def get_friend_requests(
    current_user_id: int = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    """Pending requests received by the current user."""
    pending = await service.list_pending(current_user_id)
    return [events.friend_request_payload(r) for r in pending]


@router.delete("/remove/{user_id}")
async def remove_friend(
    user_id: int,
    current_user_id: int = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    await service.remove(current_user_id, user_id)
    return {"message": "Friend removed successfully"}


@router.post("/block/{user_id}")
async def block_user(
    user_id: int,
    current_user_id: int = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    await service.block(current_user_id, user_id)
    return {"message": "User blocked successfully"}


@router.delete("/unblock/{user_id}")
async def unblock_user(
    user_id: int,
    current_user_id: int = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    await service.unblock(current_user_id, user_id)
    return {"message": "User unblocked successfully"}


@router.get("/blocked")
async def get_blocked_users(
    current_user_id: int = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    blocked = await service.list_blocked(current_user_id)
    return [events.public_profile(u) for u in blocked]
