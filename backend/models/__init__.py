# Import all models so they register with SQLAlchemy Base.metadata
# This ensures Base.metadata.create_all() creates all tables

from models.user import User
from models.friendship import Friendship
from models.blocked_user import BlockedUser
from models.friend_request import FriendRequest
from models.chat_message import ChatMessage
from models.message_deletion import MessageDeletion

__all__ = [
    "User",
    "Friendship",
    "BlockedUser",
    "FriendRequest",
    "ChatMessage",
    "MessageDeletion",
]
