"""
store.py — Persistence contract for users, relationships and messages.
Every coordinator reads and writes through ChatStore; nothing above this layer
touches the SQLAlchemy session. Set mutations are idempotent so a paired
relationship update that failed half-way can simply be retried.
"""

import logging
from contextlib import contextmanager

from fastapi import Depends
from sqlalchemy import or_, and_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db
from models import User, Friendship, BlockedUser, FriendRequest, ChatMessage, MessageDeletion
from models.friend_request import PENDING
from services.errors import Conflict, StorageUnavailable

logger = logging.getLogger(__name__)

# field name -> (link model, column holding the member id)
USER_SETS = {
    "friends": (Friendship, "friend_id"),
    "blockedUsers": (BlockedUser, "blocked_id"),
}

UPDATABLE_USER_FIELDS = {"full_name", "profile_pic"}


class ChatStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Storage failure during {action}: {e}")
            raise StorageUnavailable() from e

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def find_user_by_id(self, user_id: int) -> User | None:
        with self._guard("find_user_by_id"):
            return self.db.get(User, user_id)

    def find_users_by_ids(self, user_ids) -> list[User]:
        ids = list(user_ids)
        if not ids:
            return []
        with self._guard("find_users_by_ids"):
            return self.db.query(User).filter(User.id.in_(ids)).order_by(User.id).all()

    def find_user_by_email(self, email: str) -> User | None:
        with self._guard("find_user_by_email"):
            return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def find_user_by_email_pattern(self, pattern: str, exclude_id: int | None = None) -> User | None:
        """Case-insensitive substring match on email, first hit by id."""
        with self._guard("find_user_by_email_pattern"):
            query = self.db.query(User).filter(
                User.email.ilike(f"%{_escape_like(pattern.strip())}%", escape="\\")
            )
            if exclude_id is not None:
                query = query.filter(User.id != exclude_id)
            return query.order_by(User.id).first()

    def find_conversation_partners(self, user_id: int) -> list[User]:
        """Users holding `user_id` in their friends set."""
        with self._guard("find_conversation_partners"):
            return (
                self.db.query(User)
                .join(Friendship, Friendship.user_id == User.id)
                .filter(Friendship.friend_id == user_id)
                .order_by(User.full_name, User.id)
                .all()
            )

    def create_user(self, full_name: str, email: str, hashed_password: str) -> User:
        user = User(full_name=full_name, email=email.strip().lower(), hashed_password=hashed_password)
        try:
            self.db.add(user)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("Email already exists") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Storage failure during create_user: {e}")
            raise StorageUnavailable() from e
        self.db.refresh(user)
        return user

    def update_user_fields(self, user_id: int, patch: dict) -> User | None:
        unknown = set(patch) - UPDATABLE_USER_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")
        with self._guard("update_user_fields"):
            user = self.db.get(User, user_id)
            if user is None:
                return None
            for key, value in patch.items():
                setattr(user, key, value)
            self.db.commit()
            self.db.refresh(user)
            return user

    def push_to_user_set(self, user_id: int, field: str, value: int) -> bool:
        """Add `value` to the user's set. Returns False when it was already present."""
        model, column = USER_SETS[field]
        with self._guard(f"push_to_user_set({field})"):
            exists = (
                self.db.query(model)
                .filter(model.user_id == user_id, getattr(model, column) == value)
                .first()
            )
            if exists:
                return False
            self.db.add(model(user_id=user_id, **{column: value}))
            try:
                self.db.commit()
            except IntegrityError:
                # Concurrent insert of the same pair
                self.db.rollback()
                return False
            return True

    def pull_from_user_set(self, user_id: int, field: str, value: int) -> bool:
        """Remove `value` from the user's set. Returns False when it was absent."""
        model, column = USER_SETS[field]
        with self._guard(f"pull_from_user_set({field})"):
            removed = (
                self.db.query(model)
                .filter(model.user_id == user_id, getattr(model, column) == value)
                .delete(synchronize_session=False)
            )
            self.db.commit()
            return removed > 0

    # ------------------------------------------------------------------
    # Friend requests
    # ------------------------------------------------------------------
    def add_friend_request(self, to_user_id: int, from_user_id: int) -> FriendRequest:
        request = FriendRequest(to_user_id=to_user_id, from_user_id=from_user_id, status=PENDING)
        try:
            self.db.add(request)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("Friend request already sent") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Storage failure during add_friend_request: {e}")
            raise StorageUnavailable() from e
        self.db.refresh(request)
        return request

    def find_friend_request(self, to_user_id: int, request_id: int) -> FriendRequest | None:
        with self._guard("find_friend_request"):
            return (
                self.db.query(FriendRequest)
                .filter(FriendRequest.id == request_id, FriendRequest.to_user_id == to_user_id)
                .first()
            )

    def find_pending_requests(self, to_user_id: int) -> list[FriendRequest]:
        with self._guard("find_pending_requests"):
            return (
                self.db.query(FriendRequest)
                .filter(FriendRequest.to_user_id == to_user_id, FriendRequest.status == PENDING)
                .order_by(FriendRequest.created_at, FriendRequest.id)
                .all()
            )

    def update_friend_request(self, request: FriendRequest, status: str) -> FriendRequest:
        with self._guard("update_friend_request"):
            request.status = status
            self.db.commit()
            self.db.refresh(request)
            return request

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def find_messages_between(self, user_a: int, user_b: int, viewer_id: int | None = None) -> list[ChatMessage]:
        """Messages of the pair, oldest first, minus the ones hidden for `viewer_id`."""
        with self._guard("find_messages_between"):
            query = self.db.query(ChatMessage).filter(
                or_(
                    and_(ChatMessage.sender_id == user_a, ChatMessage.receiver_id == user_b),
                    and_(ChatMessage.sender_id == user_b, ChatMessage.receiver_id == user_a),
                )
            )
            if viewer_id is not None:
                hidden = select(MessageDeletion.message_id).where(MessageDeletion.user_id == viewer_id)
                query = query.filter(ChatMessage.id.not_in(hidden))
            return query.order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc()).all()

    def insert_message(self, sender_id: int, receiver_id: int, text: str | None, image: str | None) -> ChatMessage:
        with self._guard("insert_message"):
            message = ChatMessage(sender_id=sender_id, receiver_id=receiver_id, text=text, image=image)
            self.db.add(message)
            self.db.commit()
            self.db.refresh(message)
            return message

    def find_message_by_id(self, message_id: int) -> ChatMessage | None:
        with self._guard("find_message_by_id"):
            return self.db.get(ChatMessage, message_id)

    def update_message(self, message_id: int, patch: dict) -> ChatMessage | None:
        """Apply `delete_for_everyone` and/or add ids from `deleted_for` (set union)."""
        with self._guard("update_message"):
            message = self.db.get(ChatMessage, message_id)
            if message is None:
                return None
            if patch.get("delete_for_everyone"):
                message.delete_for_everyone = True
            for user_id in set(patch.get("deleted_for", ())) - message.deleted_for:
                self.db.add(MessageDeletion(message_id=message_id, user_id=user_id))
            self.db.commit()
            self.db.refresh(message)
            return message


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def get_store(db: Session = Depends(get_db)) -> ChatStore:
    return ChatStore(db)
