from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)  # stored lower-cased
    hashed_password = Column(String(255), nullable=False)
    profile_pic = Column(String(500), nullable=False, default="")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    friend_links = relationship(
        "Friendship",
        foreign_keys="Friendship.user_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    block_links = relationship(
        "BlockedUser",
        foreign_keys="BlockedUser.user_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    friend_requests = relationship(
        "FriendRequest",
        foreign_keys="FriendRequest.to_user_id",
        order_by="FriendRequest.created_at",
        cascade="all, delete-orphan",
    )

    @property
    def friend_ids(self) -> set[int]:
        return {link.friend_id for link in self.friend_links}

    @property
    def blocked_ids(self) -> set[int]:
        return {link.blocked_id for link in self.block_links}

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"
