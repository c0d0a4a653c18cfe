"""
relationship_gate.py — Who may interact with whom.
Pure functions over RelationshipSnapshot values; no I/O. A block recorded by
either side vetoes every interaction, whatever the friends sets say.
"""

from dataclasses import dataclass, field

from services.errors import BadRequest, Conflict, Forbidden


@dataclass(frozen=True)
class RelationshipSnapshot:
    id: int
    friends: frozenset = field(default_factory=frozenset)
    blocked: frozenset = field(default_factory=frozenset)
    pending_from: frozenset = field(default_factory=frozenset)  # senders of pending requests to this user

    @classmethod
    def of(cls, user) -> "RelationshipSnapshot":
        """Build from a User row (friend_ids / blocked_ids / friend_requests)."""
        return cls(
            id=user.id,
            friends=frozenset(user.friend_ids),
            blocked=frozenset(user.blocked_ids),
            pending_from=frozenset(
                r.from_user_id for r in user.friend_requests if r.status == "pending"
            ),
        )


@dataclass(frozen=True)
class Interaction:
    blocked: bool
    are_friends: bool


def is_blocked(a: RelationshipSnapshot, b: RelationshipSnapshot) -> bool:
    return b.id in a.blocked or a.id in b.blocked


def are_friends(a: RelationshipSnapshot, b: RelationshipSnapshot) -> bool:
    """Friendship counts only when both sides record it."""
    return b.id in a.friends and a.id in b.friends


def can_interact(a: RelationshipSnapshot, b: RelationshipSnapshot) -> Interaction:
    return Interaction(blocked=is_blocked(a, b), are_friends=are_friends(a, b))


def check_can_message(sender: RelationshipSnapshot, receiver: RelationshipSnapshot,
                      blocked_detail: str = "Cannot send message to blocked user") -> None:
    """Raise Forbidden unless the two users may exchange messages."""
    interaction = can_interact(sender, receiver)
    if interaction.blocked:
        raise Forbidden(blocked_detail)
    if not interaction.are_friends:
        raise Forbidden("You can only message your friends")


def check_can_request(sender: RelationshipSnapshot, receiver: RelationshipSnapshot) -> None:
    """Raise unless `sender` may send a new friend request to `receiver`."""
    if sender.id == receiver.id:
        raise BadRequest("Cannot send a friend request to yourself")
    if is_blocked(sender, receiver):
        raise Forbidden("Cannot send friend request to blocked user")
    if receiver.id in sender.friends:
        raise Conflict("Already friends with this user")
    if sender.id in receiver.pending_from:
        raise Conflict("Friend request already sent")
