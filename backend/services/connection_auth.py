"""
connection_auth.py — Authenticates a realtime connection before it is accepted.
The identity resolved here is trusted by every handler for the lifetime of the
connection; nothing re-verifies it afterwards.
"""

import logging

from auth import extract_token, user_id_from_token
from services.errors import Unauthenticated
from services.store import ChatStore

logger = logging.getLogger(__name__)


def authenticate_connection(websocket, store: ChatStore):
    """Resolve the connecting user or raise Unauthenticated.

    Credential sources, first found wins: the `token` query parameter, the
    Authorization header, the auth cookie.
    """
    token = extract_token(
        websocket.headers,
        websocket.cookies,
        explicit=websocket.query_params.get("token"),
    )
    if not token:
        raise Unauthenticated("No token provided")

    user_id = user_id_from_token(token)
    if user_id is None:
        raise Unauthenticated("Invalid or expired token")

    user = store.find_user_by_id(user_id)
    if user is None:
        raise Unauthenticated("User not found")

    return user
