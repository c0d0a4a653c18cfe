from datetime import datetime, timedelta, timezone

from fastapi import Depends, Request, HTTPException, status
from jose import jwt, JWTError
import bcrypt
import logging
import uuid

from config import JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRY_HOURS, AUTH_COOKIE_NAME
from services.store import ChatStore, get_store

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a plain-text password using bcrypt."""
    # Ensure it doesn't exceed 72 bytes to prevent bcrypt ValueError
    pw_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(pw_bytes, bcrypt.gensalt())
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain-text password against a bcrypt hash."""
    try:
        pw_bytes = plain_password.encode('utf-8')[:72]
        hash_bytes = hashed_password.encode('utf-8')
        return bcrypt.checkpw(pw_bytes, hash_bytes)
    except ValueError as e:
        logger.warning(f"Bcrypt verification error: {e}")
        return False


def create_token(data: dict) -> str:
    """Create a JWT token with an expiry claim and a unique JTI."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRY_HOURS)
    jti = str(uuid.uuid4())
    to_encode.update({"exp": expire, "jti": jti})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> dict | None:
    """Decode and verify a JWT token. Returns the payload or None on failure."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return payload
    except JWTError:
        return None


def extract_token(headers, cookies, explicit: str | None = None) -> str | None:
    """
    Find the bearer credential. Priority: an explicit token supplied by the
    client, then the Authorization header, then the auth cookie.
    """
    if explicit:
        return explicit

    auth_header = headers.get("Authorization") or headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        if token:
            return token

    return cookies.get(AUTH_COOKIE_NAME) or None


def user_id_from_token(token: str | None) -> int | None:
    """Verify a token and return its user_id claim, or None."""
    if not token:
        return None
    payload = verify_token(token)
    if payload is None:
        return None
    user_id = payload.get("user_id")
    return user_id if isinstance(user_id, int) else None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(request: Request, store: ChatStore = Depends(get_store)) -> int:
    """
    FastAPI dependency — extracts the token from the Authorization header or
    the auth cookie, verifies it, and returns the user_id of an existing user.
    Raises HTTP 401 if the token is missing or invalid.
    """
    token = extract_token(request.headers, request.cookies)
    if not token:
        raise _unauthorized("Unauthorized -- No token provided")

    user_id = user_id_from_token(token)
    if user_id is None:
        raise _unauthorized("Invalid or expired token")

    if store.find_user_by_id(user_id) is None:
        raise _unauthorized("User not found")

    return user_id
