# ---------- routes/auth_routes.py ----------
"""
Account routes: signup, login, logout, session check and avatar update.
Tokens are returned in the body and also set as an httpOnly cookie, so both
header-based and cookie-based clients work.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from auth import hash_password, verify_password, create_token, get_current_user
from config import AUTH_COOKIE_NAME, COOKIE_SECURE, JWT_EXPIRY_HOURS, MIN_PASSWORD_LENGTH
from services import events
from services.store import ChatStore, get_store
from services.upload_service import ImageUploader, get_uploader

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


# ── Pydantic schemas ──────────────────────────────────────────────
class SignupRequest(BaseModel):
    fullName: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class UpdateProfileRequest(BaseModel):
    profilePic: str  # data URL or base64


# ── Helpers ───────────────────────────────────────────────────────
def _issue_token(user_id: int, response: Response) -> str:
    token = create_token({"user_id": user_id})
    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=JWT_EXPIRY_HOURS * 3600,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="none" if COOKIE_SECURE else "lax",
        path="/",
    )
    return token


def _session_payload(user, token: str) -> dict:
    return {**events.public_profile(user), "token": token}


# ── Routes ────────────────────────────────────────────────────────
@router.post("/signup", status_code=201)
async def signup(body: SignupRequest, response: Response, store: ChatStore = Depends(get_store)):
    """Create an account and log it in."""
    if not body.fullName.strip() or not body.email.strip():
        raise HTTPException(status_code=400, detail="All fields are required")
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    if store.find_user_by_email(body.email):
        raise HTTPException(status_code=400, detail="Email already exists")

    user = store.create_user(body.fullName.strip(), body.email, hash_password(body.password))
    logger.info(f"New account {user.id}")
    return _session_payload(user, _issue_token(user.id, response))


@router.post("/login")
async def login(body: LoginRequest, response: Response, store: ChatStore = Depends(get_store)):
    """Authenticate with email + password."""
    user = store.find_user_by_email(body.email)
    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    return _session_payload(user, _issue_token(user.id, response))


@router.post("/logout")
async def logout(response: Response):
    """Clear the auth cookie. Header-based clients discard their own token."""
    response.delete_cookie(AUTH_COOKIE_NAME, path="/", secure=COOKIE_SECURE, httponly=True)
    return {"message": "Logged out successfully!"}


@router.get("/check")
async def check_auth(
    response: Response,
    user_id: int = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
):
    """Return the current user's profile with a refreshed token."""
    user = store.find_user_by_id(user_id)
    return _session_payload(user, _issue_token(user.id, response))


@router.put("/update-profile")
async def update_profile(
    body: UpdateProfileRequest,
    response: Response,
    user_id: int = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
    uploader: ImageUploader = Depends(get_uploader),
):
    """Upload a new avatar and store its URL."""
    if not body.profilePic:
        raise HTTPException(status_code=400, detail="Profile pic is required!")

    uploaded = await run_in_threadpool(uploader.upload_image, body.profilePic, f"profiles/{user_id}")
    user = store.update_user_fields(user_id, {"profile_pic": uploaded["url"]})
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _session_payload(user, _issue_token(user.id, response))
