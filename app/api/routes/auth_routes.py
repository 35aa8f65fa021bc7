"""
Authentication Routes

POST /auth/signup     - Register new user (sets cookie)
POST /auth/login      - Login (sets cookie)
POST /auth/logout     - Clear cookie
GET  /auth/me         - Get current user
POST /auth/onboarding - Complete profile
"""

import logging
import random
from fastapi import APIRouter, HTTPException, Depends, Request, Response
from pymongo.errors import DuplicateKeyError

from app.core.auth import hash_password, verify_password, set_auth_cookie, clear_auth_cookie, get_current_user
from app.core.rate_limit import auth_rate_limit
from app.services.mongo_service import UserService, serialize_doc
from app.services.stream_client import get_stream_client
from app.schemas.schemas import SignupRequest, LoginRequest, OnboardingRequest, MessageResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = logging.getLogger(__name__)


def _sync_stream_user(user: dict):
    """Mirror the user into Stream; failures never block auth."""
    stream = get_stream_client()
    if not stream.configured:
        return
    try:
        stream.upsert_user(user)
    except Exception as e:
        logger.error("Error upserting Stream user %s: %s", user["_id"], e)


@router.post("/signup", status_code=201)
@auth_rate_limit
async def signup(request: Request, data: SignupRequest, response: Response):
    """Register a new account. Role defaults to student."""
    users = UserService()
    if users.email_exists(data.email):
        raise HTTPException(status_code=400, detail="Email already exists, please use a different one")

    avatar = f"https://avatar.iran.liara.run/public/{random.randint(1, 100)}.png"
    try:
        user = users.create(
            email=data.email,
            password_hash=hash_password(data.password),
            full_name=data.full_name,
            role=data.role.value,
            profile_pic=avatar
        )
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already exists, please use a different one")

    _sync_stream_user(user)
    set_auth_cookie(response, str(user["_id"]))
    logger.info("User signed up: %s (%s)", user["_id"], user["role"])

    return {"success": True, "user": serialize_doc(user)}


@router.post("/login")
@auth_rate_limit
async def login(request: Request, data: LoginRequest, response: Response):
    """Login and set the session cookie."""
    user = UserService().get_by_email(data.email)
    if not user or not verify_password(data.password, user["password"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    set_auth_cookie(response, str(user["_id"]))
    return {"success": True, "user": serialize_doc(user)}


@router.post("/logout", response_model=MessageResponse)
@auth_rate_limit
async def logout(request: Request, response: Response):
    clear_auth_cookie(response)
    return MessageResponse(message="Logout successful")


@router.get("/me")
@auth_rate_limit
async def get_me(request: Request, user: dict = Depends(get_current_user)):
    """Get current user info."""
    return {"success": True, "user": serialize_doc(user)}


@router.post("/onboarding")
@auth_rate_limit
async def onboard(request: Request, data: OnboardingRequest, user: dict = Depends(get_current_user)):
    """Store profile details and mark the account as onboarded."""
    fields = data.to_document()
    fields["isOnboarded"] = True

    updated = UserService().update(user["_id"], fields)
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")

    _sync_stream_user(updated)
    logger.info("User %s (%s) completed onboarding", updated["_id"], updated.get("role"))

    return {
        "success": True,
        "user": serialize_doc(updated),
        "message": "Profile setup completed successfully!"
    }
