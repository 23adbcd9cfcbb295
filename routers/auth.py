from fastapi import APIRouter, Body, Depends, Request
from fastapi import HTTPException, status
from passlib.context import CryptContext
from typing import Any, Dict
import re

from auth.jwt import create_user_token, get_active_user, get_current_user
from auth.telegram import verify_telegram_auth
from config import settings
from schema.user import (
    UserRegister,
    UserLogin,
    ProfileUpdate,
    UserResponse,
    UserSummary,
    TokenResponse,
)
from storage.base import DuplicateRecordError, UserStore
from storage.dependencies import get_user_store

import logging
logger = logging.getLogger("darlingx_api")

auth_router = APIRouter(prefix="/api/auth", tags=["Authentication"])
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)

INVALID_CREDENTIALS = "Invalid credentials"


def _client_ip(request: Request):
    return request.client.host if request.client else None


def _active_user_or_401(store: UserStore, current_user: dict):
    user = store.get(current_user["user_id"])
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


@auth_router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(data: UserRegister, request: Request, store: UserStore = Depends(get_user_store)):
    if not settings.ALLOW_REGISTRATION:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Registration is disabled"
        )

    username = data.username.lower()
    email = str(data.email).lower()

    # Check if user exists
    if store.find_by_login(username) or store.find_by_email(email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A user with that username or email already exists."
        )

    try:
        new_user = store.create({
            "username": username,
            "email": email,
            "password_hash": pwd_context.hash(data.password),
            "role": "user",
            "ip": _client_ip(request),
            "user_agent": request.headers.get("user-agent"),
        })
    except DuplicateRecordError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A user with that username or email already exists."
        )

    logger.info(f"New user registered: {new_user.username}")
    return TokenResponse(token=create_user_token(new_user), user=UserSummary.model_validate(new_user))


@auth_router.post("/login", response_model=TokenResponse)
def login(data: UserLogin, request: Request, store: UserStore = Depends(get_user_store)):
    user = store.find_by_login(data.username)
    # same answer for unknown user, wrong password and disabled account
    if not user or not user.password_hash or not pwd_context.verify(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    if not user.is_active:
        logger.warning(f"Login attempt for disabled account: {user.username}")
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    user = store.record_login(user.id, _client_ip(request))
    logger.info(f"User logged in: {user.username}")
    return TokenResponse(token=create_user_token(user), user=UserSummary.model_validate(user))


@auth_router.post("/logout")
def logout():
    # tokens are stateless; the client drops its copy
    return {"message": "Logged out", "success": True}


@auth_router.get("/profile", response_model=UserResponse)
def get_profile(current_user=Depends(get_current_user), store: UserStore = Depends(get_user_store)):
    user = store.get(current_user["user_id"])
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse.model_validate(user)


@auth_router.put("/profile", response_model=UserResponse)
def update_profile(
    data: ProfileUpdate,
    current_user=Depends(get_active_user),
    store: UserStore = Depends(get_user_store),
):
    user = store.get(current_user["user_id"])
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    changes = {}

    if data.email is not None:
        email = str(data.email).lower()
        if email != user.email:
            if store.find_by_email(email):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Email is already in use"
                )
            changes["email"] = email

    if data.new_password:
        if not data.current_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is required"
            )
        if not user.password_hash or not pwd_context.verify(data.current_password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect"
            )
        changes["password_hash"] = pwd_context.hash(data.new_password)

    if changes:
        try:
            user = store.update(user.id, changes)
        except DuplicateRecordError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email is already in use"
            )
        logger.info(f"Profile updated: {user.username}")

    return UserResponse.model_validate(user)


@auth_router.get("/verify")
def verify(current_user=Depends(get_current_user), store: UserStore = Depends(get_user_store)):
    user = _active_user_or_401(store, current_user)
    return {
        "valid": True,
        "user": UserSummary.model_validate(user),
    }


def _telegram_username(payload: Dict[str, Any]) -> str:
    candidate = re.sub(r"[^a-z0-9_]", "", str(payload.get("username") or "").lower())
    if len(candidate) < 3:
        candidate = f"tg_{payload['id']}"
    return candidate[:30]


@auth_router.post("/telegram", response_model=TokenResponse)
def telegram_login(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    store: UserStore = Depends(get_user_store),
):
    """
    Log in with the Telegram Login Widget.
    The payload is verified against the bot token; a local account is
    created on the first login and reused afterwards.
    """
    if not payload.get("id") or not payload.get("hash") or not payload.get("auth_date"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")
    if not settings.TELEGRAM_BOT_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Telegram login is not configured"
        )
    if not verify_telegram_auth(payload, settings.TELEGRAM_BOT_TOKEN, settings.TELEGRAM_AUTH_MAX_AGE_SECONDS):
        logger.warning(f"Telegram verification failed for id {payload.get('id')}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Verification failed")

    telegram_id = str(payload["id"])
    user = store.find_by_telegram_id(telegram_id)
    if user is None:
        username = _telegram_username(payload)
        if store.find_by_login(username):
            username = f"tg_{telegram_id}"[:30]
        user = store.create({
            "username": username,
            "telegram_id": telegram_id,
            "role": "user",
            "ip": _client_ip(request),
            "user_agent": request.headers.get("user-agent"),
        })
        logger.info(f"Telegram account linked: {user.username} ({telegram_id})")
    elif not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    user = store.record_login(user.id, _client_ip(request))
    return TokenResponse(token=create_user_token(user), user=UserSummary.model_validate(user))
