from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from config import settings
from storage.base import UserStore
from storage.dependencies import get_user_store

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

MODERATION_ROLES = {"admin", "moderator"}

def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def create_user_token(user) -> str:
    """Issue a token for a stored user record"""
    return create_access_token(data={"user_id": user.id, "username": user.username, "role": user.role or "user"})

def verify_token(token: str) -> Optional[dict]:
    """Verify JWT token and return payload"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError:
        return None

def _user_from_payload(payload: Optional[dict]) -> Optional[dict]:
    if not payload or not payload.get("user_id"):
        return None
    return {
        "user_id": payload["user_id"],
        "username": payload.get("username"),
        "role": payload.get("role", "user"),
    }

def get_current_user(token: str = Depends(oauth2_scheme)) -> dict:
    """Get current user from JWT token"""
    current_user = _user_from_payload(verify_token(token))
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user

def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme)) -> Optional[dict]:
    """Current user if a valid token was sent, otherwise None"""
    if not token:
        return None
    return _user_from_payload(verify_token(token))

def get_active_user(
    current_user: dict = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
) -> dict:
    """Token user re-checked against the store: must still exist and be active, role as stored now"""
    user = store.get(current_user["user_id"])
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {**current_user, "username": user.username, "role": user.role or "user"}

def require_admin(current_user: dict = Depends(get_active_user)) -> dict:
    """Require admin role"""
    if current_user.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user

def can_moderate(current_user: dict) -> bool:
    return current_user.get("role") in MODERATION_ROLES
