import re
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator
from typing import Optional
from datetime import datetime

PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def _check_password_strength(value: Optional[str]) -> Optional[str]:
    if value is not None and not PASSWORD_RULE.match(value):
        raise ValueError("Password must contain a lowercase letter, an uppercase letter and a digit")
    return value


class UserRegister(BaseModel):
    """Schema for self-registration"""
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_]+$",
                          description="Letters, digits and underscores")
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=6, max_length=255, description="User's password")

    @field_validator("password")
    @classmethod
    def strong_password(cls, value):
        return _check_password_strength(value)


class UserLogin(BaseModel):
    """Schema for user login; username may also be the email address"""
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1, description="User's password")


class ProfileUpdate(BaseModel):
    """Schema for updating the current user's profile"""
    email: Optional[EmailStr] = Field(None, description="New email address")
    current_password: Optional[str] = Field(None, min_length=1, description="Required to change password")
    new_password: Optional[str] = Field(None, min_length=6, max_length=255, description="New password")

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, value):
        return _check_password_strength(value)


class UserStatusUpdate(BaseModel):
    is_active: bool


class UserResponse(BaseModel):
    """Schema for user response (excludes sensitive data)"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: Optional[str] = None
    role: str
    is_active: bool = True
    telegram_id: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: Optional[str] = None
    role: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserSummary
