"""
Backend-neutral records exchanged through the store interfaces.

Field names are snake_case in Python; the aliases are the camelCase keys used
by the JSON document (``createdAt``, ``isApproved``, ...), so the same model
reads ORM rows (by attribute name) and document items (by alias).
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from utils.time_utils import as_utc


class Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )

    @field_validator("created_at", "updated_at", check_fields=False)
    @classmethod
    def _normalize_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    def to_document(self) -> dict:
        """Serialize for the JSON document (camelCase keys, ISO timestamps)."""
        return self.model_dump(by_alias=True, mode="json")


class QuoteRecord(Record):
    id: int
    text: str
    author: str
    user_id: Optional[int] = None
    category: Optional[str] = "general"
    tags: List[str] = Field(default_factory=list)
    likes: int = 0
    is_approved: bool = True
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_default(cls, value):
        return value or []


class UserRecord(Record):
    id: int
    username: str
    email: Optional[str] = None
    # stored under "password" in the JSON document
    password_hash: Optional[str] = Field(default=None, alias="password")
    role: str = "user"
    is_active: bool = True
    telegram_id: Optional[str] = None
    last_login_at: Optional[datetime] = None
    last_login_ip: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("last_login_at")
    @classmethod
    def _normalize_login_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @field_validator("telegram_id", mode="before")
    @classmethod
    def _telegram_id_str(cls, value):
        return None if value is None else str(value)


class OracleRecord(Record):
    id: int
    question: str
    answer: str
    category: str
    created_at: Optional[datetime] = None
