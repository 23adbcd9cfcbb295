"""
Store interfaces shared by the SQL and GitHub-document backends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

from storage.records import OracleRecord, QuoteRecord, UserRecord


class StorageError(Exception):
    """Base class for persistence failures."""


class RecordNotFoundError(StorageError):
    def __init__(self, collection: str, record_id):
        super().__init__(f"{collection} record {record_id} not found")
        self.collection = collection
        self.record_id = record_id


class DuplicateRecordError(StorageError):
    """A unique field (username, email, telegram id) is already taken."""


class DocumentConflictError(StorageError):
    """The remote document moved past the revision the write was based on."""


class DocumentWriteError(StorageError):
    """The remote document could not be written for a reason other than a conflict."""


@dataclass
class QuoteStats:
    total_quotes: int
    today_quotes: int
    category_stats: Dict[str, int] = field(default_factory=dict)
    top_authors: List[Dict] = field(default_factory=list)


@dataclass
class UserStats:
    total_users: int
    active_users: int
    today_users: int
    role_stats: Dict[str, int] = field(default_factory=dict)


@dataclass
class OracleStats:
    total_requests: int
    categories: Dict[str, int] = field(default_factory=dict)


class QuoteStore(Protocol):
    """Operations the routes need on quotes."""

    def list(
        self,
        page: int = 1,
        limit: int = 50,
        *,
        author: Optional[str] = None,
        search: Optional[str] = None,
        category: Optional[str] = None,
        approved: Optional[bool] = None,
    ) -> Tuple[List[QuoteRecord], int]:
        ...

    def get(self, quote_id: int) -> Optional[QuoteRecord]:
        ...

    def create(self, data: dict) -> QuoteRecord:
        ...

    def update(self, quote_id: int, changes: dict) -> QuoteRecord:
        ...

    def delete(self, quote_id: int) -> None:
        ...

    def random(self, approved_only: bool = True) -> Optional[QuoteRecord]:
        ...

    def count(self, since: Optional[datetime] = None, approved: Optional[bool] = None) -> int:
        ...

    def created_since(self, start: datetime) -> List[QuoteRecord]:
        ...

    def stats(self) -> QuoteStats:
        ...


class UserStore(Protocol):
    """Operations the routes need on user accounts."""

    def list(
        self,
        page: int = 1,
        limit: int = 20,
        *,
        search: Optional[str] = None,
        role: Optional[str] = None,
    ) -> Tuple[List[UserRecord], int]:
        ...

    def get(self, user_id: int) -> Optional[UserRecord]:
        ...

    def find_by_login(self, identifier: str) -> Optional[UserRecord]:
        ...

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def find_by_telegram_id(self, telegram_id: str) -> Optional[UserRecord]:
        ...

    def create(self, data: dict) -> UserRecord:
        ...

    def update(self, user_id: int, changes: dict) -> UserRecord:
        ...

    def delete(self, user_id: int) -> None:
        ...

    def record_login(self, user_id: int, ip: Optional[str]) -> UserRecord:
        ...

    def count(self, since: Optional[datetime] = None) -> int:
        ...

    def stats(self) -> UserStats:
        ...


class OracleLogStore(Protocol):
    def record(self, question: str, answer: str, category: str) -> OracleRecord:
        ...

    def stats(self) -> OracleStats:
        ...


def top_authors(authors: List[str], limit: int = 10) -> List[Dict]:
    """Count quotes per author, most prolific first."""
    counts: Dict[str, int] = {}
    for author in authors:
        key = author or "Unknown"
        counts[key] = counts.get(key, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{"author": author, "count": count} for author, count in ranked[:limit]]
