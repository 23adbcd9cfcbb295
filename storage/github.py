"""
Quote, user and oracle stores over the GitHub JSON document.

Filtering, ordering and pagination happen in Python over the fetched
collection.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, List, Optional

from storage.base import (
    DuplicateRecordError,
    OracleStats,
    QuoteStats,
    UserStats,
    top_authors,
)
from storage.github_document import GitHubDocumentStore
from storage.records import OracleRecord, QuoteRecord, UserRecord
from utils.time_utils import as_utc, start_of_utc_day, to_iso, utcnow

logger = logging.getLogger("darlingx_api")


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle.lower() in value.lower()


def _newest_first(records: list) -> list:
    epoch = as_utc(datetime.min)
    return sorted(records, key=lambda r: (r.created_at or epoch, r.id), reverse=True)


def _page(records: list, page: int, limit: int) -> list:
    offset = (page - 1) * limit
    return records[offset:offset + limit]


def _created_since(records: list, since: Optional[datetime]) -> list:
    if since is None:
        return records
    since = as_utc(since)
    return [r for r in records if r.created_at and r.created_at >= since]


def _to_document(changes: dict, record_type) -> dict:
    """Rename snake_case change keys to the document's camelCase keys."""
    fields = record_type.model_fields
    document = {}
    for key, value in changes.items():
        alias = fields[key].alias if key in fields and fields[key].alias else key
        if isinstance(value, datetime):
            value = to_iso(value)
        document[alias] = value
    return document


class GitHubQuoteStore:
    def __init__(self, document: GitHubDocumentStore, chooser: Callable[[list], object] = random.choice):
        self.document = document
        self.chooser = chooser

    def _all(self) -> List[QuoteRecord]:
        return [QuoteRecord.model_validate(item) for item in self.document.find_in_collection("quotes")]

    def list(self, page=1, limit=50, *, author=None, search=None, category=None, approved=None):
        quotes = self._all()
        if author:
            quotes = [q for q in quotes if _contains(q.author, author)]
        if search:
            quotes = [q for q in quotes if _contains(q.text, search) or _contains(q.author, search)]
        if category:
            quotes = [q for q in quotes if q.category == category]
        if approved is not None:
            quotes = [q for q in quotes if q.is_approved == approved]
        quotes = _newest_first(quotes)
        return _page(quotes, page, limit), len(quotes)

    def get(self, quote_id: int) -> Optional[QuoteRecord]:
        item = self.document.find_by_id("quotes", quote_id)
        return QuoteRecord.model_validate(item) if item else None

    def create(self, data: dict) -> QuoteRecord:
        item = {
            "text": data["text"],
            "author": data["author"],
            "userId": data.get("user_id"),
            "category": data.get("category") or "general",
            "tags": data.get("tags") or [],
            "likes": 0,
            "isApproved": data.get("is_approved", True),
            "ip": data.get("ip"),
            "userAgent": data.get("user_agent"),
        }
        return QuoteRecord.model_validate(self.document.add_to_collection("quotes", item))

    def update(self, quote_id: int, changes: dict) -> QuoteRecord:
        updated = self.document.update_in_collection("quotes", quote_id, _to_document(changes, QuoteRecord))
        return QuoteRecord.model_validate(updated)

    def delete(self, quote_id: int) -> None:
        self.document.remove_from_collection("quotes", quote_id)

    def random(self, approved_only: bool = True) -> Optional[QuoteRecord]:
        quotes = self._all()
        if approved_only:
            quotes = [q for q in quotes if q.is_approved]
        return self.chooser(quotes) if quotes else None

    def count(self, since: Optional[datetime] = None, approved: Optional[bool] = None) -> int:
        quotes = _created_since(self._all(), since)
        if approved is not None:
            quotes = [q for q in quotes if q.is_approved == approved]
        return len(quotes)

    def created_since(self, start: datetime) -> List[QuoteRecord]:
        return sorted(_created_since(self._all(), start), key=lambda q: q.created_at)

    def stats(self) -> QuoteStats:
        quotes = self._all()
        categories = {}
        for quote in quotes:
            key = quote.category or "general"
            categories[key] = categories.get(key, 0) + 1
        return QuoteStats(
            total_quotes=len(quotes),
            today_quotes=len(_created_since(quotes, start_of_utc_day())),
            category_stats=categories,
            top_authors=top_authors([q.author for q in quotes]),
        )


class GitHubUserStore:
    def __init__(self, document: GitHubDocumentStore):
        self.document = document

    def _all(self) -> List[UserRecord]:
        return [UserRecord.model_validate(item) for item in self.document.find_in_collection("users")]

    def _unique_check(self, username=None, email=None, telegram_id=None, exclude_id=None):
        """
        Build a check for the document's ``users`` items. It runs inside the
        write, so every retried copy is scanned again.
        """
        username = username.lower() if username else None
        email = email.lower() if email else None
        telegram_id = str(telegram_id) if telegram_id else None

        def check(items):
            for item in items:
                if exclude_id is not None and item.get("id") == exclude_id:
                    continue
                if username and (item.get("username") or "").lower() == username:
                    raise DuplicateRecordError("A user with that username or email already exists")
                if email and (item.get("email") or "").lower() == email:
                    raise DuplicateRecordError("A user with that username or email already exists")
                if telegram_id and item.get("telegramId") is not None and str(item["telegramId"]) == telegram_id:
                    raise DuplicateRecordError("A user with that Telegram account already exists")

        return check

    def list(self, page=1, limit=20, *, search=None, role=None):
        users = self._all()
        if search:
            users = [u for u in users if _contains(u.username, search) or _contains(u.email, search)]
        if role:
            users = [u for u in users if u.role == role]
        users = _newest_first(users)
        return _page(users, page, limit), len(users)

    def get(self, user_id: int) -> Optional[UserRecord]:
        item = self.document.find_by_id("users", user_id)
        return UserRecord.model_validate(item) if item else None

    def find_by_login(self, identifier: str) -> Optional[UserRecord]:
        identifier = identifier.strip().lower()
        for user in self._all():
            if user.username == identifier or user.email == identifier:
                return user
        return None

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        email = email.strip().lower()
        return next((u for u in self._all() if u.email == email), None)

    def find_by_telegram_id(self, telegram_id: str) -> Optional[UserRecord]:
        return next((u for u in self._all() if u.telegram_id == str(telegram_id)), None)

    def create(self, data: dict) -> UserRecord:
        item = {
            "username": data["username"].lower(),
            "email": data["email"].lower() if data.get("email") else None,
            "password": data.get("password_hash"),
            "role": data.get("role", "user"),
            "isActive": data.get("is_active", True),
            "telegramId": data.get("telegram_id"),
            "ip": data.get("ip"),
            "userAgent": data.get("user_agent"),
        }
        check = self._unique_check(data["username"], data.get("email"), data.get("telegram_id"))
        created = self.document.add_to_collection("users", item, check=check)
        logger.info(f"User {created['username']} stored in GitHub document as #{created['id']}")
        return UserRecord.model_validate(created)

    def update(self, user_id: int, changes: dict) -> UserRecord:
        changes = dict(changes)
        for key in ("username", "email"):
            if changes.get(key):
                changes[key] = changes[key].lower()
        check = None
        if changes.get("username") or changes.get("email") or changes.get("telegram_id"):
            check = self._unique_check(
                changes.get("username"), changes.get("email"), changes.get("telegram_id"), exclude_id=user_id
            )
        updated = self.document.update_in_collection(
            "users", user_id, _to_document(changes, UserRecord), check=check
        )
        return UserRecord.model_validate(updated)

    def delete(self, user_id: int) -> None:
        self.document.remove_from_collection("users", user_id)

    def record_login(self, user_id: int, ip: Optional[str]) -> UserRecord:
        return self.update(user_id, {"last_login_at": utcnow(), "last_login_ip": ip})

    def count(self, since: Optional[datetime] = None) -> int:
        return len(_created_since(self._all(), since))

    def stats(self) -> UserStats:
        users = self._all()
        roles = {}
        for user in users:
            roles[user.role or "user"] = roles.get(user.role or "user", 0) + 1
        return UserStats(
            total_users=len(users),
            active_users=sum(1 for u in users if u.is_active),
            today_users=len(_created_since(users, start_of_utc_day())),
            role_stats=roles,
        )


class GitHubOracleLogStore:
    def __init__(self, document: GitHubDocumentStore):
        self.document = document

    def record(self, question: str, answer: str, category: str) -> OracleRecord:
        created = self.document.add_to_collection(
            "oracle_responses",
            {"question": question, "answer": answer, "category": category},
        )
        return OracleRecord.model_validate(created)

    def stats(self) -> OracleStats:
        categories = {}
        for entry in self.document.find_in_collection("oracle_responses"):
            key = entry.get("category") or "unknown"
            categories[key] = categories.get(key, 0) + 1
        return OracleStats(total_requests=sum(categories.values()), categories=categories)
