"""
SQLAlchemy-backed stores (MySQL in production, SQLite in development).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.oracle_response import OracleResponse
from models.quote import Quote
from models.user import User
from storage.base import (
    DuplicateRecordError,
    OracleStats,
    QuoteStats,
    RecordNotFoundError,
    UserStats,
    top_authors,
)
from storage.records import OracleRecord, QuoteRecord, UserRecord
from utils.time_utils import start_of_utc_day, to_naive_utc, utcnow

logger = logging.getLogger("darlingx_api")


def _like(value: str) -> str:
    return f"%{value.lower()}%"


def _paginate(query, page: int, limit: int):
    return query.offset((page - 1) * limit).limit(limit)


class SqlQuoteStore:
    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, quote_id: int) -> Quote:
        quote = self.db.query(Quote).filter(Quote.id == quote_id).first()
        if not quote:
            raise RecordNotFoundError("quotes", quote_id)
        return quote

    def list(self, page=1, limit=50, *, author=None, search=None, category=None, approved=None):
        query = self.db.query(Quote)
        if author:
            query = query.filter(func.lower(Quote.author).like(_like(author)))
        if search:
            query = query.filter(
                or_(
                    func.lower(Quote.text).like(_like(search)),
                    func.lower(Quote.author).like(_like(search)),
                )
            )
        if category:
            query = query.filter(Quote.category == category)
        if approved is not None:
            query = query.filter(Quote.is_approved == approved)

        total = query.count()
        rows = _paginate(query.order_by(Quote.created_at.desc(), Quote.id.desc()), page, limit).all()
        return [QuoteRecord.model_validate(row) for row in rows], total

    def get(self, quote_id: int) -> Optional[QuoteRecord]:
        quote = self.db.query(Quote).filter(Quote.id == quote_id).first()
        return QuoteRecord.model_validate(quote) if quote else None

    def create(self, data: dict) -> QuoteRecord:
        now = to_naive_utc(utcnow())
        quote = Quote(
            text=data["text"],
            author=data["author"],
            user_id=data.get("user_id"),
            category=data.get("category") or "general",
            tags=data.get("tags") or [],
            likes=0,
            is_approved=data.get("is_approved", True),
            ip=data.get("ip"),
            user_agent=data.get("user_agent"),
            created_at=now,
            updated_at=now,
        )
        self.db.add(quote)
        self.db.commit()
        self.db.refresh(quote)
        return QuoteRecord.model_validate(quote)

    def update(self, quote_id: int, changes: dict) -> QuoteRecord:
        quote = self._get_row(quote_id)
        for key, value in changes.items():
            setattr(quote, key, value)
        quote.updated_at = to_naive_utc(utcnow())
        self.db.commit()
        self.db.refresh(quote)
        return QuoteRecord.model_validate(quote)

    def delete(self, quote_id: int) -> None:
        quote = self._get_row(quote_id)
        self.db.delete(quote)
        self.db.commit()

    def random(self, approved_only: bool = True) -> Optional[QuoteRecord]:
        query = self.db.query(Quote)
        if approved_only:
            query = query.filter(Quote.is_approved == True)
        # MySQL spells it RAND()
        shuffle = func.rand() if self.db.get_bind().dialect.name == "mysql" else func.random()
        quote = query.order_by(shuffle).first()
        return QuoteRecord.model_validate(quote) if quote else None

    def count(self, since: Optional[datetime] = None, approved: Optional[bool] = None) -> int:
        query = self.db.query(func.count(Quote.id))
        if since is not None:
            query = query.filter(Quote.created_at >= to_naive_utc(since))
        if approved is not None:
            query = query.filter(Quote.is_approved == approved)
        return query.scalar() or 0

    def created_since(self, start: datetime) -> List[QuoteRecord]:
        rows = (
            self.db.query(Quote)
            .filter(Quote.created_at >= to_naive_utc(start))
            .order_by(Quote.created_at.asc(), Quote.id.asc())
            .all()
        )
        return [QuoteRecord.model_validate(row) for row in rows]

    def stats(self) -> QuoteStats:
        category_rows = (
            self.db.query(func.coalesce(Quote.category, "general"), func.count(Quote.id))
            .group_by(func.coalesce(Quote.category, "general"))
            .all()
        )
        authors = [author for (author,) in self.db.query(Quote.author).all()]
        return QuoteStats(
            total_quotes=self.count(),
            today_quotes=self.count(since=start_of_utc_day()),
            category_stats={category: count for category, count in category_rows},
            top_authors=top_authors(authors),
        )


class SqlUserStore:
    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise RecordNotFoundError("users", user_id)
        return user

    def _commit(self):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Unique constraint violated on users: {e.orig}")
            raise DuplicateRecordError("A user with that username or email already exists") from e

    def list(self, page=1, limit=20, *, search=None, role=None):
        query = self.db.query(User)
        if search:
            query = query.filter(
                or_(
                    func.lower(User.username).like(_like(search)),
                    func.lower(User.email).like(_like(search)),
                )
            )
        if role:
            query = query.filter(User.role == role)

        total = query.count()
        rows = _paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, limit).all()
        return [UserRecord.model_validate(row) for row in rows], total

    def get(self, user_id: int) -> Optional[UserRecord]:
        user = self.db.query(User).filter(User.id == user_id).first()
        return UserRecord.model_validate(user) if user else None

    def find_by_login(self, identifier: str) -> Optional[UserRecord]:
        identifier = identifier.strip().lower()
        user = self.db.query(User).filter(
            or_(User.username == identifier, User.email == identifier)
        ).first()
        return UserRecord.model_validate(user) if user else None

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        user = self.db.query(User).filter(User.email == email.strip().lower()).first()
        return UserRecord.model_validate(user) if user else None

    def find_by_telegram_id(self, telegram_id: str) -> Optional[UserRecord]:
        user = self.db.query(User).filter(User.telegram_id == str(telegram_id)).first()
        return UserRecord.model_validate(user) if user else None

    def create(self, data: dict) -> UserRecord:
        now = to_naive_utc(utcnow())
        user = User(
            username=data["username"].lower(),
            email=data["email"].lower() if data.get("email") else None,
            password_hash=data.get("password_hash"),
            role=data.get("role", "user"),
            is_active=data.get("is_active", True),
            telegram_id=data.get("telegram_id"),
            ip=data.get("ip"),
            user_agent=data.get("user_agent"),
            created_at=now,
            updated_at=now,
        )
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        return UserRecord.model_validate(user)

    def update(self, user_id: int, changes: dict) -> UserRecord:
        user = self._get_row(user_id)
        for key, value in changes.items():
            if key in ("username", "email") and value:
                value = value.lower()
            if key == "last_login_at" and value is not None:
                value = to_naive_utc(value)
            setattr(user, key, value)
        user.updated_at = to_naive_utc(utcnow())
        self._commit()
        self.db.refresh(user)
        return UserRecord.model_validate(user)

    def delete(self, user_id: int) -> None:
        user = self._get_row(user_id)
        self.db.delete(user)
        self.db.commit()

    def record_login(self, user_id: int, ip: Optional[str]) -> UserRecord:
        return self.update(user_id, {"last_login_at": utcnow(), "last_login_ip": ip})

    def count(self, since: Optional[datetime] = None) -> int:
        query = self.db.query(func.count(User.id))
        if since is not None:
            query = query.filter(User.created_at >= to_naive_utc(since))
        return query.scalar() or 0

    def stats(self) -> UserStats:
        role_rows = self.db.query(User.role, func.count(User.id)).group_by(User.role).all()
        active = self.db.query(func.count(User.id)).filter(User.is_active == True).scalar() or 0
        return UserStats(
            total_users=self.count(),
            active_users=active,
            today_users=self.count(since=start_of_utc_day()),
            role_stats={role: count for role, count in role_rows},
        )


class SqlOracleLogStore:
    def __init__(self, db: Session):
        self.db = db

    def record(self, question: str, answer: str, category: str) -> OracleRecord:
        entry = OracleResponse(
            question=question,
            answer=answer,
            category=category,
            created_at=to_naive_utc(utcnow()),
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return OracleRecord.model_validate(entry)

    def stats(self) -> OracleStats:
        rows = (
            self.db.query(OracleResponse.category, func.count(OracleResponse.id))
            .group_by(OracleResponse.category)
            .all()
        )
        categories = {category: count for category, count in rows}
        return OracleStats(total_requests=sum(categories.values()), categories=categories)
