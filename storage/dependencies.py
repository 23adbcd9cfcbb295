"""
Store wiring for the FastAPI app.

STORAGE_BACKEND selects the implementation: "sql" (SQLAlchemy session per
request) or "github" (one shared document handle per process).
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from storage.base import OracleLogStore, QuoteStore, UserStore
from storage.github import GitHubOracleLogStore, GitHubQuoteStore, GitHubUserStore
from storage.github_document import GitHubDocumentStore
from storage.sql import SqlOracleLogStore, SqlQuoteStore, SqlUserStore

logger = logging.getLogger("darlingx_api")

_document_store: Optional[GitHubDocumentStore] = None


def use_github_backend() -> bool:
    return settings.STORAGE_BACKEND.lower() == "github"


def get_document_store() -> GitHubDocumentStore:
    """
    Return the process-wide GitHub document handle so the cache and the
    revision it tracks are shared across requests.
    """
    global _document_store
    if _document_store is None:
        _document_store = GitHubDocumentStore.from_settings(settings)
        logger.info(
            f"GitHub document store: {settings.GITHUB_OWNER}/{settings.GITHUB_REPO}/{settings.GITHUB_DB_PATH}"
        )
    return _document_store


def get_quote_store(db: Session = Depends(get_db)) -> QuoteStore:
    if use_github_backend():
        return GitHubQuoteStore(get_document_store())
    return SqlQuoteStore(db)


def get_user_store(db: Session = Depends(get_db)) -> UserStore:
    if use_github_backend():
        return GitHubUserStore(get_document_store())
    return SqlUserStore(db)


def get_oracle_store(db: Session = Depends(get_db)) -> OracleLogStore:
    if use_github_backend():
        return GitHubOracleLogStore(get_document_store())
    return SqlOracleLogStore(db)
