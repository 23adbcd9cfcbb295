from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from typing import Optional

from auth.jwt import get_active_user, get_optional_user, can_moderate
from config import settings
from schema.quote import (
    QuoteCreate,
    QuoteUpdate,
    QuoteResponse,
    QuoteListResponse,
    QuoteStatsResponse,
    Pagination,
)
from storage.base import QuoteStore
from storage.dependencies import get_quote_store

import logging
logger = logging.getLogger("darlingx_api")

quote_router = APIRouter(prefix="/api/quotes", tags=["Quotes"])


def _get_quote_or_404(store: QuoteStore, quote_id: int):
    quote = store.get(quote_id)
    if not quote:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Quote not found"
        )
    return quote


def _is_owner_or_moderator(quote, current_user: Optional[dict]) -> bool:
    if not current_user:
        return False
    if can_moderate(current_user):
        return True
    return quote.user_id is not None and quote.user_id == current_user["user_id"]


def _require_owner_or_moderator(quote, current_user: dict):
    """Only the submitter or a moderator/admin may change a quote"""
    if not _is_owner_or_moderator(quote, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )



@quote_router.get('', response_model=QuoteListResponse)
def list_quotes(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    author: Optional[str] = Query(None, max_length=100),
    search: Optional[str] = Query(None, max_length=200),
    category: Optional[str] = Query(None, max_length=50),
    store: QuoteStore = Depends(get_quote_store),
):
    """List approved quotes, newest first, with optional author/text search"""
    quotes, total = store.list(
        page, limit, author=author, search=search, category=category, approved=True
    )
    logger.info(f"Quotes listed: {len(quotes)} of {total}")
    return QuoteListResponse(
        quotes=[QuoteResponse.model_validate(q) for q in quotes],
        pagination=Pagination.build(page, limit, total, len(quotes)),
    )


@quote_router.post('', response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
def create_quote(
    quote_data: QuoteCreate,
    request: Request,
    current_user: Optional[dict] = Depends(get_optional_user),
    store: QuoteStore = Depends(get_quote_store),
):
    """Submit a new quote; authenticated submitters become its owner"""
    quote = store.create({
        "text": quote_data.text,
        "author": quote_data.author,
        "category": quote_data.category,
        "tags": quote_data.tags,
        "user_id": current_user["user_id"] if current_user else None,
        "is_approved": not settings.REQUIRE_APPROVAL,
        "ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    })
    logger.info(f"New quote added: ID {quote.id}")
    return QuoteResponse.model_validate(quote)


@quote_router.get('/random/one', response_model=QuoteResponse)
def get_random_quote(store: QuoteStore = Depends(get_quote_store)):
    """Get one random approved quote"""
    quote = store.random(approved_only=True)
    if not quote:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No quotes available"
        )
    return QuoteResponse.model_validate(quote)


@quote_router.get('/stats/overview', response_model=QuoteStatsResponse)
def get_quote_stats(store: QuoteStore = Depends(get_quote_store)):
    stats = store.stats()
    return QuoteStatsResponse(
        total_quotes=stats.total_quotes,
        today_quotes=stats.today_quotes,
        top_authors=stats.top_authors,
        category_stats=stats.category_stats,
    )


@quote_router.get('/{quote_id}', response_model=QuoteResponse)
def get_quote_by_id(
    quote_id: int,
    current_user: Optional[dict] = Depends(get_optional_user),
    store: QuoteStore = Depends(get_quote_store),
):
    """Get a specific quote by ID; pending quotes only for their submitter and moderators"""
    quote = _get_quote_or_404(store, quote_id)
    if not quote.is_approved and not _is_owner_or_moderator(quote, current_user):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Quote not found"
        )
    return QuoteResponse.model_validate(quote)



@quote_router.put('/{quote_id}', response_model=QuoteResponse)
def update_quote(
    quote_id: int,
    quote_data: QuoteUpdate,
    current_user: dict = Depends(get_active_user),
    store: QuoteStore = Depends(get_quote_store),
):
    """Update an existing quote (owner, moderator or admin)"""
    quote = _get_quote_or_404(store, quote_id)
    _require_owner_or_moderator(quote, current_user)

    # Update only provided fields
    changes = quote_data.model_dump(exclude_none=True)
    if changes:
        quote = store.update(quote_id, changes)
        logger.info(f"Quote updated: ID {quote_id} by user {current_user['user_id']}")

    return QuoteResponse.model_validate(quote)


@quote_router.delete('/{quote_id}')
def delete_quote(
    quote_id: int,
    current_user: dict = Depends(get_active_user),
    store: QuoteStore = Depends(get_quote_store),
):
    """Delete a quote (owner, moderator or admin)"""
    quote = _get_quote_or_404(store, quote_id)
    _require_owner_or_moderator(quote, current_user)

    store.delete(quote_id)
    logger.info(f"Quote deleted: ID {quote_id} by user {current_user['user_id']}")

    return {"message": f"Quote {quote_id} deleted successfully"}
