from collections import OrderedDict
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Literal, Optional

from auth.jwt import require_admin
from schema.quote import QuoteAdminResponse, Pagination
from schema.user import UserResponse, UserStatusUpdate
from storage.base import QuoteStore, UserStore
from storage.dependencies import get_quote_store, get_user_store
from utils.time_utils import as_utc, period_start, start_of_utc_day, utcnow

import logging
logger = logging.getLogger("darlingx_api")

admin_router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)

STATUS_FILTERS = {"pending": False, "approved": True, "all": None}


@admin_router.get("/dashboard")
def dashboard(
    quotes: QuoteStore = Depends(get_quote_store),
    users: UserStore = Depends(get_user_store),
):
    """Headline counts and the latest submissions"""
    today = start_of_utc_day()
    recent, _ = quotes.list(1, 5)
    return {
        "stats": {
            "total_quotes": quotes.count(),
            "pending_quotes": quotes.count(approved=False),
            "today_quotes": quotes.count(since=today),
            "total_users": users.count(),
            "today_users": users.count(since=today),
        },
        "recent_quotes": [QuoteAdminResponse.model_validate(q) for q in recent],
    }


@admin_router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[Literal["user", "admin", "moderator"]] = None,
    users: UserStore = Depends(get_user_store),
):
    records, total = users.list(page, limit, search=search, role=role)
    return {
        "users": [UserResponse.model_validate(u) for u in records],
        "pagination": Pagination.build(page, limit, total, len(records)),
    }


@admin_router.put("/users/{user_id}/status", response_model=UserResponse)
def update_user_status(
    user_id: int,
    data: UserStatusUpdate,
    current_user: dict = Depends(require_admin),
    users: UserStore = Depends(get_user_store),
):
    if not users.get(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user_id == current_user["user_id"] and not data.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account"
        )

    user = users.update(user_id, {"is_active": data.is_active})
    logger.info(f"User {user_id} {'activated' if data.is_active else 'deactivated'} by admin {current_user['user_id']}")
    return UserResponse.model_validate(user)


@admin_router.get("/quotes")
def list_quotes(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status_filter: Literal["pending", "approved", "all"] = Query("all", alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    quotes: QuoteStore = Depends(get_quote_store),
):
    """Moderation queue; includes submitter ip and user agent"""
    records, total = quotes.list(page, limit, search=search, approved=STATUS_FILTERS[status_filter])
    return {
        "quotes": [QuoteAdminResponse.model_validate(q) for q in records],
        "pagination": Pagination.build(page, limit, total, len(records)),
    }


@admin_router.put("/quotes/{quote_id}/approve", response_model=QuoteAdminResponse)
def approve_quote(
    quote_id: int,
    current_user: dict = Depends(require_admin),
    quotes: QuoteStore = Depends(get_quote_store),
):
    if not quotes.get(quote_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quote not found")

    quote = quotes.update(quote_id, {"is_approved": True})
    logger.info(f"Quote approved: ID {quote_id} by admin {current_user['user_id']}")
    return QuoteAdminResponse.model_validate(quote)


@admin_router.delete("/quotes/{quote_id}")
def delete_quote(
    quote_id: int,
    current_user: dict = Depends(require_admin),
    quotes: QuoteStore = Depends(get_quote_store),
):
    if not quotes.get(quote_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quote not found")

    quotes.delete(quote_id)
    logger.info(f"Quote deleted: ID {quote_id} by admin {current_user['user_id']}")
    return {"message": f"Quote {quote_id} deleted successfully"}


def quotes_per_day(records, start, end):
    """
    Bucket quotes by UTC calendar day, oldest first.
    Days without submissions are reported with a zero count.
    """
    days = OrderedDict()
    day = start_of_utc_day(start)
    last = start_of_utc_day(end)
    while day <= last:
        days[day.date().isoformat()] = 0
        day += timedelta(days=1)
    for quote in records:
        key = as_utc(quote.created_at).date().isoformat()
        if key in days:
            days[key] += 1
    return [{"date": date, "count": count} for date, count in days.items()]


@admin_router.get("/analytics")
def analytics(
    period: Literal["1d", "7d", "30d"] = "7d",
    quotes: QuoteStore = Depends(get_quote_store),
    users: UserStore = Depends(get_user_store),
):
    now = utcnow()
    start = period_start(period, now)
    recent = [q for q in quotes.created_since(start) if q.created_at]

    quote_stats = quotes.stats()
    user_stats = users.stats()
    return {
        "period": period,
        "quotes_per_day": quotes_per_day(recent, start, now),
        "top_authors": quote_stats.top_authors,
        "user_stats": {
            "total_users": user_stats.total_users,
            "active_users": user_stats.active_users,
            "today_users": user_stats.today_users,
            "role_stats": user_stats.role_stats,
        },
        "quote_stats": {
            "total_quotes": quote_stats.total_quotes,
            "today_quotes": quote_stats.today_quotes,
            "period_quotes": len(recent),
            "category_stats": quote_stats.category_stats,
        },
    }
