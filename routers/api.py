from fastapi import APIRouter

from config import settings
from storage.dependencies import get_document_store, use_github_backend
from utils.time_utils import to_iso, utcnow

import logging
logger = logging.getLogger("darlingx_api")

api_router = APIRouter(prefix="/api", tags=["General"])

API_VERSION = "1.0.0"

LIMITS = {
    "quotes_per_page": 50,
    "max_page_size": 100,
    "max_quote_length": 1000,
    "max_author_length": 100,
    "max_question_length": 500,
}


@api_router.get("")
def api_info():
    return {
        "status": "success",
        "message": f"{settings.SITE_NAME} API Server",
        "version": API_VERSION,
        "endpoints": {
            "quotes": "/api/quotes",
            "auth": "/api/auth",
            "admin": "/api/admin",
            "oracle": "/api/oracle",
        },
        "documentation": "/docs",
    }


@api_router.get("/health")
def api_health():
    health = {
        "status": "success",
        "message": "Server is healthy",
        "timestamp": to_iso(utcnow()),
        "environment": settings.ENVIRONMENT,
        "storage": settings.STORAGE_BACKEND,
    }
    if use_github_backend():
        document = get_document_store()
        health["document"] = {
            "local_mode": document.local_mode,
            "analytics": document.get_analytics(),
        }
    return health


@api_router.get("/config")
def public_config():
    """Feature flags and limits the front-end needs"""
    site = {
        "site_name": settings.SITE_NAME,
        "allow_registration": settings.ALLOW_REGISTRATION,
        "require_approval": settings.REQUIRE_APPROVAL,
    }
    if use_github_backend():
        # informational only; the flags above are what the routes enforce
        site["document_settings"] = get_document_store().get_settings()

    return {
        "status": "success",
        "config": {
            "features": {
                "quotes": True,
                "oracle": True,
                "auth": True,
                "admin": True,
                "telegram_login": bool(settings.TELEGRAM_BOT_TOKEN),
            },
            "site": site,
            "limits": LIMITS,
            "version": API_VERSION,
        },
    }
