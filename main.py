from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from database import Base, engine

from routers.api import api_router
from routers.auth import auth_router
from routers.quotes import quote_router
from routers.admin import admin_router
from routers.oracle import oracle_router

from models.user import User
from models.quote import Quote
from models.oracle_response import OracleResponse

from config import settings
from storage.base import (
    DocumentConflictError,
    DocumentWriteError,
    DuplicateRecordError,
    RecordNotFoundError,
)
from storage.dependencies import get_document_store, use_github_backend
from utils.time_utils import to_iso, utcnow

from starlette.responses import StreamingResponse, FileResponse
import logging
import logging.handlers
import time
import json
import traceback
from pathlib import Path
from typing import Optional

from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError


app = FastAPI(title="darlingx-api", version="1.0.0")
Base.metadata.create_all(bind=engine)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ✅ Create logs directory
logs_dir = Path(settings.LOG_DIR)
logs_dir.mkdir(parents=True, exist_ok=True)

# ✅ Setup logging configuration inline
def setup_logging():
    """Console plus rotating api.log / errors.log under LOG_DIR"""

    class ColoredFormatter(logging.Formatter):
        COLORS = {
            'DEBUG': '\033[36m',    # Cyan
            'INFO': '\033[32m',     # Green
            'WARNING': '\033[33m',  # Yellow
            'ERROR': '\033[31m',    # Red
            'CRITICAL': '\033[35m', # Magenta
            'RESET': '\033[0m'
        }

        def format(self, record):
            if settings.LOG_COLORS.lower() == "true" and getattr(record, 'color', False):
                level_color = self.COLORS.get(record.levelname, '')
                original_levelname = record.levelname
                record.levelname = f"{level_color}{record.levelname}{self.COLORS['RESET']}"
                formatted = super().format(record)
                record.levelname = original_levelname
                return formatted
            return super().format(record)

    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logger = logging.getLogger("darlingx_api")
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(
        fmt='%(asctime)s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    file_formatter = logging.Formatter(
        fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.handlers.RotatingFileHandler(
        filename=logs_dir / "api.log",
        maxBytes=settings.LOG_MAX_FILE_SIZE,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(file_formatter)

    error_handler = logging.handlers.RotatingFileHandler(
        filename=logs_dir / "errors.log",
        maxBytes=settings.LOG_MAX_FILE_SIZE,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(file_formatter)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    logger.addHandler(error_handler)
    logger.propagate = False

    return logger

# ✅ Initialize logger
logger = setup_logging()

SENSITIVE_FIELDS = {'password', 'token', 'secret', 'authorization', 'hash'}

def mask_sensitive_data(data):
    """Mask sensitive fields in log data"""
    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]
    if not isinstance(data, dict):
        return data

    masked_data = {}
    for key, value in data.items():
        if any(sensitive in str(key).lower() for sensitive in SENSITIVE_FIELDS):
            masked_data[key] = "***MASKED***"
        else:
            masked_data[key] = mask_sensitive_data(value)
    return masked_data

def format_json_for_log(data, max_length=1000):
    """Format data as JSON for logging"""
    try:
        json_str = json.dumps(mask_sensitive_data(data), indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(data)
    if len(json_str) > max_length:
        return json_str[:max_length] + "... [truncated]"
    return json_str


def _safe_content_length(resp) -> str:
    cl = resp.headers.get("content-length")
    if cl is not None:
        return cl
    if isinstance(resp, (StreamingResponse, FileResponse)):
        return "streaming"
    return "unknown"

SAFE_BODY_LOG_BYTES = 64_000

def _is_json(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.split(";")[0].strip().lower() == "application/json"

@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    request_id = f"req_{int(time.time() * 1000)}"
    start_time = time.time()

    client_ip = request.client.host if request.client else "unknown"
    logger.info(f"🔵 [{request_id}] {request.method} {request.url.path} | Client: {client_ip}", extra={"color": True})

    if request.query_params:
        logger.info(f"🔍 [{request_id}] Query: {dict(request.query_params)}", extra={"color": True})

    content_type = request.headers.get("content-type", "")
    if _is_json(content_type):
        raw = await request.body()
        if len(raw) > SAFE_BODY_LOG_BYTES:
            logger.info(f"📄 [{request_id}] Body: <{len(raw)} bytes: skipped (too large)>", extra={"color": True})
        elif raw:
            try:
                parsed = json.loads(raw.decode("utf-8"))
                logger.info(f"📄 [{request_id}] Body (JSON):\n{format_json_for_log(parsed)}", extra={"color": True})
            except (UnicodeDecodeError, ValueError):
                logger.info(f"📄 [{request_id}] Body: <invalid JSON, {len(raw)} bytes>", extra={"color": True})

    if request.headers.get("authorization"):
        logger.info(f"🔑 [{request_id}] Auth: Bearer ***", extra={"color": True})

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(
            f"💥 [{request_id}] EXCEPTION: {request.method} {request.url.path} | Error: {str(e)} | Time: {process_time:.3f}s",
            exc_info=True,
            extra={"color": True},
        )
        raise

    process_time = time.time() - start_time
    emoji = "✅" if response.status_code < 300 else "🔄" if response.status_code < 400 else "⚠️" if response.status_code < 500 else "❌"
    logger.info(
        f"{emoji} [{request_id}] {response.status_code} | "
        f"{process_time:.3f}s | {_safe_content_length(response)} bytes",
        extra={"color": True},
    )

    if process_time > 1.0:
        logger.warning(f"🐌 [{request_id}] SLOW REQUEST: {process_time:.3f}s for {request.method} {request.url.path}", extra={"color": True})

    return response

# ✅ Exception handlers
def _field_name(loc) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path", "header")]
    return ".".join(parts) or str(loc[-1] if loc else "")

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    error_details = exc.errors()

    logger.error(f"🔴 VALIDATION ERROR: {request.method} {request.url.path}", extra={'color': True})
    logger.error(f"🔴 Details: {format_json_for_log(error_details)}")

    return JSONResponse(
        status_code=400,
        content={
            "message": "Validation failed",
            "errors": [
                {"field": _field_name(error.get("loc", ())), "message": error.get("msg", "")}
                for error in error_details
            ],
        }
    )

@app.exception_handler(DuplicateRecordError)
async def duplicate_record_handler(request: Request, exc: DuplicateRecordError):
    logger.warning(f"Duplicate record on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})

@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(DocumentConflictError)
async def document_conflict_handler(request: Request, exc: DocumentConflictError):
    logger.error(f"Document conflict on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=409,
        content={"detail": "The data changed while saving, please retry"}
    )

@app.exception_handler(DocumentWriteError)
async def document_write_handler(request: Request, exc: DocumentWriteError):
    logger.error(f"Document write failed on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Storage is unavailable"}
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"💥 UNHANDLED EXCEPTION: {request.method} {request.url.path} - {str(exc)}",
        exc_info=True,
        extra={'color': True}
    )

    content = {
        "detail": "Internal server error",
        "message": str(exc) if settings.ENVIRONMENT != "production" else "An unexpected error occurred",
    }
    if settings.ENVIRONMENT != "production":
        content["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=500, content=content)

# ✅ Application lifecycle events
@app.on_event("startup")
async def startup_event():
    logger.info(f"🚀 {settings.SITE_NAME} API starting up ({settings.ENVIRONMENT})", extra={'color': True})
    logger.info(f"🗄️ Storage backend: {settings.STORAGE_BACKEND}", extra={'color': True})

    if use_github_backend():
        if get_document_store().test_connection():
            logger.info("✅ GitHub document reachable", extra={'color': True})
        else:
            logger.warning("⚠️ GitHub document unreachable, serving cached or empty data", extra={'color': True})

    logger.info(f"📁 Logs directory: {logs_dir.absolute()}", extra={'color': True})
    logger.info(f"✅ {settings.SITE_NAME} API started", extra={'color': True})

@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"🛑 {settings.SITE_NAME} API shutting down", extra={'color': True})

# ✅ Include routers
app.include_router(api_router)
app.include_router(auth_router)
app.include_router(quote_router)
app.include_router(admin_router)
app.include_router(oracle_router)

# ✅ Health check endpoint
@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": to_iso(utcnow()),
        "message": f"{settings.SITE_NAME} API is running",
        "version": "1.0.0"
    }

# ✅ Root endpoint
@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.SITE_NAME} API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }
