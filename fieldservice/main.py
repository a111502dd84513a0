"""
Field Service Backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from fieldservice.api.router import api_router
from fieldservice.core.config import settings
from fieldservice.core.errors import (
    DomainError,
    domain_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler,
)
from fieldservice.core.logging import setup_logging
from fieldservice.db.session import SessionLocal, init_sqlite_schema
from fieldservice.services.bootstrap_service import bootstrap_platform_admin

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite") or not parsed.password:
        return url
    netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


app = FastAPI(
    title="Field Service Backend",
    description="Multi-tenant field service management: work orders, dispatch board, time tracking",
    version=settings.VERSION or "1.0.0"
)

# Configure CORS - must be before other middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(DomainError, domain_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))


@app.on_event("startup")
def bootstrap_initial_admin() -> None:
    """
    Create the platform-owner role and initial platform admin if missing.
    This ensures the system always has at least one platform admin.
    """
    init_sqlite_schema()
    db = SessionLocal()
    try:
        bootstrap_platform_admin(db)
    except OperationalError as e:
        db.rollback()
        if "no such table" in str(e).lower():
            logger.warning("Database tables not ready yet (run alembic upgrade head), skipping initial bootstrap")
        else:
            logger.error("Database error during admin bootstrap: %s", e)
    finally:
        db.close()
