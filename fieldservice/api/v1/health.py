"""
Health check endpoint
"""
from fastapi import APIRouter

from fieldservice.core.config import settings
from fieldservice.core.constants import SERVICE_NAME

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint

    Returns service status and version.
    """
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": settings.VERSION or "dev",
    }
