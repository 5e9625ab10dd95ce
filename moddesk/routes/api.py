"""Meta routes: health and version."""

import logging

from fastapi import APIRouter

from moddesk.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    settings = get_settings()
    return {"status": "ok", "version": settings.MODDESK_VERSION}
