"""Health check endpoints."""

from fastapi import APIRouter, Depends

from ledgerbot import __version__
from ledgerbot.api.app import get_services
from ledgerbot.container import BotServices

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "ledgerbot"}


@router.get("/health/detailed")
async def detailed_health(services: BotServices = Depends(get_services)):
    """Health check with in-memory table sizes and redacted configuration."""
    return {
        "status": "healthy",
        "service": "ledgerbot",
        "version": __version__,
        "sessions": len(services.sessions),
        "pending_refreshes": services.tokens.pending_refreshes(),
        "notifications": services.deposits is not None,
        "config": services.settings.get_safe_dict(),
    }
