"""
Health check route (no authentication).
"""

from fastapi import APIRouter, Depends

from vendafacil import __version__
from vendafacil.config.settings import Settings, get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(settings: Settings = Depends(get_settings)):
    """
    Liveness plus configuration flags.

    Does not touch the database.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "database_configured": bool(settings.database_url),
        "webhook_auth_configured": settings.webhook_auth_configured,
        "auth_configured": bool(settings.supabase_jwt_secret),
    }
