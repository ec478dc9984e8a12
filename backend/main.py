"""
FastAPI application entry point for the VendaFácil billing and access service.

Hotmart webhooks write store entitlements; the app layout reads them back
through the access routes on every navigation.
"""

import os
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from vendafacil import __version__
from vendafacil.api.routes import access
from vendafacil.api.routes import admin_access
from vendafacil.api.routes import billing
from vendafacil.api.routes import health
from vendafacil.api.routes import webhooks_hotmart
from vendafacil.config.plan_catalog import get_plan_catalog
from vendafacil.config.settings import get_settings

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting VendaFácil API")
    settings = get_settings()

    if not settings.webhook_auth_configured:
        logger.warning(
            "HOTMART_WEBHOOK_SECRET not set. Hotmart webhooks are accepted "
            "without token verification. Set it in every deployed environment."
        )

    if not settings.supabase_jwt_secret:
        logger.warning("SUPABASE_JWT_SECRET not set. Authenticated endpoints will return 503.")

    if not settings.database_url:
        logger.error("DATABASE_URL is not set. Database-backed endpoints will return 503.")
        app.state.database_configured = False
    else:
        # Mask credentials for safe logging
        masked = settings.database_url.split("@")[-1] if "@" in settings.database_url else "(local)"
        logger.info("DATABASE_URL configured", extra={"host_db": masked})
        app.state.database_configured = True

    catalog = get_plan_catalog()
    logger.info("Plan catalog ready", extra={
        "aliases": sorted(catalog.aliases()),
        "fallback_plan": catalog.fallback.plan_type,
        "unknown_plan_fallback": settings.hotmart_unknown_plan_fallback,
        "require_event_id": settings.hotmart_require_event_id,
    })

    yield

    logger.info("Shutting down VendaFácil API")


app = FastAPI(
    title="VendaFácil Billing API",
    description="Hotmart subscription ingestion and store access control",
    version=__version__,
    lifespan=lifespan
)

cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include health route (bypasses authentication)
app.include_router(health.router)

# Include Hotmart webhook routes (uses hottok verification, not JWT)
app.include_router(webhooks_hotmart.router)

# Include access read routes (requires authentication)
app.include_router(access.router)

# Include billing routes (requires authentication)
app.include_router(billing.router)

# Include admin routes (requires platform admin)
app.include_router(admin_access.router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions with proper logging."""
    logger.error(
        "Unhandled exception",
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
