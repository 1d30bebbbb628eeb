"""
BoondSync - FastAPI Application Entry Point

Reads, analyzes and replicates BoondManager CRM data between the
production and sandbox environments.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from boondsync.api.endpoints import boondmanager, sync_status
from boondsync.api.errors import register_exception_handlers
from boondsync.core.config import get_settings
from boondsync.core.environment import Environment
from boondsync.services.boond_sync import BoondSyncService

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


def _configured_environments() -> list:
    return [
        env.value for env in Environment
        if settings.get_boond_credentials(env).is_complete
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs startup and shutdown logic.
    """
    logger = logging.getLogger(__name__)

    # Startup
    logger.info("🚀 Starting BoondSync...")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Default BoondManager environment: {settings.boond_default_environment.value}")

    configured = _configured_environments()
    if configured:
        logger.info(f"✅ Credentials configured for: {', '.join(configured)}")
    else:
        logger.warning("⚠️ No BoondManager credentials configured")

    if settings.boond_allow_production_writes:
        logger.warning("⚠️ Production writes are ENABLED")

    app.state.sync_service = BoondSyncService(settings)

    logger.info("✅ Startup complete! Ready to accept requests.")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("👋 Shutting down BoondSync...")
    if app.state.sync_service.run_tracker.is_running():
        app.state.sync_service.cancel_sync()
    logger.info("✅ Shutdown complete")


app = FastAPI(
    title="BoondSync",
    description="BoondManager data quality and production -> sandbox sync",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routers
app.include_router(sync_status.router, prefix="/api/v1", tags=["Monitoring"])
app.include_router(boondmanager.router, prefix="/api/v1", tags=["BoondManager"])


@app.get("/", tags=["Health"])
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "BoondSync",
        "version": "0.1.0",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.app_env,
        "default_boond_environment": settings.boond_default_environment.value,
        "components": {
            "api": "ok",
            "boondmanager_credentials": _configured_environments(),
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "boondsync.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug,
    )
