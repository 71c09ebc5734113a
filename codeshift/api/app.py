"""FastAPI application factory for codeshift.

Creates and configures the FastAPI app with CORS and the migration
routes registered.
"""

import asyncio
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core.migration.orchestrator import MigrationOrchestrator

logger = logging.getLogger(__name__)


def create_app(services, orchestrator=None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: MigrationServices bundle built at startup
        orchestrator: MigrationOrchestrator (built from services if omitted)

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Codeshift API",
        description="AI-assisted code migration",
        version=__version__,
    )

    origins = os.getenv("CODESHIFT_CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store shared dependencies on app state
    app.state.services = services
    app.state.orchestrator = orchestrator or MigrationOrchestrator(services)

    # Register routers
    from .routes.migration import router as migration_router

    app.include_router(migration_router, prefix="/api")

    @app.get("/api/health")
    async def health_check():
        store = services.store
        try:
            database = await asyncio.to_thread(store.ping)
        except Exception as e:
            logger.warning(f"Health check: store ping failed: {e}")
            database = False
        return {
            "status": "ok" if database else "degraded",
            "service": "codeshift",
            "database": database,
            "store": store.backend_name,
        }

    logger.info("FastAPI app created with all routes registered")
    return app
