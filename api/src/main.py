"""
Tsugi API - FastAPI Application

Main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.config import get_settings
from src.core.database import close_db, init_db
from src.core.redis_client import close_redis_client, get_redis_client
from src.routers import agent_router, conversations_router, skills_router
from src.services.sandbox.registry import SandboxRegistry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Suppress noisy third-party loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Tsugi API...")
    settings = get_settings()
    settings.validate_paths()

    logger.info("Initializing database connection...")
    await init_db()
    logger.info("Database connection established")

    app.state.sandbox_registry = SandboxRegistry(tracker=get_redis_client())
    logger.info(f"Sandbox backend: {settings.sandbox_backend}")

    logger.info(f"Tsugi API started in {settings.environment} mode")

    yield

    # Shutdown
    logger.info("Shutting down Tsugi API...")
    await app.state.sandbox_registry.close()
    await close_redis_client()
    await close_db()
    logger.info("Tsugi API shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Tsugi API",
        description="Agent service with sandboxed shell execution and a skill library",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Register routers
    app.include_router(agent_router)
    app.include_router(conversations_router)
    app.include_router(skills_router)

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "name": "Tsugi API",
            "version": "0.1.0",
            "docs": "/docs",
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )
