"""FastAPI status sidecar for ollama-lifecycle."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .._utils import setup_logging
from ..backup import ArchiveManager
from ..client import OllamaClient
from ..config import LifecycleConfig
from ..health import HealthChecker
from ..registry import ModelRegistry
from .config import settings
from .routers import backup, health

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, config: LifecycleConfig) -> None:
    """Attach the service components used by the routers."""
    client = OllamaClient(config.service)
    registry = ModelRegistry(client)
    app.state.config = config
    app.state.health_checker = HealthChecker(client, registry, config)
    app.state.archive_manager = ArchiveManager(registry, config.storage)


def create_app(config: Optional[LifecycleConfig] = None) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        lifecycle_config = config or LifecycleConfig.from_env()
        setup_logging(Path(lifecycle_config.storage.log_dir) / "status-api.log")
        init_state(app, lifecycle_config)
        logger.info(f"Status API watching {lifecycle_config.service.base_url}")
        yield
        logger.info("Shutting down status API")

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Probes stay at the root so container healthchecks need no prefix
    app.include_router(health.router)
    app.include_router(backup.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "docs": f"{settings.api_prefix}/docs"
        }

    return app


def main():
    """Run the FastAPI application."""
    uvicorn.run(
        "ollama_lifecycle.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
