"""FastAPI application factory for the OnTarget EHR API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import Settings, get_config
from .routers import health_router, patients_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    config = get_config()
    logger.info(
        f"Serving records from {config.fhir_base_url} "
        f"for Organization/{config.organization_id}"
    )
    yield


def create_app(config: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Optional configuration. If None, loads from environment.

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = get_config()

    app = FastAPI(
        title="OnTarget EHR API",
        description="Patient records viewer and editor backed by a FHIR R4 server",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router, prefix="/api")
    app.include_router(patients_router, prefix="/api")

    return app


# Default app instance for uvicorn
app = create_app()


def main():
    """Entry point for the ontarget-serve command."""
    import uvicorn

    config = get_config()
    logging.basicConfig(level=logging.DEBUG if config.debug else logging.INFO)
    uvicorn.run(
        "ontarget.api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
    )


if __name__ == "__main__":
    main()
