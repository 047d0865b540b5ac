"""
LabelScan API

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Depends, FastAPI

from labelscan import __version__
from labelscan.config import Settings, get_settings
from labelscan.api.dependencies import ServiceContainer, get_service_container, init_services
from labelscan.api.middleware import (
    LoggingConfig,
    get_cors_config,
    setup_cors,
    setup_exception_handlers,
    setup_logging,
)
from labelscan.api.routes import match, ocr, products
from labelscan.api.schemas import HealthResponse

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Startup builds the service container; the OCR engine stays lazy
    until the first recognition. Shutdown releases the engine.
    """
    settings = app.state.settings
    logger.info(f"Starting LabelScan in {settings.environment} mode ({settings.ocr_backend} OCR)")

    services = init_services(settings)
    app.state.services = services

    try:
        yield
    finally:
        logger.info("Shutting down LabelScan...")
        await services.shutdown()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="LabelScan",
        description="Label OCR and product matching for weighed goods.",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Middleware (first added = innermost)
    setup_exception_handlers(app)
    setup_cors(app, config=get_cors_config(settings.environment))
    setup_logging(app, config=LoggingConfig(enabled=True))

    api_prefix = "/api/v1"
    app.include_router(ocr.router, prefix=api_prefix)
    app.include_router(match.router, prefix=api_prefix)
    app.include_router(products.router, prefix=api_prefix)

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(
        services: ServiceContainer = Depends(get_service_container),
    ) -> HealthResponse:
        """Report OCR backend, engine state and catalog size."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            ocr_backend=services.settings.ocr_backend,
            engine_state=services.engine_manager.state.value,
            products=len(services.catalog),
        )

    return app


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=8000,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
