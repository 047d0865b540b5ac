"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Service instances (catalog, OCR engine manager, matcher)
"""

from typing import Optional

from fastapi import Depends

from labelscan.config import Settings, get_settings
from labelscan.identification.catalog import ProductCatalog, load_catalog
from labelscan.identification.matcher import ProductMatcher
from labelscan.ocr.engine_manager import OCREngineManager
from labelscan.ocr.ocr_engine import build_backend


# =============================================================================
# Service Dependencies (Lazy Loading)
# =============================================================================

class ServiceContainer:
    """
    Container for lazy-loaded service instances.

    Services are initialized on first access; the OCR engine itself is
    only loaded by the first recognition request.
    """

    def __init__(
        self,
        settings: Settings,
        catalog: Optional[ProductCatalog] = None,
        engine_manager: Optional[OCREngineManager] = None,
    ):
        self.settings = settings
        self._catalog = catalog
        self._engine_manager = engine_manager
        self._matcher: Optional[ProductMatcher] = None

    @property
    def catalog(self) -> ProductCatalog:
        if self._catalog is None:
            self._catalog = load_catalog(self.settings.catalog_path)
        return self._catalog

    @property
    def engine_manager(self) -> OCREngineManager:
        if self._engine_manager is None:
            languages = [l for l in self.settings.ocr_languages.split("+") if l]
            self._engine_manager = OCREngineManager(
                build_backend(self.settings),
                languages=languages,
            )
        return self._engine_manager

    @property
    def matcher(self) -> ProductMatcher:
        if self._matcher is None:
            self._matcher = ProductMatcher(threshold=self.settings.fuzzy_threshold)
        return self._matcher

    async def shutdown(self) -> None:
        """Release the OCR engine if it was ever created."""
        if self._engine_manager is not None:
            await self._engine_manager.release()


_service_container: Optional[ServiceContainer] = None


def init_services(settings: Settings) -> ServiceContainer:
    """Initialize service container."""
    global _service_container
    _service_container = ServiceContainer(settings)
    return _service_container


def get_service_container() -> ServiceContainer:
    """Get service container instance."""
    if _service_container is None:
        # Auto-initialize with default settings if not explicitly initialized
        return init_services(get_settings())
    return _service_container


# =============================================================================
# Individual Service Dependencies
# =============================================================================

def get_catalog(
    container: ServiceContainer = Depends(get_service_container),
) -> ProductCatalog:
    """Dependency for the product catalog."""
    return container.catalog


def get_engine_manager(
    container: ServiceContainer = Depends(get_service_container),
) -> OCREngineManager:
    """Dependency for the OCR engine manager."""
    return container.engine_manager


def get_matcher(
    container: ServiceContainer = Depends(get_service_container),
) -> ProductMatcher:
    """Dependency for the product matcher."""
    return container.matcher
