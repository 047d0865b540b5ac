"""
Pytest configuration and fixtures for LabelScan tests.
"""

import asyncio
import io
from typing import AsyncGenerator, List, Optional

import numpy as np
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from labelscan.api.dependencies import ServiceContainer, get_service_container
from labelscan.api.main import create_app
from labelscan.config import Settings
from labelscan.errors import EngineUnavailable
from labelscan.identification.catalog import ProductCatalog
from labelscan.ocr.engine_manager import OCREngineManager
from labelscan.ocr.ocr_engine import OCRBackend, OCRResult
from labelscan.vision.video_source import VideoSource


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings() -> Settings:
    """Return settings configured for testing."""
    return Settings(
        environment="test",
        debug=True,
        ocr_backend="tesseract",
        catalog_path=None,
    )


@pytest.fixture
def settings() -> Settings:
    return get_test_settings()


# =============================================================================
# Fakes
# =============================================================================

class FakeBackend(OCRBackend):
    """Scriptable OCR backend."""

    name = "fake"

    def __init__(
        self,
        text: str = "",
        init_delay: float = 0.0,
        recognize_delay: float = 0.0,
        init_failures: int = 0,
        recognize_error: Optional[Exception] = None,
    ):
        self.text = text
        self.init_delay = init_delay
        self.recognize_delay = recognize_delay
        self.init_failures = init_failures
        self.recognize_error = recognize_error

        self.init_calls = 0
        self.recognize_calls = 0
        self.disposed: List[object] = []
        self.active = 0
        self.max_active = 0
        self.active_at_dispose: List[int] = []

    async def initialize(self, languages):
        self.init_calls += 1
        if self.init_delay:
            await asyncio.sleep(self.init_delay)
        if self.init_failures > 0:
            self.init_failures -= 1
            raise EngineUnavailable("fake init failure")
        return {"handle": self.init_calls, "languages": list(languages)}

    async def recognize(self, handle, image, on_progress):
        self.recognize_calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            on_progress(0.0)
            if self.recognize_delay:
                await asyncio.sleep(self.recognize_delay)
            on_progress(0.5)
            if self.recognize_error is not None:
                raise self.recognize_error
            on_progress(1.0)
            return OCRResult(text=self.text, engine_used=self.name, usage={"prompt_tokens": 1})
        finally:
            self.active -= 1

    async def dispose(self, handle):
        self.active_at_dispose.append(self.active)
        self.disposed.append(handle)


class FakeVideoSource(VideoSource):
    """Serves a fixed frame, or the frames of a list one read at a time."""

    def __init__(self, frame: Optional[np.ndarray] = None, open_error: Optional[Exception] = None):
        self.frame = frame
        self.open_error = open_error
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    def read(self) -> Optional[np.ndarray]:
        return None if self.frame is None else self.frame.copy()

    @property
    def dimensions(self):
        if self.frame is None:
            return (0, 0)
        height, width = self.frame.shape[:2]
        return (width, height)

    def close(self) -> None:
        self.closed = True


class RecordingConsumer:
    """Collects everything the orchestrator emits."""

    def __init__(self):
        self.records = []
        self.statuses = []
        self.errors = []
        self.progress = []

    def on_record(self, record):
        self.records.append(record)

    def on_status(self, status):
        self.statuses.append(status)

    def on_error(self, message):
        self.errors.append(message)

    def on_progress(self, fraction):
        self.progress.append(fraction)


class FakeClock:
    """Monotonic clock in seconds, advanced by hand."""

    def __init__(self, start_ms: int = 100_000):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms / 1000.0

    def advance_ms(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend(text="ETUPÄÄRUSTO 2,1 KG")


@pytest.fixture
def engine_manager(fake_backend) -> OCREngineManager:
    return OCREngineManager(fake_backend, languages=["fin", "swe"])


@pytest.fixture
def consumer() -> RecordingConsumer:
    return RecordingConsumer()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Catalog Fixtures
# =============================================================================

@pytest.fixture
def foo_bar_catalog() -> ProductCatalog:
    return ProductCatalog.from_records([
        {"id": "A", "name": "Foo", "keywords": ["FOO"]},
        {"id": "B", "name": "Bar", "keywords": ["BAR"]},
    ])


@pytest.fixture
def meat_catalog() -> ProductCatalog:
    return ProductCatalog.from_records([
        {"id": "sian_maksa", "name": "Sian maksa", "keywords": ["MAKSA"]},
        {"id": "sian_etupaarusto", "name": "Etupään rusto", "keywords": ["ETUPÄÄRUSTO"]},
        {"id": "silava", "name": "Silava", "keywords": ["SILAVA"]},
    ])


# =============================================================================
# Image Fixtures
# =============================================================================

@pytest.fixture
def label_frame() -> np.ndarray:
    """640x480 BGR frame with a white label carrying dark bars in the ROI."""
    frame = np.full((480, 640, 3), 90, dtype=np.uint8)
    frame[180:300, 64:576] = 250
    for i in range(6):
        x = 100 + i * 70
        frame[220:260, x:x + 40] = 20
    return frame


@pytest.fixture
def moved_frame(label_frame) -> np.ndarray:
    """The label frame with its bars shifted, as if the label moved."""
    return np.roll(label_frame, 35, axis=1)


@pytest.fixture
def sample_label_png() -> bytes:
    """PNG upload of a small black-on-white label."""
    img = Image.new("RGB", (320, 80), color=(255, 255, 255))
    pixels = np.array(img)
    pixels[30:50, 20:300:20] = 0
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format="PNG")
    return buffer.getvalue()


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def api_backend() -> FakeBackend:
    return FakeBackend(text="SIAN MAKSA\n1,25 KG")


@pytest.fixture
def services(settings, meat_catalog, api_backend) -> ServiceContainer:
    return ServiceContainer(
        settings,
        catalog=meat_catalog,
        engine_manager=OCREngineManager(api_backend),
    )


@pytest_asyncio.fixture(scope="function")
async def app(settings, services):
    """Create FastAPI application for testing."""
    application = create_app(settings)

    # Override dependencies
    application.dependency_overrides[get_service_container] = lambda: services

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
