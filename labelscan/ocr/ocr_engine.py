"""
OCR Engine Backends

Pluggable recognition backends behind a common async contract:
initialize(languages) -> handle, recognize(handle, image, on_progress),
dispose(handle). Tesseract runs locally; the vision backend calls an
OpenAI-compatible chat completions endpoint.
"""

import asyncio
import base64
import functools
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import cv2
import numpy as np
from loguru import logger

from labelscan.errors import EncodeFailed, EngineUnavailable
from labelscan.vision.preprocessing import EncodedImage

try:
    import pytesseract
    TESSERACT_AVAILABLE = True
except ImportError:
    TESSERACT_AVAILABLE = False
    logger.warning("Tesseract not available. Install with: pip install pytesseract")


ProgressCallback = Callable[[float], None]


@dataclass
class OCRResult:
    """Result of OCR on an image."""
    text: str
    engine_used: str = "unknown"
    processing_time_ms: float = 0.0
    usage: Dict[str, int] = field(default_factory=dict)

    @property
    def has_text(self) -> bool:
        return len(self.text.strip()) > 0


class OCRBackend(ABC):
    """Contract every recognition backend implements."""

    name: str = "base"

    @abstractmethod
    async def initialize(self, languages: List[str]) -> Any:
        """Load the engine for the given languages and return its handle."""

    @abstractmethod
    async def recognize(
        self,
        handle: Any,
        image: EncodedImage,
        on_progress: ProgressCallback,
    ) -> OCRResult:
        """Recognize text, reporting progress fractions in [0, 1]."""

    @abstractmethod
    async def dispose(self, handle: Any) -> None:
        """Tear down a handle returned by initialize."""


def decode_grayscale(data: bytes) -> np.ndarray:
    """Decode encoded image bytes into a single-channel raster."""
    nparr = np.frombuffer(data, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise EncodeFailed("Could not decode image bytes")
    return image


# =============================================================================
# Tesseract
# =============================================================================

@dataclass
class TesseractHandle:
    """Ready Tesseract configuration."""
    languages: str  # e.g. "fin+swe"
    config: str
    version: str = ""


class TesseractBackend(OCRBackend):
    """
    Local Tesseract OCR via pytesseract.

    Tesseract itself reports no progress, so 0.0 is published when a
    recognition starts and 1.0 when it finishes.
    """

    name = "tesseract"

    def __init__(self, config: str = "--oem 1 --psm 6"):
        self.config = config

    async def initialize(self, languages: List[str]) -> TesseractHandle:
        if not TESSERACT_AVAILABLE:
            raise EngineUnavailable("pytesseract is not installed")

        loop = asyncio.get_running_loop()
        try:
            version = await loop.run_in_executor(None, pytesseract.get_tesseract_version)
            installed = await loop.run_in_executor(None, pytesseract.get_languages)
        except pytesseract.TesseractNotFoundError as e:
            raise EngineUnavailable(str(e)) from e

        missing = [lang for lang in languages if lang not in installed]
        if missing:
            raise EngineUnavailable(f"Tesseract language data missing: {', '.join(missing)}")

        logger.info(f"Tesseract {version} initialized (languages={'+'.join(languages)})")
        return TesseractHandle(
            languages="+".join(languages),
            config=self.config,
            version=str(version),
        )

    async def recognize(
        self,
        handle: TesseractHandle,
        image: EncodedImage,
        on_progress: ProgressCallback,
    ) -> OCRResult:
        start_time = time.time()
        on_progress(0.0)

        gray = decode_grayscale(image.data)
        loop = asyncio.get_running_loop()
        text = await loop.run_in_executor(
            None,
            functools.partial(
                pytesseract.image_to_string,
                gray,
                lang=handle.languages,
                config=handle.config,
            ),
        )

        on_progress(1.0)
        return OCRResult(
            text=text.strip(),
            engine_used=self.name,
            processing_time_ms=(time.time() - start_time) * 1000,
        )

    async def dispose(self, handle: TesseractHandle) -> None:
        # Tesseract runs as a subprocess per call; nothing is held open
        logger.debug("Tesseract handle released")


# =============================================================================
# Vision model (OpenAI-compatible)
# =============================================================================

@dataclass
class VisionHandle:
    """Ready client for an OpenAI-compatible endpoint."""
    client: Any
    model: str
    languages: List[str] = field(default_factory=list)


class VisionModelBackend(OCRBackend):
    """
    OCR through a multimodal chat completion.

    The label image is sent as a base64 data URL and the text parts of
    the first choice are joined with newlines.
    """

    name = "vision"
    DEFAULT_BASE_URL = "https://api.deepinfra.com/v1/openai"

    def __init__(
        self,
        api_key: Optional[str],
        model: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        max_bytes: int = 3 * 1024 * 1024,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_bytes = max_bytes

    async def initialize(self, languages: List[str]) -> VisionHandle:
        if not self.api_key:
            raise EngineUnavailable("Missing vision API key")
        if not self.model:
            raise EngineUnavailable("Missing vision model")

        try:
            import openai
        except ImportError as e:
            raise EngineUnavailable(
                "openai package required. Install with: pip install openai"
            ) from e

        client = openai.AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        logger.info(f"Vision OCR client ready (model={self.model}, base_url={self.base_url})")
        return VisionHandle(client=client, model=self.model, languages=list(languages))

    async def recognize(
        self,
        handle: VisionHandle,
        image: EncodedImage,
        on_progress: ProgressCallback,
    ) -> OCRResult:
        if len(image.data) > self.max_bytes:
            raise EncodeFailed(
                f"Image is too large. Max size is {self.max_bytes // (1024 * 1024)}MB"
            )

        start_time = time.time()
        on_progress(0.0)

        encoded = base64.b64encode(image.data).decode("ascii")
        data_url = f"data:{image.mime_type};base64,{encoded}"

        completion = await handle.client.chat.completions.create(
            model=handle.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                },
            ],
        )

        message = completion.choices[0].message if completion.choices else None
        text = _message_text(message.content if message else None)

        usage = {}
        if completion.usage is not None:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens or 0,
                "completion_tokens": completion.usage.completion_tokens or 0,
            }

        on_progress(1.0)
        return OCRResult(
            text=text,
            engine_used=self.name,
            processing_time_ms=(time.time() - start_time) * 1000,
            usage=usage,
        )

    async def dispose(self, handle: VisionHandle) -> None:
        await handle.client.close()
        logger.debug("Vision OCR client closed")


def _message_text(content: Any) -> str:
    """Flatten a chat message content into plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict):
                kind, text = part.get("type"), part.get("text")
            else:
                kind, text = getattr(part, "type", None), getattr(part, "text", None)
            if kind == "text" and text:
                parts.append(text)
        return "\n".join(parts)
    return ""


def build_backend(settings) -> OCRBackend:
    """Create the backend named by settings.ocr_backend."""
    if settings.ocr_backend == "tesseract":
        return TesseractBackend(config=settings.tesseract_config)
    if settings.ocr_backend == "vision":
        return VisionModelBackend(
            api_key=settings.vision_api_key,
            model=settings.vision_model,
            base_url=settings.vision_base_url,
            max_bytes=settings.max_ocr_upload_bytes,
        )
    raise ValueError(f"Unknown OCR backend: {settings.ocr_backend}")
