"""
Capture Orchestrator

Session state machine tying the pipeline together:

    camera --(manual or auto capture)--> confirm
    confirm --(rescan)--> camera
    confirm --(confirm)--> camera  (record emitted, cooldown started)

Every failure is turned into a user-facing message for the consumer;
nothing escapes as a crash.
"""

import asyncio
import math
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, Tuple

from loguru import logger

from labelscan.config import Settings
from labelscan.errors import (
    CaptureFailed,
    CaptureInProgress,
    ConfirmationPending,
    InvalidWeight,
    LabelScanError,
    NothingToConfirm,
    ProductNotSelected,
    UnknownProduct,
)
from labelscan.identification.catalog import Product, ProductCatalog
from labelscan.identification.matcher import MatchMethod, ProductMatcher
from labelscan.identification.weight import extract_kg
from labelscan.ocr.engine_manager import OCREngineManager
from labelscan.vision.preprocessing import ImagePreprocessor
from labelscan.vision.roi_extractor import ROIExtractor
from labelscan.vision.stability import STATUS_PREPARING, StabilityDetector
from labelscan.vision.video_source import VideoSource


class SessionMode(str, Enum):
    CAMERA = "camera"
    CONFIRM = "confirm"


@dataclass
class PendingScanRecord:
    """Recognition awaiting operator confirmation."""
    raw_text: str
    matched_product_id: str = ""
    parsed_kg: Optional[float] = None
    match_method: MatchMethod = MatchMethod.NONE


@dataclass
class ScanRecord:
    """Confirmed scan emitted to the consumer."""
    id: str
    ts: int  # epoch milliseconds
    product_id: str
    product_name: str
    kg: float
    source: str = "ocr"
    raw_text: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ts": self.ts,
            "productId": self.product_id,
            "productName": self.product_name,
            "kg": self.kg,
            "source": self.source,
            "rawText": self.raw_text,
        }


class ScanConsumer(Protocol):
    """Receiver of orchestrator output (usually the UI)."""

    def on_record(self, record: ScanRecord) -> None: ...

    def on_status(self, status: str) -> None: ...

    def on_error(self, message: str) -> None: ...

    def on_progress(self, fraction: float) -> None: ...


def validate_confirmation(
    product_id: Optional[str],
    kg_text: Optional[str],
    catalog: ProductCatalog,
    min_kg: float = 0.05,
    max_kg: float = 50.0,
) -> Tuple[Product, float]:
    """
    Check an operator's confirmation.

    Returns:
        (product, kg)

    Raises:
        ProductNotSelected, InvalidWeight, UnknownProduct
    """
    if not product_id:
        raise ProductNotSelected()

    text = (kg_text or "").strip().replace(",", ".")
    if not text:
        raise InvalidWeight(min_kg, max_kg, detail="Weight is missing")
    try:
        kg = float(text)
    except ValueError:
        raise InvalidWeight(min_kg, max_kg, detail=f"Not a number: {kg_text!r}")

    if not math.isfinite(kg) or kg <= 0 or kg < min_kg or kg > max_kg:
        raise InvalidWeight(min_kg, max_kg, detail=f"Out of range: {kg}")

    product = catalog.get(product_id)
    if product is None:
        raise UnknownProduct(product_id)

    return product, kg


class CaptureOrchestrator:
    """
    Drives one scanning session.

    Usage:
        orchestrator = CaptureOrchestrator(source, manager, catalog, consumer)
        await orchestrator.start()
        ...                                   # auto capture fills orchestrator.pending
        orchestrator.confirm("10567", "1.25")
        await orchestrator.stop()
    """

    def __init__(
        self,
        video_source: VideoSource,
        engine_manager: OCREngineManager,
        catalog: ProductCatalog,
        consumer: ScanConsumer,
        settings: Optional[Settings] = None,
        preprocessor: Optional[ImagePreprocessor] = None,
        matcher: Optional[ProductMatcher] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or Settings()
        self.video_source = video_source
        self.engine_manager = engine_manager
        self.catalog = catalog
        self.consumer = consumer
        self.preprocessor = preprocessor or ImagePreprocessor(self.settings.preprocess_config())
        self.matcher = matcher or ProductMatcher(threshold=self.settings.fuzzy_threshold)

        self._mode = SessionMode.CAMERA
        self._pending: Optional[PendingScanRecord] = None
        self._last_error: Optional[str] = None
        self._status: Optional[str] = None
        self._capture_lock = asyncio.Lock()
        self._warmup_task: Optional[asyncio.Task] = None

        self._sampler = ROIExtractor(
            width_ratio=self.settings.roi_width_ratio,
            height_ratio=self.settings.roi_height_ratio,
        )
        self.detector = StabilityDetector(
            sampler=self._take_sample,
            capture=self._capture_pipeline,
            lock=self._capture_lock,
            engine_ready=lambda: self.engine_manager.is_ready,
            is_active=lambda: self._mode == SessionMode.CAMERA,
            config=self.settings.stability_config(),
            clock=clock,
            on_status=self._emit_status,
        )

    # =========================================================================
    # Observable state
    # =========================================================================

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def pending(self) -> Optional[PendingScanRecord]:
        return self._pending

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def status(self) -> Optional[str]:
        return self._status

    @property
    def capture_in_flight(self) -> bool:
        return self._capture_lock.locked()

    def _emit_status(self, status: str) -> None:
        self._status = status
        self.consumer.on_status(status)

    def _emit_error(self, error: LabelScanError) -> None:
        logger.warning(f"Scan error: {error.code} - {error.message}")
        self._last_error = error.message
        self.consumer.on_error(error.message)

    # =========================================================================
    # Commands
    # =========================================================================

    async def start(self) -> bool:
        """
        Open the camera, warm the OCR engine and start auto capture.

        Returns:
            False if no usable video source; the error stays in last_error
        """
        self._reset_session()
        self._emit_status(STATUS_PREPARING)

        try:
            await self.video_source.open()
            await self.video_source.wait_ready()
        except LabelScanError as e:
            self._emit_error(e)
            return False

        self._warmup_task = asyncio.ensure_future(self._warm_up_engine())
        self.detector.start()
        logger.info("Scan session started")
        return True

    async def _warm_up_engine(self) -> None:
        try:
            await self.engine_manager.get_engine()
        except LabelScanError as e:
            # Not cached; the next capture retries initialization
            self._emit_error(e)

    async def stop(self) -> None:
        """Tear the session down and release every resource."""
        await self.detector.stop()

        warmup, self._warmup_task = self._warmup_task, None
        if warmup is not None and not warmup.done():
            warmup.cancel()

        await self.engine_manager.release()
        self.video_source.close()
        self._reset_session()
        logger.info("Scan session stopped")

    def _reset_session(self) -> None:
        self._mode = SessionMode.CAMERA
        self._pending = None
        self._last_error = None

    async def manual_capture(self) -> bool:
        """
        Capture now, regardless of stability.

        Returns:
            True if the session moved to confirm mode
        """
        if self._mode != SessionMode.CAMERA:
            self._emit_error(ConfirmationPending())
            return False
        if self._capture_lock.locked():
            self._emit_error(CaptureInProgress())
            return False

        async with self._capture_lock:
            ok = await self._capture_pipeline()
        self.detector.begin_cooldown()
        return ok

    def rescan(self) -> None:
        """Discard the pending record and return to the camera."""
        if self._pending is not None:
            logger.info("Pending scan discarded")
        self._pending = None
        self._last_error = None
        self.detector.reset_sample()
        self._mode = SessionMode.CAMERA

    def confirm(self, product_id: Optional[str], kg_text: Optional[str]) -> Optional[ScanRecord]:
        """
        Validate and emit the pending record.

        On a validation error the pending record is kept so the operator
        can correct the input without rescanning.
        """
        if self._mode != SessionMode.CONFIRM or self._pending is None:
            self._emit_error(NothingToConfirm())
            return None

        try:
            product, kg = validate_confirmation(
                product_id,
                kg_text,
                self.catalog,
                min_kg=self.settings.min_kg,
                max_kg=self.settings.max_kg,
            )
        except LabelScanError as e:
            self._emit_error(e)
            return None

        record = ScanRecord(
            id=uuid.uuid4().hex,
            ts=int(time.time() * 1000),
            product_id=product.id,
            product_name=product.name,
            kg=kg,
            source="ocr",
            raw_text=self._pending.raw_text,
        )
        self.consumer.on_record(record)
        logger.info(f"Confirmed {product.id} ({product.name}) {kg} kg")

        self._pending = None
        self._last_error = None
        self.detector.begin_cooldown()
        self._mode = SessionMode.CAMERA
        return record

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _take_sample(self):
        frame = self.video_source.read()
        if frame is None:
            return None
        return self._sampler.sample(frame, width=self.settings.sample_width)

    async def _capture_pipeline(self) -> bool:
        """
        Frame -> preprocess -> OCR -> match. Caller holds the capture lock.

        Returns:
            True on success (mode is then confirm)
        """
        self._last_error = None
        try:
            frame = self.video_source.read()
            loop = asyncio.get_running_loop()
            image = await loop.run_in_executor(
                None,
                self.preprocessor.preprocess,
                frame,
                self.settings.roi_width_ratio,
                self.settings.roi_height_ratio,
                self.settings.max_upload_width,
                self.settings.scale_up,
            )

            job = self.engine_manager.recognize(image)
            async for fraction in job.progress:
                self.consumer.on_progress(fraction)
            result = await job.result()
        except LabelScanError as e:
            self._emit_error(e)
            return False
        except Exception as e:
            logger.exception(f"Capture pipeline failed: {e}")
            self._emit_error(CaptureFailed(str(e)))
            return False

        raw_text = result.text
        match = self.matcher.match(raw_text, self.catalog)
        parsed_kg = extract_kg(raw_text)

        self._pending = PendingScanRecord(
            raw_text=raw_text,
            matched_product_id=match.product_id,
            parsed_kg=parsed_kg,
            match_method=match.method,
        )
        self.detector.reset_sample()
        self._mode = SessionMode.CONFIRM
        logger.info(
            f"Scan ready: product={match.product_id or '-'} ({match.method.value}), kg={parsed_kg}"
        )
        return True
