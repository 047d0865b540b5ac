"""
OCR Engine Manager

Session-scoped owner of the single OCR engine handle:
- Single-flight initialization shared by concurrent callers
- Failures are not cached; the next call retries
- Recognitions serialized on the handle
- Progress exposed as a restartable async sequence
"""

import asyncio
from enum import Enum
from typing import Any, AsyncIterator, Iterable, List, Optional

from loguru import logger

from labelscan.errors import EngineUnavailable, LabelScanError, RecognitionFailed
from labelscan.ocr.ocr_engine import OCRBackend, OCRResult
from labelscan.vision.preprocessing import EncodedImage


class EngineState(str, Enum):
    """Lifecycle of the engine handle."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    TERMINATED = "terminated"


class ProgressStream:
    """
    Recorded progress events of one recognition.

    Every `async for` over the stream starts again from the first event
    and ends once the recognition has finished.
    """

    def __init__(self):
        self._events: List[float] = []
        self._closed = False
        self._changed = asyncio.Event()

    def publish(self, value: float) -> None:
        if self._closed:
            return
        self._events.append(min(1.0, max(0.0, float(value))))
        self._wake()

    def close(self) -> None:
        self._closed = True
        self._wake()

    def _wake(self) -> None:
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def events(self) -> List[float]:
        return list(self._events)

    def __aiter__(self) -> AsyncIterator[float]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[float]:
        index = 0
        while True:
            while index < len(self._events):
                yield self._events[index]
                index += 1
            if self._closed:
                return
            await self._changed.wait()


class RecognitionJob:
    """A running recognition: its progress stream plus the awaitable result."""

    def __init__(self, task: "asyncio.Task[OCRResult]", progress: ProgressStream):
        self._task = task
        self.progress = progress

    def done(self) -> bool:
        return self._task.done()

    async def result(self) -> OCRResult:
        return await self._task


class OCREngineManager:
    """
    Lazily initialized, reusable OCR engine handle.

    Usage:
        manager = OCREngineManager(TesseractBackend(), languages=["fin", "swe"])
        job = manager.recognize(image)
        async for fraction in job.progress:
            print(fraction)
        result = await job.result()
        await manager.release()
    """

    def __init__(self, backend: OCRBackend, languages: Iterable[str] = ("fin", "swe")):
        self.backend = backend
        self.languages = list(languages)

        self._handle: Any = None
        self._init_task: Optional[asyncio.Task] = None
        self._state = EngineState.UNINITIALIZED
        self._recognize_lock = asyncio.Lock()

        # Number of initialization sequences started
        self.initializations = 0

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._handle is not None

    async def get_engine(self) -> Any:
        """
        Return the ready handle, initializing it on first use.

        Raises:
            EngineUnavailable: initialization failed or was released midway
        """
        if self._handle is not None:
            return self._handle

        if self._init_task is None:
            self._state = EngineState.INITIALIZING
            self._init_task = asyncio.ensure_future(self._initialize())
            self._init_task.add_done_callback(_consume_exception)

        # Shielded so a cancelled caller does not abort a shared initialization
        return await asyncio.shield(self._init_task)

    async def _initialize(self) -> Any:
        self.initializations += 1
        logger.info(f"Initializing {self.backend.name} OCR engine ({'+'.join(self.languages)})")
        this_task = asyncio.current_task()

        try:
            handle = await self.backend.initialize(self.languages)
        except Exception as e:
            if self._init_task is this_task:
                self._init_task = None
                self._state = EngineState.UNINITIALIZED
            logger.error(f"OCR engine initialization failed: {e}")
            if isinstance(e, EngineUnavailable):
                raise
            raise EngineUnavailable(str(e)) from e

        if self._init_task is not this_task:
            # Released while initializing: nobody owns this handle
            logger.info("OCR engine finished initializing after release; disposing it")
            await self._dispose(handle)
            raise EngineUnavailable("OCR engine was released during initialization")

        self._handle = handle
        self._init_task = None
        self._state = EngineState.READY
        logger.info("OCR engine ready")
        return handle

    def recognize(self, image: EncodedImage) -> RecognitionJob:
        """Start a recognition and return its job immediately."""
        progress = ProgressStream()
        task = asyncio.ensure_future(self._run_recognition(image, progress))
        task.add_done_callback(_consume_exception)
        return RecognitionJob(task, progress)

    async def recognize_text(self, image: EncodedImage) -> OCRResult:
        """Recognize and wait for the result, ignoring progress."""
        return await self.recognize(image).result()

    async def _run_recognition(self, image: EncodedImage, progress: ProgressStream) -> OCRResult:
        try:
            handle = await self.get_engine()
            async with self._recognize_lock:
                try:
                    result = await self.backend.recognize(handle, image, progress.publish)
                except LabelScanError:
                    raise
                except Exception as e:
                    logger.error(f"OCR recognition failed: {e}")
                    raise RecognitionFailed(str(e)) from e
            logger.debug(
                f"Recognized {len(result.text)} chars in {result.processing_time_ms:.0f}ms"
            )
            return result
        finally:
            progress.close()

    async def release(self) -> None:
        """
        Dispose the handle and forget any in-flight initialization.

        A recognition that already holds the handle finishes before the
        handle is disposed.
        """
        handle, self._handle = self._handle, None
        self._init_task = None
        self._state = EngineState.TERMINATED
        if handle is not None:
            async with self._recognize_lock:
                await self._dispose(handle)
            logger.info("OCR engine released")

    async def _dispose(self, handle: Any) -> None:
        try:
            await self.backend.dispose(handle)
        except Exception as e:
            logger.warning(f"Disposing OCR engine failed: {e}")


def _consume_exception(task: asyncio.Task) -> None:
    """Mark a task's exception as retrieved; callers handle it when awaiting."""
    if not task.cancelled():
        task.exception()
