"""
Stability Detector

Auto-trigger for label capture. Samples the ROI at a bounded rate,
compares each sample against the previous one and fires the capture
once the scene has been still long enough:

    idle-waiting -> stabilizing -> triggering -> cooldown -> idle-waiting

Motion at any point resets the stability timer.
"""

import asyncio
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import numpy as np
from loguru import logger

from labelscan.errors import LabelScanError


STATUS_PREPARING = "Preparing"
STATUS_HOLD_STEADY = "Hold the label steady…"
STATUS_SCANNING = "Stable — scanning…"
STATUS_COOLING_DOWN = "Cooling down…"


@dataclass
class StabilityConfig:
    """Tunables for stability detection (times in milliseconds)."""

    # Mean per-pixel RGB delta below which two samples count as still
    threshold: float = 12.0

    # Stillness required before triggering; longer than autofocus hunting
    stable_ms: float = 500.0

    # Grace period after a capture or confirmation
    cooldown_ms: float = 800.0

    # Sampling is rate-limited to roughly 8 Hz
    sample_interval_ms: float = 120.0

    # Loop cadence, about one display refresh
    tick_interval_ms: float = 16.0

    # Sample width in pixels
    sample_width: int = 200


class DetectorPhase(str, Enum):
    """Phase of the stability state machine."""
    IDLE = "idle-waiting"
    STABILIZING = "stabilizing"
    TRIGGERING = "triggering"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class DetectorState:
    """
    Complete detector state, replaced on every tick.

    stable_since is set only while stabilizing, cooldown_until only in
    cooldown. previous_sample is the last ROI sample taken.
    """
    phase: DetectorPhase = DetectorPhase.IDLE
    stable_since: Optional[float] = None
    cooldown_until: Optional[float] = None
    previous_sample: Optional[np.ndarray] = field(default=None, repr=False, compare=False)
    last_sample_at: Optional[float] = None

    def in_cooldown(self, now_ms: float) -> bool:
        return self.cooldown_until is not None and now_ms < self.cooldown_until


def frame_diff(previous: np.ndarray, current: np.ndarray) -> float:
    """
    Mean absolute colour difference between two samples.

    Per-pixel |dR| + |dG| + |dB| averaged over the pixel count. Samples
    of different shapes are treated as maximal motion.
    """
    if previous.shape != current.shape:
        return float("inf")

    pixel_count = previous.shape[0] * previous.shape[1]
    if pixel_count == 0:
        return 0.0

    delta = np.abs(previous.astype(np.int16) - current.astype(np.int16))
    if delta.ndim == 3:
        delta = delta[..., :3]
    return float(delta.sum()) / pixel_count


class StabilityDetector:
    """
    Sampling loop that fires a capture when the ROI stops moving.

    The capture lock is shared with the manual capture path so an
    automatic and a manual capture can never overlap.

    Usage:
        detector = StabilityDetector(
            sampler=lambda: extractor.sample(source.read()),
            capture=orchestrator.auto_capture,
            lock=capture_lock,
            engine_ready=lambda: manager.is_ready,
        )
        detector.start()
        ...
        await detector.stop()
    """

    def __init__(
        self,
        sampler: Callable[[], Optional[np.ndarray]],
        capture: Callable[[], Awaitable[Any]],
        lock: asyncio.Lock,
        engine_ready: Callable[[], bool],
        is_active: Callable[[], bool] = lambda: True,
        config: Optional[StabilityConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        """
        Args:
            sampler: Returns a small ROI sample, or None when no frame is available
            capture: Coroutine function running the full capture pipeline
            lock: In-flight capture lock
            engine_ready: Whether the OCR engine handle is ready
            is_active: Whether the session is in camera mode
            config: Thresholds and timings
            clock: Monotonic clock in seconds
            on_status: Receives status strings when they change
        """
        self.sampler = sampler
        self.capture = capture
        self.lock = lock
        self.engine_ready = engine_ready
        self.is_active = is_active
        self.config = config or StabilityConfig()
        self.clock = clock
        self.on_status = on_status

        self._state = DetectorState()
        self._status: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def status(self) -> Optional[str]:
        return self._status

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _now_ms(self) -> float:
        # Microsecond resolution keeps interval comparisons free of float noise
        return round(self.clock() * 1000.0, 3)

    def _publish(self, status: str) -> None:
        if status == self._status:
            return
        self._status = status
        if self.on_status is not None:
            self.on_status(status)

    # =========================================================================
    # Loop control
    # =========================================================================

    def start(self) -> None:
        """Schedule the sampling loop on the running event loop."""
        if self.running:
            return
        self._state = DetectorState()
        self._task = asyncio.ensure_future(self._run())
        logger.info("Stability detector started")

    async def stop(self) -> None:
        """Stop scheduling ticks and drop the stored sample."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Stability detector stopped")
        self._state = DetectorState()
        self._status = None

    async def _run(self) -> None:
        interval = self.config.tick_interval_ms / 1000.0
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Stability tick failed: {e}")
            await asyncio.sleep(interval)

    def begin_cooldown(self) -> None:
        """Reset the stability timer and suppress sampling for cooldown_ms."""
        now = self._now_ms()
        self._state = replace(
            self._state,
            phase=DetectorPhase.COOLDOWN,
            stable_since=None,
            cooldown_until=now + self.config.cooldown_ms,
        )

    def reset_sample(self) -> None:
        """Forget the stored sample and stability timer, keeping any cooldown."""
        self._state = replace(
            self._state,
            previous_sample=None,
            last_sample_at=None,
            stable_since=None,
        )

    # =========================================================================
    # State machine
    # =========================================================================

    async def tick(self) -> bool:
        """
        Run one tick of the state machine.

        Returns:
            True if this tick triggered a capture
        """
        cfg = self.config
        now = self._now_ms()
        state = self._state

        if not self.is_active():
            self.reset_sample()
            return False
        if self.lock.locked():
            return False

        if state.in_cooldown(now):
            self._publish(STATUS_COOLING_DOWN)
            return False
        if state.phase == DetectorPhase.COOLDOWN:
            state = replace(state, phase=DetectorPhase.IDLE, cooldown_until=None)
            self._state = state

        if state.last_sample_at is not None and now - state.last_sample_at < cfg.sample_interval_ms:
            return False

        try:
            sample = self.sampler()
        except LabelScanError as e:
            logger.debug(f"No sample this tick: {e.message}")
            return False
        if sample is None:
            return False

        previous = state.previous_sample
        state = replace(state, previous_sample=sample, last_sample_at=now)

        if previous is None:
            self._state = state
            return False

        diff = frame_diff(previous, sample)
        ready = self.engine_ready()

        if diff >= cfg.threshold:
            self._state = replace(state, phase=DetectorPhase.IDLE, stable_since=None)
            self._publish(STATUS_HOLD_STEADY if ready else STATUS_PREPARING)
            return False

        since = state.stable_since if state.stable_since is not None else now
        self._state = replace(state, phase=DetectorPhase.STABILIZING, stable_since=since)

        if ready and not self.lock.locked() and now - since > cfg.stable_ms:
            await self._trigger(diff)
            return True

        self._publish(STATUS_HOLD_STEADY if ready else STATUS_PREPARING)
        return False

    async def _trigger(self, diff: float) -> None:
        await self.lock.acquire()
        self._state = replace(self._state, phase=DetectorPhase.TRIGGERING)
        self._publish(STATUS_SCANNING)
        logger.info(f"Label stable (diff={diff:.2f}), triggering capture")

        try:
            await self.capture()
        except LabelScanError as e:
            logger.warning(f"Auto capture failed: {e.code} - {e.message}")
        finally:
            self.lock.release()
            self.begin_cooldown()
