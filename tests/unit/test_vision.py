"""
Unit tests for vision components: ROI, preprocessing, stability.
"""

import asyncio

import cv2
import numpy as np
import pytest

from labelscan.errors import CameraNotReady, EncodeFailed, LabelScanError, SurfaceUnavailable
from labelscan.vision.preprocessing import EncodedImage, ImagePreprocessor, PreprocessConfig
from labelscan.vision.roi_extractor import ROIExtractor, RegionOfInterest, frame_size
from labelscan.vision.stability import (
    STATUS_COOLING_DOWN,
    STATUS_HOLD_STEADY,
    STATUS_PREPARING,
    STATUS_SCANNING,
    DetectorPhase,
    StabilityConfig,
    StabilityDetector,
    frame_diff,
)
from labelscan.vision.video_source import coerce_device
from tests.conftest import FakeClock


class TestROIExtractor:
    """Tests for ROIExtractor class."""

    def test_centered_region(self):
        roi = RegionOfInterest.centered(640, 480, 0.8, 0.25)
        assert (roi.width, roi.height) == (512, 120)
        assert roi.bbox == (64, 180, 576, 300)

    def test_invalid_ratios(self):
        with pytest.raises(ValueError):
            RegionOfInterest.centered(640, 480, 0.0, 0.25)
        with pytest.raises(ValueError):
            RegionOfInterest.centered(640, 480, 0.8, 1.5)

    def test_crop_shape(self, label_frame):
        crop = ROIExtractor().crop(label_frame)
        assert crop.shape == (120, 512, 3)

    def test_crop_is_copy(self, label_frame):
        crop = ROIExtractor().crop(label_frame)
        crop[:] = 0
        assert label_frame[200, 100].sum() > 0

    def test_crop_grayscale_frame(self):
        gray = np.full((100, 200), 128, dtype=np.uint8)
        assert ROIExtractor().crop(gray).shape == (25, 160, 3)

    def test_sample_width(self, label_frame):
        sample = ROIExtractor().sample(label_frame, width=200)
        assert sample.shape[1] == 200
        assert sample.shape[0] == round(120 * 200 / 512)

    def test_frame_errors(self):
        with pytest.raises(CameraNotReady):
            frame_size(None)
        with pytest.raises(CameraNotReady):
            frame_size(np.zeros((0, 10, 3), dtype=np.uint8))
        with pytest.raises(SurfaceUnavailable):
            frame_size("not a frame")
        with pytest.raises(SurfaceUnavailable):
            frame_size(np.zeros((10, 10, 2), dtype=np.uint8))

    def test_empty_roi(self):
        tiny = np.zeros((1, 1, 3), dtype=np.uint8)
        with pytest.raises(SurfaceUnavailable):
            ROIExtractor(width_ratio=0.25, height_ratio=0.25).crop(tiny)


class TestImagePreprocessor:
    """Tests for ImagePreprocessor class."""

    @pytest.fixture
    def preprocessor(self):
        return ImagePreprocessor(PreprocessConfig())

    def test_output_is_binary_png(self, preprocessor, label_frame):
        encoded = preprocessor.preprocess(label_frame)

        assert encoded.mime_type == "image/png"
        decoded = cv2.imdecode(np.frombuffer(encoded.data, np.uint8), cv2.IMREAD_UNCHANGED)
        assert decoded.ndim == 2
        assert set(np.unique(decoded)) <= {0, 255}
        assert (decoded.shape[1], decoded.shape[0]) == (encoded.width, encoded.height)

    def test_width_bounded(self, preprocessor):
        wide = np.full((1080, 1920, 3), 200, dtype=np.uint8)
        encoded = preprocessor.preprocess(wide)
        assert encoded.width == 800

    def test_small_crop_upscaled(self, preprocessor):
        small = np.full((100, 200, 3), 200, dtype=np.uint8)
        encoded = preprocessor.preprocess(small)
        # 160px ROI doubled
        assert encoded.width == 320
        assert encoded.height == 50

    def test_upscale_capped_by_max_width(self, preprocessor):
        frame = np.full((300, 750, 3), 200, dtype=np.uint8)
        encoded = preprocessor.preprocess(frame)
        assert encoded.width == 800

    def test_overrides(self, preprocessor):
        frame = np.full((100, 200, 3), 200, dtype=np.uint8)
        encoded = preprocessor.preprocess(frame, roi_width_ratio=0.5, scale_up=1.0)
        assert encoded.width == 100

    def test_binarize_threshold(self, preprocessor):
        # luma 118 * 1.35 = 159.3 -> black; luma 119 * 1.35 = 160.65 -> white
        image = np.array([[[118, 118, 118], [119, 119, 119]]], dtype=np.uint8)
        assert preprocessor.binarize(image).tolist() == [[0, 255]]

    def test_binarize_uses_luma_weights(self, preprocessor):
        # Pure green is much brighter than pure blue (BGR order)
        image = np.array([[[0, 255, 0], [255, 0, 0]]], dtype=np.uint8)
        assert preprocessor.binarize(image).tolist() == [[255, 0]]

    def test_missing_frame(self, preprocessor):
        with pytest.raises(CameraNotReady):
            preprocessor.preprocess(None)

    def test_errors_are_labelscan_errors(self, preprocessor):
        with pytest.raises(LabelScanError):
            preprocessor.preprocess(np.zeros((4, 4, 5), dtype=np.uint8))

    def test_encoded_image_from_bytes(self, sample_label_png):
        encoded = EncodedImage.from_bytes(sample_label_png, mime_type="image/png")
        assert (encoded.width, encoded.height) == (320, 80)

    def test_encoded_image_bad_bytes(self):
        with pytest.raises(EncodeFailed):
            EncodedImage.from_bytes(b"not an image")


class TestFrameDiff:
    def test_identity(self, label_frame):
        assert frame_diff(label_frame, label_frame.copy()) == 0.0

    def test_symmetric(self, label_frame, moved_frame):
        assert frame_diff(label_frame, moved_frame) == frame_diff(moved_frame, label_frame)
        assert frame_diff(label_frame, moved_frame) > 0

    def test_mean_channel_delta(self):
        a = np.zeros((2, 2, 3), dtype=np.uint8)
        b = np.full((2, 2, 3), 10, dtype=np.uint8)
        assert frame_diff(a, b) == 30.0

    def test_ignores_alpha(self):
        a = np.zeros((2, 2, 4), dtype=np.uint8)
        b = a.copy()
        b[..., 3] = 255
        assert frame_diff(a, b) == 0.0

    def test_shape_mismatch_is_motion(self):
        a = np.zeros((2, 2, 3), dtype=np.uint8)
        b = np.zeros((3, 2, 3), dtype=np.uint8)
        assert frame_diff(a, b) == float("inf")


class TestStabilityDetector:
    """Tests for the stability state machine, driven tick by tick."""

    pytestmark = pytest.mark.asyncio

    @pytest.fixture
    def still(self, label_frame):
        return ROIExtractor().sample(label_frame)

    def _detector(self, samples, clock, ready=True, active=True, lock=None, capture=None):
        captures = []

        async def default_capture():
            captures.append(clock())

        source = iter(samples) if isinstance(samples, list) else None
        statuses = []
        detector = StabilityDetector(
            sampler=(lambda: next(source)) if source is not None else samples,
            capture=capture or default_capture,
            lock=lock or asyncio.Lock(),
            engine_ready=lambda: ready,
            is_active=lambda: active,
            config=StabilityConfig(),
            clock=clock,
            on_status=statuses.append,
        )
        return detector, captures, statuses

    async def _run_ms(self, detector, clock, duration_ms, step_ms=120):
        triggered = 0
        elapsed = 0
        while elapsed < duration_ms:
            if await detector.tick():
                triggered += 1
            clock.advance_ms(step_ms)
            elapsed += step_ms
        return triggered

    async def test_stable_stream_triggers_once(self, still):
        clock = FakeClock()
        detector, captures, statuses = self._detector(lambda: still, clock)

        triggered = await self._run_ms(detector, clock, 1400)

        assert triggered == 1
        assert len(captures) == 1
        assert STATUS_SCANNING in statuses
        assert STATUS_COOLING_DOWN in statuses

    async def test_triggers_again_after_cooldown(self, still):
        clock = FakeClock()
        detector, captures, _ = self._detector(lambda: still, clock)

        await self._run_ms(detector, clock, 4000)

        assert len(captures) >= 2
        gaps = [b - a for a, b in zip(captures, captures[1:])]
        assert all(gap * 1000 >= 800 + 500 for gap in gaps)

    async def test_no_trigger_before_stable_ms(self, still):
        clock = FakeClock()
        detector, captures, _ = self._detector(lambda: still, clock)

        # First sample at 0, stable from 120, so 500ms is not exceeded until 720
        assert await self._run_ms(detector, clock, 600) == 0
        assert detector.state.phase == DetectorPhase.STABILIZING

    async def test_motion_resets_timer(self, label_frame, moved_frame):
        clock = FakeClock()
        extractor = ROIExtractor()
        a, b = extractor.sample(label_frame), extractor.sample(moved_frame)
        frames = [a, a, a, a, b, b, b, b, b, b, b, b]
        detector, captures, statuses = self._detector(frames, clock)

        triggered = await self._run_ms(detector, clock, 120 * 9)

        assert triggered == 0
        assert captures == []
        assert STATUS_HOLD_STEADY in statuses

    async def test_not_ready_engine_never_triggers(self, still):
        clock = FakeClock()
        detector, captures, statuses = self._detector(lambda: still, clock, ready=False)

        assert await self._run_ms(detector, clock, 2000) == 0
        assert statuses[-1] == STATUS_PREPARING

    async def test_inactive_session_ignored(self, still):
        clock = FakeClock()
        detector, captures, _ = self._detector(lambda: still, clock, active=False)

        assert await self._run_ms(detector, clock, 2000) == 0
        assert detector.state.previous_sample is None

    async def test_leaving_camera_drops_sample_keeps_cooldown(self, still):
        clock = FakeClock()
        detector, _, _ = self._detector(lambda: still, clock)
        await self._run_ms(detector, clock, 240)
        assert detector.state.previous_sample is not None
        detector.begin_cooldown()
        cooldown_until = detector.state.cooldown_until

        detector.is_active = lambda: False
        assert not await detector.tick()

        state = detector.state
        assert state.previous_sample is None
        assert state.last_sample_at is None
        assert state.stable_since is None
        assert state.phase == DetectorPhase.COOLDOWN
        assert state.cooldown_until == cooldown_until

    async def test_locked_capture_suppresses(self, still):
        clock = FakeClock()
        lock = asyncio.Lock()
        await lock.acquire()
        detector, captures, _ = self._detector(lambda: still, clock, lock=lock)

        assert await self._run_ms(detector, clock, 2000) == 0
        lock.release()

    async def test_sampling_rate_limited(self, still):
        clock = FakeClock()
        calls = []

        def sampler():
            calls.append(clock())
            return still

        detector, _, _ = self._detector(sampler, clock)
        await self._run_ms(detector, clock, 480, step_ms=16)
        assert len(calls) == 4

    async def test_sampler_errors_skip_tick(self, still):
        clock = FakeClock()

        def sampler():
            raise CameraNotReady()

        detector, captures, _ = self._detector(sampler, clock)
        assert await self._run_ms(detector, clock, 1000) == 0

    async def test_failed_capture_still_cools_down(self, still):
        clock = FakeClock()

        async def failing_capture():
            raise SurfaceUnavailable()

        lock = asyncio.Lock()
        detector, _, _ = self._detector(lambda: still, clock, lock=lock, capture=failing_capture)
        assert await self._run_ms(detector, clock, 840) == 1
        assert detector.state.phase == DetectorPhase.COOLDOWN
        assert not lock.locked()

    async def test_begin_cooldown_resets_timer(self, still):
        clock = FakeClock()
        detector, captures, _ = self._detector(lambda: still, clock)
        await self._run_ms(detector, clock, 480)

        detector.begin_cooldown()

        assert detector.state.phase == DetectorPhase.COOLDOWN
        assert detector.state.stable_since is None

    async def test_stop_drops_sample(self, still):
        clock = FakeClock()
        detector, _, _ = self._detector(lambda: still, clock)
        await detector.tick()
        assert detector.state.previous_sample is not None

        await detector.stop()

        assert detector.state.previous_sample is None
        assert detector.state.phase == DetectorPhase.IDLE

    async def test_start_and_stop_loop(self, still):
        detector, _, _ = self._detector(lambda: still, FakeClock())
        detector.start()
        assert detector.running
        await asyncio.sleep(0.05)
        await detector.stop()
        assert not detector.running


class TestCoerceDevice:
    def test_index(self):
        assert coerce_device("0") == 0
        assert coerce_device(None) == 0

    def test_path(self):
        assert coerce_device("/dev/video2") == "/dev/video2"
