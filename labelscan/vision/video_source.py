"""
Video Sources

Live frame providers for the capture pipeline. The core only needs the
latest frame and its dimensions; OpenCVVideoSource reads a camera (or a
video file) on a background thread and keeps the newest frame.
"""

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional, Tuple, Union

import cv2
import numpy as np
from loguru import logger

from labelscan.errors import CameraNotReady, CameraPermissionDenied


class VideoSource(ABC):
    """Contract for frame providers."""

    @abstractmethod
    async def open(self) -> None:
        """Acquire the device."""

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Latest BGR frame, or None if none is available yet."""

    @property
    @abstractmethod
    def dimensions(self) -> Tuple[int, int]:
        """(width, height) of the frames; (0, 0) until ready."""

    @abstractmethod
    def close(self) -> None:
        """Release the device."""

    async def wait_ready(self, timeout: float = 5.0, poll_interval: float = 0.05) -> Tuple[int, int]:
        """
        Wait until frames have non-zero dimensions.

        Raises:
            CameraNotReady: timeout elapsed first
        """
        deadline = time.monotonic() + timeout
        while True:
            width, height = self.dimensions
            if width > 0 and height > 0:
                return width, height
            if time.monotonic() >= deadline:
                raise CameraNotReady(f"No frame within {timeout:.1f}s")
            await asyncio.sleep(poll_interval)


def coerce_device(device: Optional[Union[int, str]]) -> Union[int, str]:
    """Integer-like strings are camera indices; anything else is a path or URL."""
    if device is None:
        return 0
    try:
        return int(device)
    except (TypeError, ValueError):
        return device


class OpenCVVideoSource(VideoSource):
    """
    cv2.VideoCapture reader with a background grab thread.

    Usage:
        source = OpenCVVideoSource("0", resolution=(1280, 720))
        await source.open()
        await source.wait_ready()
        frame = source.read()
        source.close()
    """

    def __init__(
        self,
        device: Optional[Union[int, str]] = 0,
        resolution: Optional[Tuple[int, int]] = (1280, 720),
        loop_file: bool = False,
    ):
        """
        Args:
            device: Camera index, device path, or video file
            resolution: Requested (width, height); drivers may adjust it
            loop_file: Restart a video file when it ends
        """
        self.device = coerce_device(device)
        self.resolution = resolution
        self.loop_file = loop_file

        self._cap: Optional[cv2.VideoCapture] = None
        self._frame: Optional[np.ndarray] = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    async def open(self) -> None:
        if self._cap is not None:
            return
        loop = asyncio.get_running_loop()
        self._cap = await loop.run_in_executor(None, self._open_capture)
        self._stop.clear()
        self._thread = threading.Thread(target=self._grab_loop, name="video-source", daemon=True)
        self._thread.start()
        logger.info(f"Video source opened: {self.device}")

    def _open_capture(self) -> cv2.VideoCapture:
        cap = cv2.VideoCapture(self.device)
        if not cap.isOpened():
            cap.release()
            raise CameraPermissionDenied(f"Failed to open camera device: {self.device}")

        if self.resolution and isinstance(self.device, int):
            w, h = int(self.resolution[0]), int(self.resolution[1])
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            actual_w = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            actual_h = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
            if (actual_w, actual_h) != (w, h):
                logger.warning(f"Requested {w}x{h} but got {actual_w}x{actual_h}")
        return cap

    def _grab_loop(self) -> None:
        while not self._stop.is_set():
            ok, frame = self._cap.read()
            if not ok or frame is None:
                if self.loop_file and not isinstance(self.device, int):
                    self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                time.sleep(0.01)
                continue
            with self._lock:
                self._frame = frame

    def read(self) -> Optional[np.ndarray]:
        with self._lock:
            return None if self._frame is None else self._frame.copy()

    @property
    def dimensions(self) -> Tuple[int, int]:
        with self._lock:
            if self._frame is None:
                return (0, 0)
            height, width = self._frame.shape[:2]
            return (width, height)

    def close(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        with self._lock:
            self._frame = None
        logger.info("Video source closed")
