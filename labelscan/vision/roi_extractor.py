"""
ROI Extractor for LabelScan

Locates the centered label region of interest in a video frame and
cuts it out, either at full resolution for OCR or as a small sample
for stability detection.
"""

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np
from loguru import logger

from labelscan.errors import CameraNotReady, SurfaceUnavailable


@dataclass(frozen=True)
class RegionOfInterest:
    """Rectangle inside a frame, in pixels."""
    x: int
    y: int
    width: int
    height: int

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @classmethod
    def centered(
        cls,
        frame_width: int,
        frame_height: int,
        width_ratio: float,
        height_ratio: float,
    ) -> "RegionOfInterest":
        """ROI of the given size ratios centered in the frame."""
        if not (0 < width_ratio <= 1 and 0 < height_ratio <= 1):
            raise ValueError(
                f"ROI ratios must be in (0, 1], got {width_ratio}x{height_ratio}"
            )
        width = int(round(frame_width * width_ratio))
        height = int(round(frame_height * height_ratio))
        return cls(
            x=(frame_width - width) // 2,
            y=(frame_height - height) // 2,
            width=width,
            height=height,
        )


def frame_size(frame) -> Tuple[int, int]:
    """
    Validate a frame and return its (width, height).

    Raises:
        CameraNotReady: no frame or zero dimensions
        SurfaceUnavailable: not a raster OpenCV can draw from
    """
    if frame is None:
        raise CameraNotReady("No frame available")
    if not isinstance(frame, np.ndarray) or frame.ndim not in (2, 3):
        raise SurfaceUnavailable(f"Unsupported frame type: {type(frame).__name__}")
    if frame.ndim == 3 and frame.shape[2] not in (1, 3, 4):
        raise SurfaceUnavailable(f"Unsupported channel count: {frame.shape[2]}")

    height, width = frame.shape[:2]
    if width == 0 or height == 0:
        raise CameraNotReady(f"Frame has zero dimensions: {width}x{height}")
    return width, height


def to_bgr(frame: np.ndarray) -> np.ndarray:
    """Convert gray or BGRA rasters to 3-channel BGR uint8."""
    if frame.dtype != np.uint8:
        frame = np.clip(frame, 0, 255).astype(np.uint8)
    if frame.ndim == 2 or frame.shape[2] == 1:
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    if frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
    return frame


class ROIExtractor:
    """
    Crop the label ROI out of frames.

    Usage:
        extractor = ROIExtractor(width_ratio=0.8, height_ratio=0.25)
        crop = extractor.crop(frame)
        sample = extractor.sample(frame, width=200)
    """

    def __init__(self, width_ratio: float = 0.8, height_ratio: float = 0.25):
        self.width_ratio = width_ratio
        self.height_ratio = height_ratio

    def region(
        self,
        frame: np.ndarray,
        width_ratio: float = None,
        height_ratio: float = None,
    ) -> RegionOfInterest:
        width, height = frame_size(frame)
        return RegionOfInterest.centered(
            width,
            height,
            width_ratio if width_ratio is not None else self.width_ratio,
            height_ratio if height_ratio is not None else self.height_ratio,
        )

    def crop(
        self,
        frame: np.ndarray,
        width_ratio: float = None,
        height_ratio: float = None,
    ) -> np.ndarray:
        """Return a BGR copy of the ROI."""
        roi = self.region(frame, width_ratio, height_ratio)
        if roi.width == 0 or roi.height == 0:
            raise SurfaceUnavailable(f"Empty ROI: {roi.width}x{roi.height}")

        x1, y1, x2, y2 = roi.bbox
        return to_bgr(frame[y1:y2, x1:x2]).copy()

    def sample(self, frame: np.ndarray, width: int = 200) -> np.ndarray:
        """Low-resolution ROI snapshot used for frame differencing."""
        crop = self.crop(frame)
        h, w = crop.shape[:2]
        target_h = max(1, int(round(h * width / w)))
        interpolation = cv2.INTER_AREA if width < w else cv2.INTER_LINEAR
        sample = cv2.resize(crop, (width, target_h), interpolation=interpolation)
        logger.trace(f"Sampled ROI {w}x{h} -> {width}x{target_h}")
        return sample
