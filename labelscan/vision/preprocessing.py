"""
Image Preprocessing for LabelScan

Turns a live frame into an OCR-ready image:
- Centered ROI crop
- Bounded upload width
- Lossy re-encode to bound payload size
- Modest upscaling, which helps OCR on small text
- Luma grayscale, fixed contrast boost and hard binarization
"""

from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np
from loguru import logger

from labelscan.errors import EncodeFailed
from labelscan.vision.roi_extractor import ROIExtractor


@dataclass
class PreprocessConfig:
    """Configuration for label preprocessing."""

    # Region of interest
    roi_width_ratio: float = 0.8
    roi_height_ratio: float = 0.25

    # Geometry
    max_width: int = 800
    scale_up: float = 2.0

    # Encoding
    jpeg_quality: int = 80

    # Binarization
    contrast_boost: float = 1.35
    binarize_threshold: int = 160


@dataclass
class EncodedImage:
    """Encoded raster ready for an OCR backend."""
    data: bytes
    width: int
    height: int
    mime_type: str = "image/png"

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str = "image/jpeg") -> "EncodedImage":
        """Wrap already-encoded bytes, reading the dimensions from them."""
        image = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_UNCHANGED)
        if image is None:
            raise EncodeFailed("Could not decode image bytes")
        height, width = image.shape[:2]
        return cls(data=data, width=width, height=height, mime_type=mime_type)


class ImagePreprocessor:
    """
    Frame to OCR image pipeline.

    Usage:
        preprocessor = ImagePreprocessor()
        encoded = preprocessor.preprocess(frame)
        print(encoded.width, encoded.height)
    """

    def __init__(self, config: Optional[PreprocessConfig] = None):
        self.config = config or PreprocessConfig()
        self.roi_extractor = ROIExtractor(
            width_ratio=self.config.roi_width_ratio,
            height_ratio=self.config.roi_height_ratio,
        )

    def preprocess(
        self,
        frame: np.ndarray,
        roi_width_ratio: Optional[float] = None,
        roi_height_ratio: Optional[float] = None,
        max_width: Optional[int] = None,
        scale_up: Optional[float] = None,
    ) -> EncodedImage:
        """
        Crop, scale and binarize a frame.

        Args:
            frame: BGR (or gray/BGRA) frame from the video source
            roi_width_ratio: ROI width as a fraction of the frame width
            roi_height_ratio: ROI height as a fraction of the frame height
            max_width: Maximum upload width in pixels
            scale_up: Upscale factor applied before binarization

        Returns:
            PNG-encoded black and white image

        Raises:
            CameraNotReady, SurfaceUnavailable, EncodeFailed
        """
        cfg = self.config
        max_width = max_width if max_width is not None else cfg.max_width
        scale_up = scale_up if scale_up is not None else cfg.scale_up

        crop = self.roi_extractor.crop(frame, roi_width_ratio, roi_height_ratio)

        crop = self._limit_width(crop, max_width)
        decoded = self._jpeg_roundtrip(crop)
        upscaled = self._upscale(decoded, max_width, scale_up)
        binary = self.binarize(upscaled)

        ok, png = cv2.imencode(".png", binary)
        if not ok:
            raise EncodeFailed("PNG encoding failed")

        height, width = binary.shape[:2]
        logger.debug(f"Preprocessed ROI {crop.shape[1]}x{crop.shape[0]} -> {width}x{height}")
        return EncodedImage(data=png.tobytes(), width=width, height=height)

    def _limit_width(self, image: np.ndarray, max_width: int) -> np.ndarray:
        height, width = image.shape[:2]
        if width <= max_width:
            return image
        scale = max_width / width
        new_height = max(1, int(round(height * scale)))
        return cv2.resize(image, (max_width, new_height), interpolation=cv2.INTER_AREA)

    def _jpeg_roundtrip(self, image: np.ndarray) -> np.ndarray:
        ok, jpeg = cv2.imencode(
            ".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, self.config.jpeg_quality]
        )
        if not ok:
            raise EncodeFailed("JPEG encoding failed")
        decoded = cv2.imdecode(jpeg, cv2.IMREAD_COLOR)
        if decoded is None:
            raise EncodeFailed("JPEG decoding failed")
        return decoded

    def _upscale(self, image: np.ndarray, max_width: int, scale_up: float) -> np.ndarray:
        height, width = image.shape[:2]
        factor = min(max_width, width * scale_up) / width
        if factor == 1.0:
            return image
        new_width = max(1, int(round(width * factor)))
        new_height = max(1, int(round(height * factor)))
        interpolation = cv2.INTER_CUBIC if factor > 1.0 else cv2.INTER_AREA
        return cv2.resize(image, (new_width, new_height), interpolation=interpolation)

    def binarize(self, image: np.ndarray) -> np.ndarray:
        """
        Luma grayscale, contrast boost, then a hard threshold.

        Args:
            image: BGR uint8 raster

        Returns:
            Single-channel uint8 raster containing only 0 and 255
        """
        pixels = image.astype(np.float32)
        blue, green, red = pixels[..., 0], pixels[..., 1], pixels[..., 2]
        luma = 0.299 * red + 0.587 * green + 0.114 * blue

        boosted = np.minimum(255.0, luma * self.config.contrast_boost)
        return np.where(boosted >= self.config.binarize_threshold, 255, 0).astype(np.uint8)
