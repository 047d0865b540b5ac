"""
Computer Vision Module for LabelScan

This module handles all frame processing:
- Video sources
- ROI extraction and sampling
- Preprocessing and binarization for OCR
- Stability detection for automatic capture
"""

from labelscan.vision.preprocessing import EncodedImage, ImagePreprocessor, PreprocessConfig
from labelscan.vision.roi_extractor import RegionOfInterest, ROIExtractor
from labelscan.vision.stability import (
    DetectorPhase,
    DetectorState,
    StabilityConfig,
    StabilityDetector,
    frame_diff,
)
from labelscan.vision.video_source import OpenCVVideoSource, VideoSource

__all__ = [
    "EncodedImage",
    "ImagePreprocessor",
    "PreprocessConfig",
    "RegionOfInterest",
    "ROIExtractor",
    "DetectorPhase",
    "DetectorState",
    "StabilityConfig",
    "StabilityDetector",
    "frame_diff",
    "OpenCVVideoSource",
    "VideoSource",
]
