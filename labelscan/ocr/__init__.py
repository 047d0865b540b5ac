"""
OCR & Text Processing Module

Handles text extraction from label images:
- Pluggable OCR backends (Tesseract, vision model)
- Single-flight engine lifecycle management
- Text normalization for matching
"""

from labelscan.ocr.ocr_engine import (
    OCRBackend,
    OCRResult,
    TesseractBackend,
    VisionModelBackend,
    build_backend,
)
from labelscan.ocr.engine_manager import (
    EngineState,
    OCREngineManager,
    ProgressStream,
    RecognitionJob,
)
from labelscan.ocr.text_normalizer import TextNormalizer, normalize_text

__all__ = [
    "OCRBackend",
    "OCRResult",
    "TesseractBackend",
    "VisionModelBackend",
    "build_backend",
    "EngineState",
    "OCREngineManager",
    "ProgressStream",
    "RecognitionJob",
    "TextNormalizer",
    "normalize_text",
]
