"""
API Schemas for LabelScan

Pydantic models for request validation and response serialization:
- OCR models
- Matching models
- System models
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from labelscan.identification.matcher import MatchMethod


# =============================================================================
# OCR Schemas
# =============================================================================

class OCRResponse(BaseModel):
    """Recognized label text."""

    text: str
    usage: Dict[str, int] = Field(default_factory=dict)
    engine: str = "unknown"
    processing_time_ms: float = 0.0


# =============================================================================
# Matching Schemas
# =============================================================================

class MatchRequest(BaseModel):
    """Raw OCR text to match against the catalog."""

    text: str = Field(..., max_length=10000)

    model_config = ConfigDict(
        json_schema_extra={"example": {"text": "SIAN MAKSA 1,25 KG"}}
    )


class MatchResponse(BaseModel):
    """Catalog match and parsed weight for a piece of label text."""

    product_id: str = ""
    product_name: Optional[str] = None
    method: MatchMethod = MatchMethod.NONE
    score: float = 0.0
    kg: Optional[float] = None


class ProductResponse(BaseModel):
    """Catalog product."""

    id: str
    name: str
    keywords: List[str] = Field(default_factory=list)


# =============================================================================
# System Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None
    code: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "OCR engine is unavailable.",
                "detail": "Tesseract is not installed",
                "code": "ENGINE_UNAVAILABLE",
                "timestamp": "2024-01-15T10:30:00Z",
            }
        }
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    ocr_backend: str
    engine_state: str
    products: int
