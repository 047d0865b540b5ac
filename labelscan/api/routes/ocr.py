"""
OCR API Routes

Recognize text on an uploaded label image.
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from loguru import logger

from labelscan.api.dependencies import ServiceContainer, get_engine_manager, get_service_container
from labelscan.api.schemas import ErrorResponse, OCRResponse
from labelscan.ocr.engine_manager import OCREngineManager
from labelscan.vision.preprocessing import EncodedImage


router = APIRouter(prefix="/ocr", tags=["ocr"])


@router.post(
    "",
    response_model=OCRResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid image"},
        413: {"model": ErrorResponse, "description": "Image too large"},
        502: {"model": ErrorResponse, "description": "Recognition failed"},
        503: {"model": ErrorResponse, "description": "OCR engine unavailable"},
    },
)
async def recognize_image(
    image: UploadFile = File(..., description="Label image"),
    manager: OCREngineManager = Depends(get_engine_manager),
    container: ServiceContainer = Depends(get_service_container),
) -> OCRResponse:
    """
    Run OCR on a label image.

    The image is sent to the configured engine as-is; clients are
    expected to upload an already preprocessed (binarized) crop.
    """
    content_type = image.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported content type: {content_type or 'unknown'}",
        )

    data = await image.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing image")

    max_bytes = container.settings.max_ocr_upload_bytes
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Image too large: {len(data)} bytes (max {max_bytes})",
        )

    encoded = EncodedImage.from_bytes(data, mime_type=content_type)
    result = await manager.recognize_text(encoded)
    logger.info(f"OCR {encoded.width}x{encoded.height} -> {len(result.text)} chars")

    return OCRResponse(
        text=result.text,
        usage=result.usage,
        engine=result.engine_used,
        processing_time_ms=result.processing_time_ms,
    )
