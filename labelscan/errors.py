"""
Error taxonomy for LabelScan

Every failure the capture pipeline can report:
- Device errors (camera permission, camera not ready)
- Resource errors (drawing surface, encode/decode)
- Engine errors (initialization, recognition)
- Validation errors raised when a scan is confirmed
"""

from typing import Optional


class LabelScanError(Exception):
    """Base exception for LabelScan errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


# =============================================================================
# Device
# =============================================================================

class CameraPermissionDenied(LabelScanError):
    """The camera could not be opened."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Camera access denied. Check the device permissions.",
            code="CAMERA_PERMISSION_DENIED",
            status_code=503,
            detail=detail,
        )


class CameraNotReady(LabelScanError):
    """The video source has no frame with usable dimensions yet."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Camera is not ready yet.",
            code="CAMERA_NOT_READY",
            status_code=503,
            detail=detail,
        )


# =============================================================================
# Resources
# =============================================================================

class SurfaceUnavailable(LabelScanError):
    """The frame could not be drawn onto a working raster."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Drawing surface is not available.",
            code="SURFACE_UNAVAILABLE",
            status_code=500,
            detail=detail,
        )


class EncodeFailed(LabelScanError):
    """Encoding or decoding an image failed."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Could not create the image.",
            code="ENCODE_FAILED",
            status_code=400,
            detail=detail,
        )


# =============================================================================
# OCR engine
# =============================================================================

class EngineUnavailable(LabelScanError):
    """The OCR engine could not be initialized."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="OCR engine is unavailable.",
            code="ENGINE_UNAVAILABLE",
            status_code=503,
            detail=detail,
        )


class RecognitionFailed(LabelScanError):
    """A recognition call on a ready engine failed."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Reading the label failed. Try again.",
            code="RECOGNITION_FAILED",
            status_code=502,
            detail=detail,
        )


class CaptureInProgress(LabelScanError):
    """A capture is already running."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="A capture is already in progress.",
            code="CAPTURE_IN_PROGRESS",
            status_code=409,
            detail=detail,
        )


class ConfirmationPending(LabelScanError):
    """A capture was requested while a scan waits for confirm or rescan."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Confirm or rescan the current scan first.",
            code="CONFIRMATION_PENDING",
            status_code=409,
            detail=detail,
        )


class NothingToConfirm(LabelScanError):
    """Confirm was requested with no pending scan."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Nothing to confirm.",
            code="NOTHING_TO_CONFIRM",
            status_code=409,
            detail=detail,
        )


class CaptureFailed(LabelScanError):
    """An unexpected error inside the capture pipeline."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Scanning failed. Try again.",
            code="CAPTURE_FAILED",
            status_code=500,
            detail=detail,
        )


# =============================================================================
# Confirmation
# =============================================================================

class ConfirmationError(LabelScanError):
    """Base class for confirm-time validation failures."""

    def __init__(self, message: str, code: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            detail=detail,
        )


class ProductNotSelected(ConfirmationError):
    def __init__(self):
        super().__init__("Select a product.", "PRODUCT_NOT_SELECTED")


class InvalidWeight(ConfirmationError):
    def __init__(self, min_kg: float, max_kg: float, detail: Optional[str] = None):
        super().__init__(
            f"Invalid weight ({min_kg:g} - {max_kg:g} kg).",
            "INVALID_WEIGHT",
            detail=detail,
        )


class UnknownProduct(ConfirmationError):
    def __init__(self, product_id: str):
        super().__init__(
            "Invalid product.",
            "UNKNOWN_PRODUCT",
            detail=f"No product with id '{product_id}' in the catalog",
        )
