"""
Capture Module

Scan session state machine and its consumer-facing records.
"""

from labelscan.capture.orchestrator import (
    CaptureOrchestrator,
    PendingScanRecord,
    ScanConsumer,
    ScanRecord,
    SessionMode,
    validate_confirmation,
)

__all__ = [
    "CaptureOrchestrator",
    "PendingScanRecord",
    "ScanConsumer",
    "ScanRecord",
    "SessionMode",
    "validate_confirmation",
]
