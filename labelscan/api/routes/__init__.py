"""API route modules."""

from labelscan.api.routes import match, ocr, products

__all__ = ["match", "ocr", "products"]
