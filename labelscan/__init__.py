"""
LabelScan

Camera label scanning: stability-triggered capture, OCR and product matching.
"""

__version__ = "0.1.0"
