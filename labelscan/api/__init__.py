"""
LabelScan HTTP API

FastAPI application exposing label recognition and product matching.
"""

from labelscan.api.main import create_app

__all__ = ["create_app"]
