"""
CORS configuration.

Browser scanning clients are usually served from another origin than
the API, so origins are configurable per environment.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


@dataclass
class CORSConfig:
    """CORS settings."""

    allowed_origins: List[str] = field(default_factory=list)
    allow_all_origins: bool = False
    allow_credentials: bool = False
    allowed_methods: List[str] = field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    allowed_headers: List[str] = field(default_factory=lambda: ["Content-Type", "X-Request-ID"])
    expose_headers: List[str] = field(default_factory=lambda: ["X-Request-ID"])
    max_age: int = 600


def get_cors_config(environment: Optional[str] = None) -> CORSConfig:
    """Get CORS configuration for the environment."""
    if environment is None:
        environment = os.getenv("LABELSCAN_ENV", "development")

    if environment == "development":
        config = CORSConfig(allow_all_origins=True)
    else:
        config = CORSConfig()

    # Allow additional origins from environment variable
    extra_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if extra_origins:
        config.allowed_origins.extend(
            origin.strip() for origin in extra_origins.split(",") if origin.strip()
        )

    return config


def setup_cors(app: FastAPI, config: Optional[CORSConfig] = None) -> None:
    """Configure CORS middleware for the FastAPI application."""
    if config is None:
        config = get_cors_config()

    allow_origins = ["*"] if config.allow_all_origins else config.allowed_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=config.allow_credentials if not config.allow_all_origins else False,
        allow_methods=config.allowed_methods,
        allow_headers=config.allowed_headers,
        expose_headers=config.expose_headers,
        max_age=config.max_age,
    )
