"""
HOSHIYOMI Moon API

Network service adapter for the moon engine.
"""

from .server import (
    MoonApiServer,
    MoonInfoRequest,
    MoonInfoService,
    build_moon_info_response,
    create_app,
)

__all__ = [
    "MoonApiServer",
    "MoonInfoRequest",
    "MoonInfoService",
    "build_moon_info_response",
    "create_app",
]
