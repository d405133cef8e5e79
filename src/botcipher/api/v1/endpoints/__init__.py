# src/botcipher/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .messages import router as messages_router
from .system import router as system_router
from .system import status_router

__all__ = [
    "messages_router",
    "status_router",
    "system_router",
]
