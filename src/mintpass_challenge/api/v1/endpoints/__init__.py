# src/mintpass_challenge/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .challenges import router as challenges_router
from .system import router as system_router

__all__ = [
    "challenges_router",
    "system_router",
]
