# src/mintpass_challenge/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import challenges_router, system_router

__all__ = [
    "challenges_router",
    "system_router",
]
