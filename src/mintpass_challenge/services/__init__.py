# src/mintpass_challenge/services/__init__.py
"""Verification services for the MintPass challenge."""

from .errors import ChallengeError, ConfigurationError

__all__ = [
    "ChallengeError",
    "ConfigurationError",
]
