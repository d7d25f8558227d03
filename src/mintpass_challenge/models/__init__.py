# src/mintpass_challenge/models/__init__.py
"""SQLAlchemy models for the MintPass challenge record store."""

from .records import TokenBinding, TokenUsage, WalletTimestamp

__all__ = [
    "TokenBinding",
    "TokenUsage",
    "WalletTimestamp",
]
