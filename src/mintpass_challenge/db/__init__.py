# src/mintpass_challenge/db/__init__.py
"""Database configuration and utilities."""

from .session import Base, SessionLocal, engine

__all__ = ["Base", "engine", "SessionLocal"]
