# src/mintpass_challenge/main.py
"""Main entry point for the MintPass challenge service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware

from mintpass_challenge.api.v1 import challenges_router, system_router
from mintpass_challenge.core.settings import settings
from mintpass_challenge.services.gateway import get_chain_gateway
from mintpass_challenge.services.store import init_storage

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="NFT-gated anti-spam challenge verification",
    version=settings.app_version,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(challenges_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    # The record store must be usable before any verification is served.
    init_storage()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_chain_gateway().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("mintpass_challenge.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
