"""System endpoints for the MintPass challenge service."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from mintpass_challenge.core.settings import settings
from mintpass_challenge.services.errors import StorageUnavailable
from mintpass_challenge.services.store import SqlChallengeStore, get_challenge_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system"])


def get_store_dep() -> SqlChallengeStore:
    """Return the shared challenge record store."""
    return get_challenge_store()


StoreDep = Annotated[SqlChallengeStore, Depends(get_store_dep)]


@router.get("/health")
async def health(store: StoreDep) -> dict[str, str]:
    """Report whether the record store is reachable.

    Raises:
        HTTPException: 503 if the store cannot be reached
    """
    try:
        await store.ping()
    except StorageUnavailable as err:
        logger.warning("Health check failed: %s", err.detail)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="storage unavailable",
        ) from err
    return {"status": "ok", "storage": "ok"}


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes connection strings and RPC URLs, which may embed API keys.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "challenge": {
            "default_chain_ticker": settings.default_chain_ticker,
            "default_contract_addresses": settings.default_contract_addresses,
            "wallet_domain_separator": settings.wallet_domain_separator,
        },
        "chain": {
            "configured_tickers": sorted(settings.chain_providers),
            "rpc_timeout_seconds": settings.chain_rpc_timeout_seconds,
            "circuit_failure_threshold": settings.chain_circuit_failure_threshold,
            "circuit_recovery_seconds": settings.chain_circuit_recovery_seconds,
        },
        "ens": {
            "registry_address": settings.ens_registry_address,
            "domain_suffixes": settings.ens_domain_suffixes,
        },
    }
