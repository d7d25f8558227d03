"""Process-wide access point to chain RPC clients.

`ChainGateway` keeps one `JsonRpcClient` (and so one HTTP connection pool and
one circuit breaker) per resolved provider, and hands out the contract
readers a verification needs for a given policy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from mintpass_challenge.core.settings import Settings, settings
from mintpass_challenge.schemas.policy import PolicyConfig
from mintpass_challenge.services.chain import (
    CircuitBreaker,
    ContractWalletValidator,
    JsonRpcClient,
    MintPassContract,
    resolve_provider,
)
from mintpass_challenge.services.ens import ENS_CHAIN_TICKER, EnsResolver

logger = logging.getLogger(__name__)


class ChainGateway:
    """Cache of RPC clients keyed by chain ticker and override URL."""

    def __init__(
        self,
        config: Settings = settings,
        *,
        providers: Mapping[str, Mapping[str, Any]] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = config
        self._providers = providers if providers is not None else config.chain_providers
        self._transport = transport
        self._clients: dict[tuple[str, str | None], JsonRpcClient] = {}
        self._lock = asyncio.Lock()

    def _new_client(self, chain_ticker: str, override: str | None) -> JsonRpcClient:
        provider = resolve_provider(chain_ticker, override, self._providers)
        logger.info(
            "Creating RPC client for %s (chain id %s) via %s",
            chain_ticker, provider.chain_id, ", ".join(provider.urls),
        )
        return JsonRpcClient(
            provider,
            timeout_seconds=self._settings.chain_rpc_timeout_seconds,
            breaker=CircuitBreaker(
                failure_threshold=self._settings.chain_circuit_failure_threshold,
                recovery_timeout=self._settings.chain_circuit_recovery_seconds,
            ),
            transport=self._transport,
        )

    def rpc(self, chain_ticker: str, override: str | None = None) -> JsonRpcClient:
        """Return the cached client for a ticker, creating it on first use.

        Raises:
            UnsupportedChain: If no provider is known for the ticker.
        """
        key = (chain_ticker, override or None)
        client = self._clients.get(key)
        if client is None:
            client = self._clients[key] = self._new_client(chain_ticker, override)
        return client

    def mintpass(self, policy: PolicyConfig) -> MintPassContract:
        """Return a reader for the policy's MintPass contract."""
        return MintPassContract(self.rpc(policy.chain_ticker, policy.rpc_url), policy.contract_address)

    def _mainnet_rpc(self, policy: PolicyConfig) -> JsonRpcClient:
        # The operator override redirects mainnet lookups too (local test chains).
        return self.rpc(ENS_CHAIN_TICKER, policy.rpc_url)

    def ens(self, policy: PolicyConfig) -> EnsResolver:
        """Return an ENS resolver; ENS always lives on Ethereum mainnet."""
        return EnsResolver(self._mainnet_rpc(policy), self._settings.ens_registry_address)

    def contract_wallets(self, policy: PolicyConfig) -> ContractWalletValidator:
        """Return the ERC-1271 validator; wallet proofs are checked on Ethereum mainnet."""
        return ContractWalletValidator(self._mainnet_rpc(policy))

    async def close(self) -> None:
        """Close every cached client."""
        async with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            await client.close()


class _GatewaySingleton:
    """Singleton wrapper for the process-wide chain gateway."""

    _instance: ChainGateway | None = None

    @classmethod
    def get_instance(cls) -> ChainGateway:
        if cls._instance is None:
            cls._instance = ChainGateway()
        return cls._instance


def get_chain_gateway() -> ChainGateway:
    """Return a singleton chain gateway instance."""
    return _GatewaySingleton.get_instance()
