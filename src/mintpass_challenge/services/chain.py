"""Read-only chain access for MintPass verification.

This module provides:

- RPC provider resolution for a chain ticker (override, configured table, defaults)
- A JSON-RPC client over httpx with timeouts, URL failover and a circuit breaker
- A reader for the MintPass contract's ownership views
- An ERC-1271 validator for smart-contract wallet signatures

Any transport problem surfaces as `ChainUnavailable`. Callers must never read
it as "does not own".
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urlparse

import httpx
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, function_signature_to_4byte_selector, to_checksum_address

from mintpass_challenge.core.settings import DEFAULT_CHAIN_PROVIDERS
from mintpass_challenge.services.errors import (
    ChainUnavailable,
    ConfigurationError,
    UnsupportedChain,
)

# Configure logger for this module
logger = logging.getLogger(__name__)

LOCAL_CHAIN_ID = 1337
MAINNET_CHAIN_ID = 1
_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1"})

OWNS_TOKEN_TYPE_SELECTOR = function_signature_to_4byte_selector("ownsTokenType(address,uint16)")
TOKENS_OF_OWNER_SELECTOR = function_signature_to_4byte_selector("tokensOfOwner(address)")
IS_VALID_SIGNATURE_SELECTOR = function_signature_to_4byte_selector("isValidSignature(bytes32,bytes)")
ERC1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")


@dataclass(frozen=True)
class ChainProvider:
    """RPC endpoints for one chain."""

    urls: tuple[str, ...]
    chain_id: int


@dataclass(frozen=True)
class TokenInfo:
    """A MintPass token held by an owner."""

    token_id: int
    token_type: int


def _is_local_url(url: str) -> bool:
    return (urlparse(url).hostname or "") in _LOCAL_HOSTS


def _provider_from_mapping(chain_ticker: str, entry: Mapping[str, Any]) -> ChainProvider:
    urls = entry.get("urls") or []
    if isinstance(urls, str):
        urls = [urls]
    if not urls:
        raise ConfigurationError(f"Chain provider for {chain_ticker} has no urls")
    chain_id = entry.get("chainId", entry.get("chain_id", MAINNET_CHAIN_ID))
    return ChainProvider(urls=tuple(str(url) for url in urls), chain_id=int(chain_id))


def resolve_provider(
    chain_ticker: str,
    override: str | None = None,
    providers: Mapping[str, Mapping[str, Any]] | None = None,
) -> ChainProvider:
    """Resolve the RPC provider for a chain ticker.

    Precedence is the explicit override URL, then the caller-supplied
    provider table, then the built-in defaults.

    Args:
        chain_ticker: Chain identifier such as "eth" or "base".
        override: Optional RPC URL that wins over everything else.
        providers: Optional operator-configured provider table.

    Returns:
        The resolved provider.

    Raises:
        UnsupportedChain: If no provider is known for the ticker.
    """
    if override:
        if _is_local_url(override):
            chain_id = LOCAL_CHAIN_ID
        else:
            default = DEFAULT_CHAIN_PROVIDERS.get(chain_ticker, {})
            chain_id = int(default.get("chainId", MAINNET_CHAIN_ID))
        return ChainProvider(urls=(override,), chain_id=chain_id)

    if providers and chain_ticker in providers:
        return _provider_from_mapping(chain_ticker, providers[chain_ticker])

    default_entry = DEFAULT_CHAIN_PROVIDERS.get(chain_ticker)
    if default_entry is None:
        raise UnsupportedChain(chain_ticker)
    return _provider_from_mapping(chain_ticker, default_entry)


class CircuitState(Enum):
    """Circuit breaker states for chain RPC access."""
    CLOSED = "closed"      # Normal operation - requests allowed
    OPEN = "open"          # Circuit is open - requests blocked
    HALF_OPEN = "half_open"  # Probing whether the endpoint recovered


@dataclass
class CircuitBreaker:
    """Circuit breaker guarding one RPC provider."""

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    success_threshold: int = 1

    _state: CircuitState = CircuitState.CLOSED
    _failure_count: int = 0
    _success_count: int = 0
    _last_failure_time: float = 0.0

    def is_open(self) -> bool:
        """Check if circuit is open."""
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
            return self._state == CircuitState.OPEN
        return False

    def record_success(self) -> None:
        """Record a successful call."""
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._state = CircuitState.CLOSED
                self._failure_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed call."""
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN

    def get_state(self) -> CircuitState:
        return self._state


class JsonRpcError(RuntimeError):
    """Raised when a node answers with a JSON-RPC error object."""


class JsonRpcClient:
    """Minimal async JSON-RPC client for EVM nodes."""

    def __init__(
        self,
        provider: ChainProvider,
        *,
        timeout_seconds: float = 10.0,
        breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider = provider
        self._timeout_seconds = timeout_seconds
        self._breaker = breaker or CircuitBreaker()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._request_ids = itertools.count(1)

    @property
    def circuit_state(self) -> CircuitState:
        return self._breaker.get_state()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self._timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def _post(self, url: str, method: str, params: list[Any]) -> Any:
        client = await self._ensure_client()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }
        response = await client.post(url, json=payload)
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise JsonRpcError(f"Malformed JSON-RPC reply: {body!r}")
        if body.get("error"):
            raise JsonRpcError(str(body["error"]))
        if "result" not in body:
            raise JsonRpcError("JSON-RPC reply has no result")
        return body["result"]

    async def call(self, method: str, params: list[Any]) -> Any:
        """Invoke an RPC method, trying each provider URL in order.

        Raises:
            ChainUnavailable: If the circuit is open or every URL failed or
                timed out.
        """
        if self._breaker.is_open():
            raise ChainUnavailable(f"Circuit open for chain {self.provider.chain_id}")

        last_error: Exception | None = None
        for url in self.provider.urls:
            try:
                result = await asyncio.wait_for(
                    self._post(url, method, params),
                    timeout=self._timeout_seconds,
                )
            except (httpx.HTTPError, asyncio.TimeoutError, JsonRpcError, ValueError) as exc:
                logger.warning("RPC %s via %s failed: %s", method, url, exc)
                last_error = exc
                continue
            self._breaker.record_success()
            return result

        self._breaker.record_failure()
        raise ChainUnavailable(f"{method} failed on all endpoints: {last_error}")

    async def _hex_call(self, method: str, params: list[Any]) -> bytes:
        result = await self.call(method, params)
        if not isinstance(result, str):
            raise ChainUnavailable(f"{method} returned non-hex result: {result!r}")
        try:
            return decode_hex(result)
        except (ValueError, TypeError) as exc:
            raise ChainUnavailable(f"{method} returned invalid hex: {exc}") from exc

    async def eth_call(self, to: str, data: bytes) -> bytes:
        """Execute a read-only contract call against the latest block."""
        return await self._hex_call("eth_call", [{"to": to, "data": "0x" + data.hex()}, "latest"])

    async def get_code(self, address: str) -> bytes:
        """Return the deployed bytecode at `address`, empty for plain accounts."""
        return await self._hex_call("eth_getCode", [address, "latest"])

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class MintPassContract:
    """Reader for the MintPass contract's ownership views."""

    def __init__(self, rpc: JsonRpcClient, contract_address: str) -> None:
        self._rpc = rpc
        self.address = to_checksum_address(contract_address)

    async def owns_token_type(self, owner: str, token_type: int) -> bool:
        data = OWNS_TOKEN_TYPE_SELECTOR + encode(
            ["address", "uint16"],
            [to_checksum_address(owner), token_type],
        )
        raw = await self._rpc.eth_call(self.address, data)
        try:
            (owns,) = decode(["bool"], raw)
        except DecodingError as exc:
            raise ChainUnavailable(f"Undecodable ownsTokenType reply: {exc}") from exc
        return bool(owns)

    async def tokens_of_owner(self, owner: str) -> list[TokenInfo]:
        """Enumerate (tokenId, tokenType) pairs in contract order."""
        data = TOKENS_OF_OWNER_SELECTOR + encode(["address"], [to_checksum_address(owner)])
        raw = await self._rpc.eth_call(self.address, data)
        try:
            (tokens,) = decode(["(uint256,uint16)[]"], raw)
        except DecodingError as exc:
            raise ChainUnavailable(f"Undecodable tokensOfOwner reply: {exc}") from exc
        return [TokenInfo(token_id=int(token_id), token_type=int(token_type)) for token_id, token_type in tokens]


class ContractWalletValidator:
    """ERC-1271 signature validation for smart-contract wallets."""

    def __init__(self, rpc: JsonRpcClient) -> None:
        self._rpc = rpc

    async def is_valid_signature(self, wallet_address: str, digest: bytes, signature: bytes) -> bool:
        wallet_address = to_checksum_address(wallet_address)
        # Plain accounts cannot sign through ERC-1271.
        if not await self._rpc.get_code(wallet_address):
            return False
        data = IS_VALID_SIGNATURE_SELECTOR + encode(["bytes32", "bytes"], [digest, signature])
        raw = await self._rpc.eth_call(wallet_address, data)
        if len(raw) < 32:
            return False
        try:
            (magic,) = decode(["bytes4"], raw[:32])
        except DecodingError:
            return False
        return magic == ERC1271_MAGIC_VALUE
