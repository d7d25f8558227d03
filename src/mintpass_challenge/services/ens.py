"""ENS name detection and resolution over the chain JSON-RPC client."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ens.exceptions import InvalidName
from ens.utils import normal_name_to_hash, normalize_name
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from mintpass_challenge.services.chain import JsonRpcClient
from mintpass_challenge.services.errors import EnsResolutionFailed

logger = logging.getLogger(__name__)

# ENS lives on Ethereum mainnet regardless of the MintPass chain.
ENS_CHAIN_TICKER = "eth"
ZERO_ADDRESS = "0x" + "00" * 20

RESOLVER_SELECTOR = function_signature_to_4byte_selector("resolver(bytes32)")
ADDR_SELECTOR = function_signature_to_4byte_selector("addr(bytes32)")
TEXT_SELECTOR = function_signature_to_4byte_selector("text(bytes32,string)")


def is_domain(address: str) -> bool:
    """Return True for domain-style identifiers such as 'alice.eth'."""
    return "." in address and not address.startswith("0x")


def has_domain_suffix(address: str, suffixes: Iterable[str]) -> bool:
    """Return True if the address ends with one of the recognized name suffixes."""
    lowered = address.lower()
    return any(lowered.endswith(suffix.lower()) for suffix in suffixes)


def _decode_address(raw: bytes) -> str | None:
    if len(raw) < 32:
        return None
    try:
        (address,) = decode(["address"], raw[:32])
    except DecodingError:
        return None
    if int(address, 16) == 0:
        return None
    return to_checksum_address(address)


class EnsResolver:
    """Resolve ENS names through the registry and the name's public resolver."""

    def __init__(self, rpc: JsonRpcClient, registry_address: str) -> None:
        self._rpc = rpc
        self._registry = to_checksum_address(registry_address)

    @staticmethod
    def _node(name: str) -> bytes:
        try:
            return bytes(normal_name_to_hash(normalize_name(name)))
        except InvalidName as exc:
            raise EnsResolutionFailed() from exc

    async def _resolver_for(self, node: bytes) -> str | None:
        raw = await self._rpc.eth_call(self._registry, RESOLVER_SELECTOR + encode(["bytes32"], [node]))
        return _decode_address(raw)

    async def resolve_address(self, name: str) -> str | None:
        """Return the checksum address a name points to, or None if unset.

        Raises:
            EnsResolutionFailed: If the name is not a valid ENS name.
            ChainUnavailable: If the RPC endpoint cannot be reached.
        """
        node = self._node(name)
        resolver = await self._resolver_for(node)
        if resolver is None:
            logger.debug("ENS name %s has no resolver", name)
            return None
        raw = await self._rpc.eth_call(resolver, ADDR_SELECTOR + encode(["bytes32"], [node]))
        return _decode_address(raw)

    async def resolve_text(self, name: str, key: str) -> str | None:
        """Return a text record of a name, or None if unset or empty."""
        node = self._node(name)
        resolver = await self._resolver_for(node)
        if resolver is None:
            return None
        raw = await self._rpc.eth_call(
            resolver,
            TEXT_SELECTOR + encode(["bytes32", "string"], [node, key]),
        )
        if not raw:
            return None
        try:
            (value,) = decode(["string"], raw)
        except DecodingError:
            return None
        return value or None
