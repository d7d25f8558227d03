"""Tests for ENS name detection and resolution."""

from __future__ import annotations

import json

import httpx
import pytest
from ens.exceptions import InvalidName
from ens.utils import normal_name_to_hash
from eth_abi import decode, encode
from eth_utils import to_checksum_address

from mintpass_challenge.services.chain import ChainProvider, JsonRpcClient
from mintpass_challenge.services.ens import (
    ADDR_SELECTOR,
    RESOLVER_SELECTOR,
    TEXT_SELECTOR,
    EnsResolver,
    has_domain_suffix,
    is_domain,
)
from mintpass_challenge.services.errors import ChainUnavailable, EnsResolutionFailed

REGISTRY = "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e"
RESOLVER = to_checksum_address("0x" + "4f" * 20)
OWNER = to_checksum_address("0x" + "a1" * 20)


class FakeEnsNode:
    """JSON-RPC handler emulating the ENS registry and one public resolver."""

    def __init__(self) -> None:
        self.resolvers: dict[bytes, str] = {}
        self.addresses: dict[bytes, str] = {}
        self.texts: dict[tuple[bytes, str], str] = {}
        self.fail = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(500)
        body = json.loads(request.content)
        call = body["params"][0]
        data = bytes.fromhex(call["data"][2:])
        selector, args = data[:4], data[4:]
        if call["to"] == REGISTRY and selector == RESOLVER_SELECTOR:
            (node,) = decode(["bytes32"], args)
            reply = encode(["address"], [self.resolvers.get(node, "0x" + "00" * 20)])
        elif call["to"] == RESOLVER and selector == ADDR_SELECTOR:
            (node,) = decode(["bytes32"], args)
            reply = encode(["address"], [self.addresses.get(node, "0x" + "00" * 20)])
        elif call["to"] == RESOLVER and selector == TEXT_SELECTOR:
            node, key = decode(["bytes32", "string"], args)
            reply = encode(["string"], [self.texts.get((node, key), "")])
        else:
            reply = b""
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x" + reply.hex()})


@pytest.fixture()
def node() -> FakeEnsNode:
    return FakeEnsNode()


@pytest.fixture()
def resolver(node: FakeEnsNode) -> EnsResolver:
    rpc = JsonRpcClient(
        ChainProvider(urls=("https://eth.test",), chain_id=1),
        transport=httpx.MockTransport(node),
    )
    return EnsResolver(rpc, REGISTRY)


def _node(name: str) -> bytes:
    return bytes(normal_name_to_hash(name))


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ("alice.eth", True),
        ("sub.alice.eth", True),
        ("community.sol", True),
        ("12D3KooWJbr6tm6C3pGw6UZTUMpiX6kSZvcsbjQz2uHGyZ4hjQGD", False),
        ("0x1234.eth", False),
    ],
)
def test_is_domain(address: str, expected: bool) -> None:
    assert is_domain(address) is expected


def test_has_domain_suffix_is_case_insensitive() -> None:
    assert has_domain_suffix("Alice.ETH", [".eth"])
    assert not has_domain_suffix("alice.sol", [".eth"])


@pytest.mark.asyncio
async def test_resolve_address(node: FakeEnsNode, resolver: EnsResolver) -> None:
    node.resolvers[_node("alice.eth")] = RESOLVER
    node.addresses[_node("alice.eth")] = OWNER

    assert await resolver.resolve_address("alice.eth") == OWNER


@pytest.mark.asyncio
async def test_name_is_normalized(node: FakeEnsNode, resolver: EnsResolver) -> None:
    node.resolvers[_node("alice.eth")] = RESOLVER
    node.addresses[_node("alice.eth")] = OWNER

    assert await resolver.resolve_address("ALICE.eth") == OWNER


@pytest.mark.asyncio
async def test_name_without_resolver(resolver: EnsResolver) -> None:
    assert await resolver.resolve_address("nobody.eth") is None


@pytest.mark.asyncio
async def test_resolver_without_addr_record(node: FakeEnsNode, resolver: EnsResolver) -> None:
    node.resolvers[_node("alice.eth")] = RESOLVER

    assert await resolver.resolve_address("alice.eth") is None


@pytest.mark.asyncio
async def test_resolve_text(node: FakeEnsNode, resolver: EnsResolver) -> None:
    node.resolvers[_node("alice.eth")] = RESOLVER
    node.texts[(_node("alice.eth"), "plebbit-author-address")] = "12D3KooWAuthor"

    assert await resolver.resolve_text("alice.eth", "plebbit-author-address") == "12D3KooWAuthor"
    assert await resolver.resolve_text("alice.eth", "url") is None


@pytest.mark.asyncio
async def test_invalid_name(resolver: EnsResolver, mocker) -> None:
    mocker.patch("mintpass_challenge.services.ens.normalize_name", side_effect=InvalidName("bad label"))

    with pytest.raises(EnsResolutionFailed):
        await resolver.resolve_address("bad.eth")


@pytest.mark.asyncio
async def test_transport_failure_is_chain_unavailable(node: FakeEnsNode, resolver: EnsResolver) -> None:
    node.fail = True

    with pytest.raises(ChainUnavailable):
        await resolver.resolve_address("alice.eth")
