# tests/conftest.py
from __future__ import annotations

import asyncio
import base64
import os
from collections.abc import Callable, Generator, Iterator
from typing import Any

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from eth_account import Account
from eth_account.messages import encode_defunct
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

from mintpass_challenge.core.settings import Settings
from mintpass_challenge.db.session import Base
from mintpass_challenge.main import app as fastapi_app
from mintpass_challenge.schemas.policy import DEFAULT_ERROR_TEMPLATE, PolicyConfig
from mintpass_challenge.services.chain import TokenInfo
from mintpass_challenge.services.crypto import CryptoService
from mintpass_challenge.services.store import InMemoryChallengeStore, SqlChallengeStore
from mintpass_challenge.services.wallet import wallet_message

TEST_DB_URL = "sqlite://"

CONTRACT_ADDRESS = "0x13d41d6B8EA5C86096bb7a94C3557FCF184491b9"
COMMUNITY_ADDRESS = "community.eth"
START_TIME = 1_700_000_000
ONE_WEEK = 604_800

_TEST_SETTINGS_INSTANCE = Settings()


class FakeClock:
    """Settable replacement for the wall clock."""

    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeMintPass:
    """In-memory MintPass contract keyed by checksum owner address."""

    def __init__(self, address: str = CONTRACT_ADDRESS) -> None:
        self.address = address
        self.holdings: dict[str, list[TokenInfo]] = {}
        self.error: Exception | None = None

    def give(self, owner: str, token_id: int, token_type: int = 0) -> None:
        self.holdings.setdefault(owner, []).append(TokenInfo(token_id=token_id, token_type=token_type))

    async def owns_token_type(self, owner: str, token_type: int) -> bool:
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return any(token.token_type == token_type for token in self.holdings.get(owner, []))

    async def tokens_of_owner(self, owner: str) -> list[TokenInfo]:
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return list(self.holdings.get(owner, []))


class FakeEns:
    """ENS records held in dictionaries."""

    def __init__(self) -> None:
        self.addresses: dict[str, str] = {}
        self.texts: dict[tuple[str, str], str] = {}
        self.lookups: list[str] = []

    async def resolve_address(self, name: str) -> str | None:
        self.lookups.append(name)
        return self.addresses.get(name)

    async def resolve_text(self, name: str, key: str) -> str | None:
        return self.texts.get((name, key))


class FakeContractWallets:
    """ERC-1271 validator answering with a fixed verdict."""

    def __init__(self, valid: bool = False) -> None:
        self.valid = valid
        self.calls: list[tuple[str, bytes, bytes]] = []

    async def is_valid_signature(self, wallet_address: str, digest: bytes, signature: bytes) -> bool:
        self.calls.append((wallet_address, digest, signature))
        return self.valid


class FakeGateway:
    """Chain gateway handing out the fakes above."""

    def __init__(self) -> None:
        self.mintpass_reader = FakeMintPass()
        self.ens_resolver = FakeEns()
        self.contract_wallet_validator = FakeContractWallets()

    def mintpass(self, policy: PolicyConfig) -> FakeMintPass:
        return self.mintpass_reader

    def ens(self, policy: PolicyConfig) -> FakeEns:
        return self.ens_resolver

    def contract_wallets(self, policy: PolicyConfig) -> FakeContractWallets:
        return self.contract_wallet_validator

    async def close(self) -> None:
        return None


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[Callable[[], Session]]:
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    try:
        yield factory
    finally:
        # Ensure each test sees a clean database.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def sql_store(session_factory: Callable[[], Session]) -> SqlChallengeStore:
    return SqlChallengeStore(session_factory)


@pytest.fixture()
def store() -> InMemoryChallengeStore:
    return InMemoryChallengeStore()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance aligned with runtime configuration."""
    return _TEST_SETTINGS_INSTANCE


@pytest.fixture()
def policy() -> PolicyConfig:
    """Default policy: token type 0, one week cooldown, binding on."""
    return PolicyConfig(
        chain_ticker="base",
        contract_address=CONTRACT_ADDRESS,
        required_token_type=0,
        cooldown_seconds=ONE_WEEK,
        bind_to_first_author=True,
        error_template=DEFAULT_ERROR_TEMPLATE,
    )


def _generate_author() -> dict[str, Any]:
    signing_key = Ed25519PrivateKey.generate()
    pubkey_bytes = signing_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    pubkey_b64 = base64.b64encode(pubkey_bytes).decode()
    return {
        "private_key": signing_key,
        "public_key": pubkey_b64,
        "address": CryptoService.author_address_from_public_key(pubkey_b64),
    }


@pytest.fixture()
def author() -> dict[str, Any]:
    """Return a publication signing identity and its derived author address."""
    return _generate_author()


@pytest.fixture()
def other_author() -> dict[str, Any]:
    return _generate_author()


@pytest.fixture()
def wallet_account() -> Any:
    """Return a fresh EOA wallet."""
    return Account.create()


def sign_wallet_proof(account: Any, author_address: str, timestamp: int) -> str:
    message = wallet_message("plebbit-author-wallet", author_address, timestamp)
    signed = Account.sign_message(encode_defunct(text=message), private_key=account.key)
    return "0x" + bytes(signed.signature).hex()


@pytest.fixture()
def sign_wallet() -> Callable[[Any, str, int], str]:
    """Return a helper producing a wallet's signature over an author proof."""
    return sign_wallet_proof


@pytest.fixture()
def make_publication(author: dict[str, Any]) -> Callable[..., dict[str, Any]]:
    """Return a builder of publication payloads in the host's wire format."""

    def _make(
        *,
        author_address: str | None = None,
        wallet: Any = None,
        wallet_address: str | None = None,
        ticker: str = "base",
        timestamp: int | None = START_TIME,
        signature: str | None = None,
        public_key: str | None = None,
        subplebbit_address: str | None = COMMUNITY_ADDRESS,
    ) -> dict[str, Any]:
        address = author_address or author["address"]
        wallets: dict[str, Any] = {}
        if wallet is not None or wallet_address is not None:
            if signature is None and wallet is not None and timestamp is not None:
                signature = sign_wallet_proof(wallet, address, timestamp)
            entry: dict[str, Any] = {
                "address": wallet_address or wallet.address,
                "timestamp": timestamp,
            }
            if signature is not None:
                entry["signature"] = {"signature": signature, "type": "eip191"}
            wallets[ticker] = entry
        publication: dict[str, Any] = {
            "author": {"address": address, "wallets": wallets},
            "signature": {
                "publicKey": public_key or author["public_key"],
                "signature": "c2lnbmF0dXJl",
                "type": "ed25519",
                "signedPropertyNames": ["author", "content"],
            },
            "content": "hello",
        }
        if subplebbit_address is not None:
            publication["subplebbitAddress"] = subplebbit_address
        return publication

    return _make


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
