"""Wallet ownership proofs attached to publication authors.

An author proves control of a wallet by signing, with the wallet key, a
compact JSON message binding the wallet to the author address and a
timestamp. Timestamps must never go backwards per wallet, which rejects
replays of captured proofs.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from eth_account import Account
from eth_account.messages import SignableMessage, encode_defunct
from eth_utils import is_address, keccak, to_checksum_address

from mintpass_challenge.schemas.policy import PolicyConfig
from mintpass_challenge.schemas.publication import AuthorWallet, Publication
from mintpass_challenge.services.crypto import CryptoService
from mintpass_challenge.services.ens import is_domain
from mintpass_challenge.services.errors import (
    DomainResolutionMismatch,
    InvalidAddressFormat,
    InvalidSignature,
    MissingSignature,
    StaleSignature,
    WalletNotSet,
)
from mintpass_challenge.services.locks import KeyedLock
from mintpass_challenge.services.store import ChallengeStore, record_key

logger = logging.getLogger(__name__)

# EVM tickers sharing one address space; a wallet declared for one serves the other.
INTERCHANGEABLE_TICKERS: dict[str, str] = {
    "eth": "base",
    "base": "eth",
}


class NameLookup(Protocol):
    async def resolve_address(self, name: str) -> str | None: ...

    async def resolve_text(self, name: str, key: str) -> str | None: ...


class ContractSignatureCheck(Protocol):
    async def is_valid_signature(self, wallet_address: str, digest: bytes, signature: bytes) -> bool: ...


def find_wallet(publication: Publication, chain_ticker: str) -> AuthorWallet | None:
    """Return the author's wallet for a ticker, falling back to its EVM twin."""
    wallets = publication.author.wallets
    wallet = wallets.get(chain_ticker)
    if wallet is None and chain_ticker in INTERCHANGEABLE_TICKERS:
        wallet = wallets.get(INTERCHANGEABLE_TICKERS[chain_ticker])
    if wallet is None or not isinstance(wallet.address, str) or not wallet.address:
        return None
    return wallet


def wallet_message(domain_separator: str, author_address: str, timestamp: int) -> str:
    """Return the canonical text a wallet signs to vouch for an author."""
    return json.dumps(
        {
            "domainSeparator": domain_separator,
            "authorAddress": author_address,
            "timestamp": timestamp,
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )


def _coerce_timestamp(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _decode_signature(signature_hex: str) -> bytes:
    try:
        return bytes.fromhex(signature_hex.removeprefix("0x"))
    except ValueError as err:
        raise InvalidSignature() from err


def _eip191_digest(signable: SignableMessage) -> bytes:
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


# One lock map per process; wallets are keyed by ticker and checksum address.
_WALLET_LOCKS = KeyedLock()


class WalletSignatureVerifier:
    """Verify that an author controls the wallet declared for the active chain."""

    def __init__(
        self,
        store: ChallengeStore,
        *,
        domain_separator: str,
        author_text_record: str,
        locks: KeyedLock | None = None,
    ) -> None:
        self._store = store
        self._domain_separator = domain_separator
        self._author_text_record = author_text_record
        self._locks = locks if locks is not None else _WALLET_LOCKS

    async def _resolve_domain_wallet(
        self, publication: Publication, domain: str, names: NameLookup
    ) -> str:
        public_key = publication.signature.public_key if publication.signature else None
        if not public_key:
            raise DomainResolutionMismatch()
        try:
            expected_author = CryptoService.author_address_from_public_key(public_key)
        except ValueError as err:
            raise DomainResolutionMismatch() from err

        declared_author = await names.resolve_text(domain, self._author_text_record)
        if declared_author != expected_author:
            logger.info(
                "Wallet domain %s names author %s, signer is %s",
                domain, declared_author, expected_author,
            )
            raise DomainResolutionMismatch()

        resolved = await names.resolve_address(domain)
        if resolved is None:
            raise InvalidAddressFormat()
        return resolved

    async def _check_signature(
        self,
        wallet_address: str,
        message: str,
        signature: bytes,
        contract_wallets: ContractSignatureCheck,
    ) -> None:
        signable = encode_defunct(text=message)
        try:
            recovered = Account.recover_message(signable, signature=signature)
        except Exception:
            recovered = None
        if recovered is not None and to_checksum_address(recovered) == wallet_address:
            return
        # Smart-contract wallets validate through ERC-1271 instead of ecrecover.
        if await contract_wallets.is_valid_signature(
            wallet_address, _eip191_digest(signable), signature
        ):
            return
        raise InvalidSignature()

    async def _check_replay(self, chain_ticker: str, wallet_address: str, timestamp: int) -> None:
        async with self._locks.hold(record_key(chain_ticker, wallet_address)):
            last_timestamp = await self._store.get_wallet_timestamp(chain_ticker, wallet_address)
            if last_timestamp is not None and last_timestamp > timestamp:
                raise StaleSignature()
            if last_timestamp is None or last_timestamp < timestamp:
                await self._store.set_wallet_timestamp(chain_ticker, wallet_address, timestamp)

    async def verify(
        self,
        publication: Publication,
        policy: PolicyConfig,
        names: NameLookup,
        contract_wallets: ContractSignatureCheck,
    ) -> str:
        """Verify the author's wallet proof and return the checksum wallet address.

        Args:
            publication: Publication whose author declares the wallet.
            policy: Active challenge policy.
            names: ENS lookups for domain-style wallet addresses.
            contract_wallets: ERC-1271 validator for smart-contract wallets.

        Raises:
            WalletNotSet, DomainResolutionMismatch, InvalidAddressFormat,
            MissingSignature, InvalidSignature, StaleSignature: On the
                corresponding proof defect.
            ChainUnavailable: If a chain lookup fails.
            StorageUnavailable: If the timestamp store fails.
        """
        wallet = find_wallet(publication, policy.chain_ticker)
        if wallet is None:
            raise WalletNotSet()
        address = str(wallet.address)

        if is_domain(address):
            address = await self._resolve_domain_wallet(publication, address, names)

        if not is_address(address):
            raise InvalidAddressFormat()
        wallet_address = to_checksum_address(address)

        signature_hex = wallet.signature_hex
        timestamp = _coerce_timestamp(wallet.timestamp)
        if not signature_hex or timestamp is None:
            raise MissingSignature()

        message = wallet_message(self._domain_separator, publication.author.address, timestamp)
        await self._check_signature(
            wallet_address,
            message,
            _decode_signature(signature_hex),
            contract_wallets,
        )

        await self._check_replay(policy.chain_ticker, wallet_address, timestamp)
        return wallet_address
