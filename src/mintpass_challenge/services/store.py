"""Persistent record store for challenge anti-abuse facts.

Three namespaces are kept: wallet proof timestamps, token usage and token
bindings. `SqlChallengeStore` is the durable implementation backed by
SQLAlchemy; `InMemoryChallengeStore` serves tests and single-process tools.
Both key records by structured tuples or composite primary keys, so no
caller-supplied string can alias another logical key.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar
from urllib.parse import quote

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from mintpass_challenge.db.session import Base, SessionLocal, engine
from mintpass_challenge.models import TokenBinding, TokenUsage, WalletTimestamp
from mintpass_challenge.services.errors import StorageUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

GLOBAL_COMMUNITY = ""


@dataclass(frozen=True)
class TokenUsageRecord:
    """Who most recently used a token successfully, and when."""

    author_address: str
    last_used_at: int


def record_key(*parts: object) -> str:
    """Build a flat key from parts, escaping each so separators cannot be injected."""
    return ":".join(quote(str(part), safe="") for part in parts)


def _community(community_id: str | None) -> str:
    return community_id or GLOBAL_COMMUNITY


class ChallengeStore(Protocol):
    """Storage port used by the wallet verifier and the cooldown engine."""

    async def get_wallet_timestamp(self, chain_ticker: str, wallet_address: str) -> int | None: ...

    async def set_wallet_timestamp(
        self, chain_ticker: str, wallet_address: str, timestamp: int
    ) -> None: ...

    async def get_token_usage(self, contract_address: str, token_id: int) -> TokenUsageRecord | None: ...

    async def set_token_usage(
        self, contract_address: str, token_id: int, record: TokenUsageRecord
    ) -> None: ...

    async def get_binding(
        self, community_id: str | None, contract_address: str, token_id: int
    ) -> str | None: ...

    async def bind_if_absent(
        self, community_id: str | None, contract_address: str, token_id: int, author_address: str
    ) -> str: ...


class InMemoryChallengeStore:
    """Process-local store keeping records in dictionaries."""

    def __init__(self) -> None:
        self.wallet_timestamps: dict[tuple[str, str], int] = {}
        self.token_usage: dict[tuple[str, int], TokenUsageRecord] = {}
        self.bindings: dict[tuple[str, str, int], str] = {}

    async def get_wallet_timestamp(self, chain_ticker: str, wallet_address: str) -> int | None:
        return self.wallet_timestamps.get((chain_ticker, wallet_address))

    async def set_wallet_timestamp(self, chain_ticker: str, wallet_address: str, timestamp: int) -> None:
        self.wallet_timestamps[(chain_ticker, wallet_address)] = timestamp

    async def get_token_usage(self, contract_address: str, token_id: int) -> TokenUsageRecord | None:
        return self.token_usage.get((contract_address, token_id))

    async def set_token_usage(
        self, contract_address: str, token_id: int, record: TokenUsageRecord
    ) -> None:
        self.token_usage[(contract_address, token_id)] = record

    async def get_binding(
        self, community_id: str | None, contract_address: str, token_id: int
    ) -> str | None:
        return self.bindings.get((_community(community_id), contract_address, token_id))

    async def bind_if_absent(
        self, community_id: str | None, contract_address: str, token_id: int, author_address: str
    ) -> str:
        key = (_community(community_id), contract_address, token_id)
        return self.bindings.setdefault(key, author_address)


class SqlChallengeStore:
    """Durable store backed by the SQLAlchemy session factory.

    Each operation runs in a worker thread with its own session. SQLAlchemy
    failures surface as `StorageUnavailable`.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    async def _run(self, operation: Callable[[Session], T]) -> T:
        def _with_session() -> T:
            with self._session_factory() as session:
                return operation(session)

        try:
            return await asyncio.to_thread(_with_session)
        except SQLAlchemyError as exc:
            logger.warning("Challenge store operation failed: %s", exc)
            raise StorageUnavailable(str(exc)) from exc

    async def get_wallet_timestamp(self, chain_ticker: str, wallet_address: str) -> int | None:
        def _get(session: Session) -> int | None:
            row = session.get(WalletTimestamp, (chain_ticker, wallet_address))
            return None if row is None else int(row.last_timestamp)

        return await self._run(_get)

    async def set_wallet_timestamp(self, chain_ticker: str, wallet_address: str, timestamp: int) -> None:
        def _set(session: Session) -> None:
            session.merge(
                WalletTimestamp(
                    chain_ticker=chain_ticker,
                    wallet_address=wallet_address,
                    last_timestamp=timestamp,
                )
            )
            session.commit()

        await self._run(_set)

    async def get_token_usage(self, contract_address: str, token_id: int) -> TokenUsageRecord | None:
        def _get(session: Session) -> TokenUsageRecord | None:
            row = session.get(TokenUsage, (contract_address, str(token_id)))
            if row is None:
                return None
            return TokenUsageRecord(author_address=row.author_address, last_used_at=int(row.last_used_at))

        return await self._run(_get)

    async def set_token_usage(
        self, contract_address: str, token_id: int, record: TokenUsageRecord
    ) -> None:
        def _set(session: Session) -> None:
            session.merge(
                TokenUsage(
                    contract_address=contract_address,
                    token_id=str(token_id),
                    author_address=record.author_address,
                    last_used_at=record.last_used_at,
                )
            )
            session.commit()

        await self._run(_set)

    async def get_binding(
        self, community_id: str | None, contract_address: str, token_id: int
    ) -> str | None:
        def _get(session: Session) -> str | None:
            row = session.get(TokenBinding, (_community(community_id), contract_address, str(token_id)))
            return None if row is None else row.author_address

        return await self._run(_get)

    async def bind_if_absent(
        self, community_id: str | None, contract_address: str, token_id: int, author_address: str
    ) -> str:
        """Create a binding unless one exists; return the author actually bound."""
        key = (_community(community_id), contract_address, str(token_id))

        def _bind(session: Session) -> str:
            existing = session.get(TokenBinding, key)
            if existing is not None:
                return existing.author_address
            session.add(
                TokenBinding(
                    community_id=key[0],
                    contract_address=key[1],
                    token_id=key[2],
                    author_address=author_address,
                )
            )
            try:
                session.commit()
            except IntegrityError:
                # Another process bound the token first.
                session.rollback()
                winner = session.get(TokenBinding, key)
                if winner is None:
                    raise
                return winner.author_address
            return author_address

        return await self._run(_bind)

    async def ping(self) -> None:
        """Round-trip a trivial statement to check connectivity."""
        await self._run(lambda session: session.execute(text("SELECT 1")))


def init_storage() -> None:
    """Create the record tables. Failure here is fatal for the process."""
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        logger.exception("Failed to initialize the challenge record store")
        raise


class _StoreSingleton:
    """Singleton wrapper for the process-wide challenge store."""

    _instance: SqlChallengeStore | None = None

    @classmethod
    def get_instance(cls) -> SqlChallengeStore:
        if cls._instance is None:
            cls._instance = SqlChallengeStore()
        return cls._instance


def get_challenge_store() -> SqlChallengeStore:
    """Return the process-wide durable challenge store."""
    return _StoreSingleton.get_instance()
