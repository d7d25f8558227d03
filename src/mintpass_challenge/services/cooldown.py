"""Transfer cooldown and first-author binding for MintPass tokens.

The engine decides whether a verified owner address holds a usable token of
the required type and records the use. Whether a single token is usable is a
pure function of its stored usage and binding (`classify`); the engine drives
that decision over the owner's tokens in contract enumeration order, holding
a per-token lock across the read-modify-write so that at most one author can
take over a token per acceptance.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from mintpass_challenge.db.time import now_seconds
from mintpass_challenge.schemas.policy import PolicyConfig
from mintpass_challenge.services.chain import TokenInfo
from mintpass_challenge.services.errors import (
    AlreadyBoundToAnotherAuthor,
    InCooldown,
    NotOwner,
)
from mintpass_challenge.services.locks import KeyedLock
from mintpass_challenge.services.store import ChallengeStore, TokenUsageRecord, record_key

logger = logging.getLogger(__name__)


class Verdict(Enum):
    """Outcome of classifying one token for one author."""
    NEVER_USED = "never_used"
    RENEWAL = "renewal"
    COOLDOWN_ELAPSED = "cooldown_elapsed"
    IN_COOLDOWN = "in_cooldown"
    BOUND_TO_OTHER = "bound_to_other"


_ACCEPTING = frozenset({Verdict.NEVER_USED, Verdict.RENEWAL, Verdict.COOLDOWN_ELAPSED})


@dataclass(frozen=True)
class Decision:
    verdict: Verdict

    @property
    def accepted(self) -> bool:
        return self.verdict in _ACCEPTING


def classify(
    usage: TokenUsageRecord | None,
    bound_author: str | None,
    now: int,
    author: str,
    cooldown_seconds: int,
    binding_enabled: bool,
) -> Decision:
    """Decide whether `author` may use a token right now.

    A binding to a different author rejects the token whatever its usage
    history. Otherwise the token is accepted if it was never used, was last
    used by the same author, or was last used by another author at least
    `cooldown_seconds` ago.
    """
    if binding_enabled and bound_author is not None and bound_author != author:
        return Decision(Verdict.BOUND_TO_OTHER)
    if usage is None:
        return Decision(Verdict.NEVER_USED)
    if usage.author_address == author:
        return Decision(Verdict.RENEWAL)
    if now - usage.last_used_at >= cooldown_seconds:
        return Decision(Verdict.COOLDOWN_ELAPSED)
    return Decision(Verdict.IN_COOLDOWN)


class MintPassReader(Protocol):
    """Chain reads the engine needs from the MintPass contract."""

    address: str

    async def owns_token_type(self, owner: str, token_type: int) -> bool: ...

    async def tokens_of_owner(self, owner: str) -> list[TokenInfo]: ...


# One lock map per process; tokens are keyed by contract and id.
_TOKEN_LOCKS = KeyedLock()


class CooldownBindingEngine:
    """Enforce transfer cooldown and per-community author binding."""

    def __init__(
        self,
        store: ChallengeStore,
        *,
        locks: KeyedLock | None = None,
        clock: Callable[[], int] = now_seconds,
    ) -> None:
        self._store = store
        self._locks = locks if locks is not None else _TOKEN_LOCKS
        self._clock = clock

    async def check(
        self,
        candidate_address: str,
        policy: PolicyConfig,
        author_address: str,
        community_id: str | None,
        mintpass: MintPassReader,
    ) -> TokenInfo:
        """Accept one of the candidate's tokens for the author and record the use.

        Args:
            candidate_address: Verified address expected to hold the token.
            policy: Active challenge policy.
            author_address: Publication author the token is used for.
            community_id: Community scope for bindings, None for global.
            mintpass: Contract reader.

        Returns:
            The accepted token.

        Raises:
            NotOwner: If the candidate holds no token of the required type.
            InCooldown: If every such token is in another author's cooldown.
            AlreadyBoundToAnotherAuthor: If the first token not held by
                cooldown is bound to another author in this community.
            ChainUnavailable: If a chain read fails.
            StorageUnavailable: If the record store fails.
        """
        if not await mintpass.owns_token_type(candidate_address, policy.required_token_type):
            raise NotOwner.from_template(policy.error_template, author_address)

        tokens = [
            token
            for token in await mintpass.tokens_of_owner(candidate_address)
            if token.token_type == policy.required_token_type
        ]
        if not tokens:
            # ownsTokenType and tokensOfOwner disagree; treat as not owning.
            raise NotOwner.from_template(policy.error_template, author_address)

        contract = mintpass.address
        for token in tokens:
            async with self._locks.hold(record_key(contract, token.token_id)):
                usage = await self._store.get_token_usage(contract, token.token_id)
                bound_author = None
                if policy.bind_to_first_author:
                    bound_author = await self._store.get_binding(community_id, contract, token.token_id)
                now = self._clock()
                decision = classify(
                    usage,
                    bound_author,
                    now,
                    author_address,
                    policy.cooldown_seconds,
                    policy.bind_to_first_author,
                )
                if decision.verdict is Verdict.BOUND_TO_OTHER:
                    logger.info(
                        "Token %s:%s is bound to another author, rejecting %s",
                        contract, token.token_id, author_address,
                    )
                    raise AlreadyBoundToAnotherAuthor()
                if not decision.accepted:
                    logger.debug(
                        "Token %s:%s rejected for %s (%s)",
                        contract, token.token_id, author_address, decision.verdict.value,
                    )
                    continue

                if policy.bind_to_first_author and bound_author is None:
                    winner = await self._store.bind_if_absent(
                        community_id, contract, token.token_id, author_address
                    )
                    if winner != author_address:
                        # Another process bound the token between our read and write.
                        raise AlreadyBoundToAnotherAuthor()
                await self._store.set_token_usage(
                    contract,
                    token.token_id,
                    TokenUsageRecord(author_address=author_address, last_used_at=now),
                )
                logger.info(
                    "Token %s:%s accepted for %s (%s)",
                    contract, token.token_id, author_address, decision.verdict.value,
                )
                return token

        raise InCooldown(policy.cooldown_seconds)
