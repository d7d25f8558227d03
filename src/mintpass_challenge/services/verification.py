"""MintPass challenge verification.

Two strategies can prove that an author is backed by a MintPass holder:

- wallet: the author's declared wallet carries a valid ownership proof and
  that wallet holds the token
- ens: the author address is an ENS name whose `addr` record holds the token

Both are tried; the order decides which failure is reported to the author.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from mintpass_challenge.core.settings import Settings, settings
from mintpass_challenge.db.time import now_seconds
from mintpass_challenge.schemas.challenge import (
    ChallengeDescriptor,
    ChallengeResult,
    CommunityContext,
    OptionInputResponse,
)
from mintpass_challenge.schemas.policy import PolicyConfig, build_policy, option_inputs
from mintpass_challenge.schemas.publication import Publication, derive_publication
from mintpass_challenge.services.chain import TokenInfo
from mintpass_challenge.services.cooldown import CooldownBindingEngine
from mintpass_challenge.services.ens import has_domain_suffix, is_domain
from mintpass_challenge.services.errors import ChallengeError, EnsResolutionFailed
from mintpass_challenge.services.gateway import ChainGateway, get_chain_gateway
from mintpass_challenge.services.store import ChallengeStore, get_challenge_store
from mintpass_challenge.services.wallet import WalletSignatureVerifier, find_wallet

logger = logging.getLogger(__name__)

CHALLENGE_DESCRIPTION = (
    "Verify that the author owns a MintPass NFT of the required type, "
    "with transfer cooldown protection."
)
PUBLICATION_NOT_DERIVED = "Could not derive publication from challenge request."
NOT_AN_ENS_DOMAIN = "Author address is not an ENS domain"

Strategy = Callable[[Publication, PolicyConfig, str | None], Awaitable[TokenInfo]]


class ChallengeVerifier:
    """Run the wallet and ENS strategies for one publication."""

    def __init__(
        self,
        store: ChallengeStore,
        gateway: ChainGateway,
        *,
        config: Settings = settings,
        clock: Callable[[], int] = now_seconds,
    ) -> None:
        self._gateway = gateway
        self._config = config
        self._wallets = WalletSignatureVerifier(
            store,
            domain_separator=config.wallet_domain_separator,
            author_text_record=config.author_address_text_record,
        )
        self._engine = CooldownBindingEngine(store, clock=clock)

    async def verify_wallet(
        self, publication: Publication, policy: PolicyConfig, community_id: str | None
    ) -> TokenInfo:
        """Verify the author's wallet proof, then the wallet's MintPass."""
        wallet_address = await self._wallets.verify(
            publication,
            policy,
            self._gateway.ens(policy),
            self._gateway.contract_wallets(policy),
        )
        return await self._engine.check(
            wallet_address,
            policy,
            publication.author.address,
            community_id,
            self._gateway.mintpass(policy),
        )

    async def verify_ens(
        self, publication: Publication, policy: PolicyConfig, community_id: str | None
    ) -> TokenInfo:
        """Resolve the author's ENS name and verify the owner's MintPass."""
        author_address = publication.author.address
        if not has_domain_suffix(author_address, self._config.ens_domain_suffixes):
            raise EnsResolutionFailed(NOT_AN_ENS_DOMAIN)
        owner_address = await self._gateway.ens(policy).resolve_address(author_address)
        if owner_address is None:
            raise EnsResolutionFailed()
        return await self._engine.check(
            owner_address,
            policy,
            author_address,
            community_id,
            self._gateway.mintpass(policy),
        )

    def strategies(
        self, publication: Publication, policy: PolicyConfig
    ) -> list[tuple[str, Strategy]]:
        """Return the strategies in the order they should run."""
        wallet = ("wallet", self.verify_wallet)
        ens = ("ens", self.verify_ens)
        if is_domain(publication.author.address) or find_wallet(publication, policy.chain_ticker) is None:
            return [ens, wallet]
        return [wallet, ens]

    async def verify(
        self, publication: Publication, policy: PolicyConfig, community_id: str | None = None
    ) -> ChallengeResult:
        """Verify a publication against a policy.

        Returns a successful result as soon as one strategy passes. When both
        fail, the first strategy's message is reported.

        Raises:
            ConfigurationError: If the policy cannot be served (for example an
                unknown chain ticker).
        """
        failures: list[tuple[str, ChallengeError]] = []
        for name, strategy in self.strategies(publication, policy):
            try:
                token = await strategy(publication, policy, community_id)
            except ChallengeError as exc:
                failures.append((name, exc))
                continue
            logger.info(
                "MintPass verified for %s via %s (token %s)",
                publication.author.address, name, token.token_id,
            )
            return ChallengeResult(success=True)

        logger.info(
            "MintPass verification failed for %s: %s",
            publication.author.address,
            ", ".join(f"{name}: {exc.message}" for name, exc in failures),
        )
        return ChallengeResult(success=False, error=failures[0][1].message)

    async def get_challenge(
        self,
        options: Mapping[str, Any] | None,
        challenge_request: Mapping[str, Any],
        community: CommunityContext | None = None,
    ) -> dict[str, Any]:
        """Host invocation contract: verify the publication in a challenge request.

        Returns:
            `{"success": True}` or `{"success": False, "error": message}`.

        Raises:
            ConfigurationError: If the challenge options are unusable.
        """
        policy = build_policy(options, self._config)
        publication = derive_publication(challenge_request)
        if publication is None:
            return ChallengeResult(success=False, error=PUBLICATION_NOT_DERIVED).as_dict()

        community_id = publication.subplebbit_address or (community.address if community else None)
        result = await self.verify(publication, policy, community_id)
        return result.as_dict()


def challenge_file(options: Mapping[str, Any] | None = None, config: Settings = settings) -> ChallengeDescriptor:
    """Describe the challenge for a community's options."""
    chain_ticker = (options or {}).get("chainTicker") or config.default_chain_ticker
    return ChallengeDescriptor(
        type=f"chain/{chain_ticker}",
        description=CHALLENGE_DESCRIPTION,
        option_inputs=[OptionInputResponse(**item.as_dict()) for item in option_inputs(config)],
    )


class _VerifierSingleton:
    """Singleton wrapper for the process-wide challenge verifier."""

    _instance: ChallengeVerifier | None = None

    @classmethod
    def get_instance(cls) -> ChallengeVerifier:
        if cls._instance is None:
            cls._instance = ChallengeVerifier(get_challenge_store(), get_chain_gateway())
        return cls._instance


def get_challenge_verifier() -> ChallengeVerifier:
    """Return a singleton challenge verifier instance."""
    return _VerifierSingleton.get_instance()
