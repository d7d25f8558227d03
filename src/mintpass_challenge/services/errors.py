"""Error taxonomy for MintPass challenge verification.

`ChallengeError` subclasses are ordinary policy outcomes: they carry a
user-facing message and are converted into a failed challenge result by the
orchestrator. `ConfigurationError` signals operator misconfiguration and is
never converted; it propagates to the caller.
"""

from __future__ import annotations

import math

SECONDS_PER_DAY = 86_400

CHAIN_RETRY_MESSAGE = "Failed to check MintPass NFT ownership. Please try again."
STORAGE_RETRY_MESSAGE = "Failed to access MintPass challenge storage. Please try again."


class ConfigurationError(RuntimeError):
    """Raised when the challenge options or service settings are unusable."""


class UnsupportedChain(ConfigurationError):
    """Raised when no RPC provider can be resolved for a chain ticker."""

    def __init__(self, chain_ticker: str) -> None:
        super().__init__(f"No chain provider found for {chain_ticker} and no default available")
        self.chain_ticker = chain_ticker


class ChallengeError(Exception):
    """Base class for failures reported to the author as a challenge error."""

    kind = "ChallengeError"
    default_message = "MintPass verification failed."
    retryable = False

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class WalletNotSet(ChallengeError):
    kind = "WalletNotSet"
    default_message = (
        "Author wallet address is not defined. Please set your wallet address in settings."
    )


class InvalidAddressFormat(ChallengeError):
    kind = "InvalidAddressFormat"
    default_message = "Invalid wallet address format"


class DomainResolutionMismatch(ChallengeError):
    kind = "DomainResolutionMismatch"
    default_message = (
        "The author wallet address's plebbit-author-address text record should resolve "
        "to the public key of the signature"
    )


class MissingSignature(ChallengeError):
    kind = "MissingSignature"
    default_message = "The author wallet signature or timestamp is missing"


class InvalidSignature(ChallengeError):
    kind = "InvalidSignature"
    default_message = "The signature of the wallet is invalid"


class StaleSignature(ChallengeError):
    kind = "StaleSignature"
    default_message = "The author is trying to use an old wallet signature"


class EnsResolutionFailed(ChallengeError):
    kind = "EnsResolutionFailed"
    default_message = "Failed to resolve ENS address"


class NotOwner(ChallengeError):
    """The candidate address holds no MintPass of the required type."""

    kind = "NotOwner"

    @classmethod
    def from_template(cls, template: str, author_address: str) -> NotOwner:
        return cls(render_template(template, author_address))


class InCooldown(ChallengeError):
    """Every qualifying token was recently used by a different author."""

    kind = "InCooldown"

    def __init__(self, cooldown_seconds: int) -> None:
        self.wait_days = math.ceil(cooldown_seconds / SECONDS_PER_DAY)
        super().__init__(
            "Your MintPass NFT is in cooldown period after being transferred. "
            f"Please wait {self.wait_days} days before using it."
        )


class AlreadyBoundToAnotherAuthor(ChallengeError):
    kind = "AlreadyBoundToAnotherAuthor"
    default_message = "This MintPass NFT is already bound to another author in this community."


class ChainUnavailable(ChallengeError):
    """Chain RPC failed or timed out; never to be read as 'does not own'."""

    kind = "ChainUnavailable"
    default_message = CHAIN_RETRY_MESSAGE
    retryable = True

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(CHAIN_RETRY_MESSAGE)
        self.detail = detail


class StorageUnavailable(ChallengeError):
    """The record store could not be read or written during a verification."""

    kind = "StorageUnavailable"
    default_message = STORAGE_RETRY_MESSAGE
    retryable = True

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(STORAGE_RETRY_MESSAGE)
        self.detail = detail


def render_template(template: str, author_address: str) -> str:
    """Substitute the `{authorAddress}` placeholder in a policy message."""
    return template.replace("{authorAddress}", author_address)
