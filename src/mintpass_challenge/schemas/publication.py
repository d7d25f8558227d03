"""Publication schemas received from the host runtime.

Field names follow the host's camelCase wire format through aliases. Values
that the verifier must judge itself (wallet timestamps and signatures) are
kept loosely typed so a malformed proof becomes a challenge failure instead
of a validation error for the whole publication.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

# Publication kinds that can trigger a challenge, most common first.
PUBLICATION_KEYS: tuple[str, ...] = (
    "comment",
    "vote",
    "commentEdit",
    "commentModeration",
    "subplebbitEdit",
)


class WalletSignature(BaseModel):
    """Signature object attached to an author wallet."""

    model_config = ConfigDict(extra="ignore")

    signature: str | None = Field(None, description="Hex-encoded EIP-191 signature")
    type: str | None = Field(None, description="Signature scheme, e.g. 'eip191'")


class AuthorWallet(BaseModel):
    """Wallet declared by an author for one chain ticker."""

    model_config = ConfigDict(extra="ignore")

    address: str | None = Field(None, description="Chain address or domain-style name")
    timestamp: Any = Field(None, description="Seconds timestamp included in the signed message")
    signature: WalletSignature | str | None = None

    @property
    def signature_hex(self) -> str | None:
        """Return the raw signature string regardless of the wire shape."""
        if isinstance(self.signature, WalletSignature):
            return self.signature.signature
        return self.signature


class Author(BaseModel):
    """Publication author identity."""

    model_config = ConfigDict(extra="ignore")

    address: str
    wallets: dict[str, AuthorWallet] = Field(default_factory=dict)


class PublicationSignature(BaseModel):
    """Signature metadata of the publication itself."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    public_key: str | None = Field(None, alias="publicKey")
    signature: str | None = None
    type: str | None = None
    signed_property_names: list[str] = Field(default_factory=list, alias="signedPropertyNames")


class Publication(BaseModel):
    """Normalized publication handed to the verifier."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    author: Author
    signature: PublicationSignature | None = None
    subplebbit_address: str | None = Field(None, alias="subplebbitAddress")


def derive_publication(challenge_request: Mapping[str, Any]) -> Publication | None:
    """Extract the publication carried by a decrypted challenge request.

    Candidates that do not parse as a publication are skipped. Returns None
    when no candidate parses.
    """
    candidates = [challenge_request.get(key) for key in PUBLICATION_KEYS]
    candidates.append(challenge_request.get("publication"))
    for candidate in candidates:
        if not isinstance(candidate, Mapping):
            continue
        try:
            return Publication.model_validate(candidate)
        except ValidationError:
            continue
    return None
