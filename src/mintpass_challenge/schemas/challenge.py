"""Challenge request/response schemas for the HTTP surface."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CommunityContext(BaseModel):
    """Community on whose behalf the challenge runs."""

    address: str | None = Field(None, description="Community identifier (e.g. subplebbit address)")


class VerifyRequest(BaseModel):
    """Invocation of the challenge by the host runtime."""

    model_config = ConfigDict(populate_by_name=True)

    options: dict[str, str | None] = Field(
        default_factory=dict,
        description="Challenge options configured by the community",
    )
    challenge_request: dict[str, Any] = Field(
        ...,
        alias="challengeRequest",
        description="Decrypted challenge request message carrying the publication",
    )
    community: CommunityContext | None = None


class ChallengeResult(BaseModel):
    """Outcome of a challenge verification."""

    success: bool = Field(..., description="True when the author may proceed")
    error: str | None = Field(None, description="User-facing failure reason")

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class OptionInputResponse(BaseModel):
    """Option descriptor rendered for community operators."""

    option: str
    label: str
    description: str
    default: str | None = None
    placeholder: str | None = None
    required: bool = False


class ChallengeDescriptor(BaseModel):
    """Static description of the challenge for a chain ticker."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(..., description="Challenge type, 'chain/<ticker>'")
    description: str
    option_inputs: list[OptionInputResponse] = Field(..., alias="optionInputs")
