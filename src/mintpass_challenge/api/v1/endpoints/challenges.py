# src/mintpass_challenge/api/v1/endpoints/challenges.py
"""MintPass challenge endpoints: descriptor and verification."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from mintpass_challenge.schemas.challenge import ChallengeDescriptor, ChallengeResult, VerifyRequest
from mintpass_challenge.services.errors import ConfigurationError
from mintpass_challenge.services.verification import (
    ChallengeVerifier,
    challenge_file,
    get_challenge_verifier,
)

router = APIRouter(prefix="/challenges", tags=["challenges"])


def get_verifier_dep() -> ChallengeVerifier:
    """Return the shared challenge verifier."""
    return get_challenge_verifier()


VerifierDep = Annotated[ChallengeVerifier, Depends(get_verifier_dep)]


@router.get("/mintpass", response_model=ChallengeDescriptor, response_model_exclude_none=True)
async def describe_challenge(
    chain_ticker: Annotated[str | None, Query(alias="chainTicker")] = None,
) -> ChallengeDescriptor:
    """Return the challenge type, description and option inputs."""
    options = {"chainTicker": chain_ticker} if chain_ticker else None
    return challenge_file(options)


@router.post("/mintpass/verify", response_model=ChallengeResult, response_model_exclude_none=True)
async def verify_challenge(request: VerifyRequest, verifier: VerifierDep) -> dict[str, Any]:
    """Verify the publication carried by a decrypted challenge request.

    Args:
        request: Community options, the challenge request and optional community
        verifier: Challenge verifier

    Returns:
        `{"success": true}` or `{"success": false, "error": ...}`

    Raises:
        HTTPException: 400 if the community's challenge options are unusable
    """
    try:
        return await verifier.get_challenge(
            request.options,
            request.challenge_request,
            request.community,
        )
    except ConfigurationError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
