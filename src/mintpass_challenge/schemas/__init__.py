# src/mintpass_challenge/schemas/__init__.py
"""
Pydantic schemas and parsed policy types.

These schemas define the structure of challenge data for validation.
"""

from .challenge import ChallengeDescriptor, ChallengeResult, CommunityContext, VerifyRequest
from .policy import PolicyConfig, build_policy
from .publication import AuthorWallet, Publication, derive_publication

__all__ = [
    "ChallengeDescriptor", "ChallengeResult", "CommunityContext", "VerifyRequest",
    "PolicyConfig", "build_policy",
    "AuthorWallet", "Publication", "derive_publication",
]
