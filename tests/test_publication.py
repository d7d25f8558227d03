"""Tests for publication extraction from challenge requests."""

import pytest

from mintpass_challenge.schemas.publication import AuthorWallet, derive_publication

AUTHOR = {"address": "12D3KooWAuthor", "wallets": {}}


@pytest.mark.parametrize(
    "key", ["comment", "vote", "commentEdit", "commentModeration", "subplebbitEdit", "publication"]
)
def test_publication_field_kinds(key: str) -> None:
    publication = derive_publication({key: {"author": AUTHOR, "subplebbitAddress": "board.eth"}})

    assert publication is not None
    assert publication.author.address == "12D3KooWAuthor"
    assert publication.subplebbit_address == "board.eth"


def test_specific_kind_wins_over_generic() -> None:
    publication = derive_publication(
        {
            "publication": {"author": {"address": "generic"}},
            "vote": {"author": {"address": "voter"}},
        }
    )

    assert publication is not None
    assert publication.author.address == "voter"


def test_no_publication() -> None:
    assert derive_publication({"type": "CHALLENGEREQUEST", "comment": None}) is None


def test_unparseable_publication() -> None:
    assert derive_publication({"comment": {"content": "no author"}}) is None


def test_unparseable_candidate_falls_through_to_generic() -> None:
    publication = derive_publication(
        {
            "comment": {"content": "no author"},
            "publication": {"author": {"address": "generic"}},
        }
    )

    assert publication is not None
    assert publication.author.address == "generic"


def test_wallet_signature_shapes() -> None:
    as_object = AuthorWallet.model_validate({"address": "0x1", "signature": {"signature": "0xab", "type": "eip191"}})
    as_string = AuthorWallet.model_validate({"address": "0x1", "signature": "0xcd"})

    assert as_object.signature_hex == "0xab"
    assert as_string.signature_hex == "0xcd"
    assert AuthorWallet.model_validate({"address": "0x1"}).signature_hex is None
