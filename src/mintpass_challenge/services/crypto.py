# src/mintpass_challenge/services/crypto.py
"""Cryptographic helpers for publication signing keys."""

from __future__ import annotations

import base64

import base58
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

PUBKEY_LENGTH_BYTES = 32

# libp2p PublicKey protobuf header: KeyType=Ed25519 (field 1), Data length 32 (field 2).
_ED25519_PROTOBUF_PREFIX = bytes([0x08, 0x01, 0x12, 0x20])
# Identity multihash (code 0x00) over the 36-byte protobuf.
_IDENTITY_MULTIHASH_PREFIX = bytes([0x00, 0x24])


class CryptoService:
    """Decoding and address derivation for Ed25519 publication keys."""

    @staticmethod
    def _decode_base64(data: str) -> bytes:
        """Decode a base64 string in either alphabet, accepting omitted padding."""
        padding = "=" * (-len(data) % 4)
        try:
            return base64.urlsafe_b64decode(data + padding)
        except Exception as err:
            raise ValueError(f"Invalid base64 encoding: {err}") from err

    @staticmethod
    def _decode_hex(data: str) -> bytes:
        try:
            return bytes.fromhex(data.removeprefix("0x"))
        except ValueError as err:
            raise ValueError(f"Invalid hex encoding: {err}") from err

    @staticmethod
    def validate_and_decode_pubkey(pubkey_encoded: str) -> bytes:
        """Validate and decode an Ed25519 public key given as base64 or hex."""
        cleaned = pubkey_encoded.strip()
        errors: list[str] = []
        for decoder in (
            CryptoService._decode_base64,
            CryptoService._decode_hex,
        ):
            try:
                result = decoder(cleaned)
            except ValueError as err:
                errors.append(str(err))
                continue
            if len(result) != PUBKEY_LENGTH_BYTES:
                errors.append("Ed25519 public keys must be 32 bytes")
                continue
            Ed25519PublicKey.from_public_bytes(result)
            return result
        joined = "; ".join(errors) if errors else "unknown decoding error"
        raise ValueError(f"Invalid public key format: {joined}")

    @staticmethod
    def author_address_from_public_key(pubkey_encoded: str) -> str:
        """Derive the author address (libp2p peer id) owned by a signing key.

        Args:
            pubkey_encoded: Base64 or hex encoded Ed25519 public key.

        Returns:
            Base58btc peer id, e.g. '12D3KooW...'.

        Raises:
            ValueError: If the key cannot be decoded.
        """
        pubkey_bytes = CryptoService.validate_and_decode_pubkey(pubkey_encoded)
        peer_id = _IDENTITY_MULTIHASH_PREFIX + _ED25519_PROTOBUF_PREFIX + pubkey_bytes
        return base58.b58encode(peer_id).decode("ascii")
