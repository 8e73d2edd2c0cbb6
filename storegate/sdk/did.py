"""Issuer identities as did:key.

W3C did:key encoding for the Ed25519 keys claim issuers sign with. The
registry stores raw 32-byte issuer keys; everything above it speaks did:key.
"""

from __future__ import annotations

import multibase
from nacl.signing import SigningKey, VerifyKey

DID_KEY_PREFIX = "did:key:"
_ED25519_MULTICODEC = b'\xed\x01'


def generate_ed25519_keypair() -> tuple[SigningKey, str]:
    """Generate Ed25519 keypair and return signing key and did:key."""
    signing_key = SigningKey.generate()
    return signing_key, generate_did_key(signing_key)


def generate_did_key(signing_key: SigningKey) -> str:
    """Generate did:key from Ed25519 SigningKey."""
    if not signing_key:
        raise ValueError("Signing key is required")
    return public_key_to_did_key(bytes(signing_key.verify_key))


def public_key_to_did_key(public_key_bytes: bytes) -> str:
    """Encode a raw 32-byte Ed25519 public key as did:key."""
    if len(public_key_bytes) != 32:
        raise ValueError("Ed25519 public key must be 32 bytes")
    multibase_key = multibase.encode('base58btc', _ED25519_MULTICODEC + public_key_bytes)
    return f"{DID_KEY_PREFIX}{multibase_key.decode('utf-8')}"


def did_key_to_public_key(did_key: str) -> VerifyKey:
    """Parse did:key back to VerifyKey."""
    if not validate_did_key_format(did_key):
        raise ValueError(f"Invalid did:key format: {did_key}")

    multicodec_bytes = multibase.decode(did_key[len(DID_KEY_PREFIX):])
    if len(multicodec_bytes) != 34 or multicodec_bytes[:2] != _ED25519_MULTICODEC:
        raise ValueError("Invalid Ed25519 multicodec format")
    return VerifyKey(multicodec_bytes[2:])


def validate_did_key_format(did_key: str) -> bool:
    """Validate did:key format."""
    if not isinstance(did_key, str) or not did_key.startswith("did:key:z6Mk"):
        return False

    try:
        multibase.decode(did_key[len(DID_KEY_PREFIX):])
        return True
    except Exception:
        return False
