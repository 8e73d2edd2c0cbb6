"""Canonical JSON hashing and claim signature utilities.

Provides deterministic schema IDs and the ed25519 message format issuers
sign claims with.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from algosdk import encoding
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey


REGION_SCHEMA: dict[str, Any] = {
    "name": "storefront.verified-region",
    "version": 1,
    "fields": {"region": "string"},
}

TRADING_SCHEMA: dict[str, Any] = {
    "name": "storefront.trading-access",
    "version": 1,
    "fields": {"hasTradingAccess": "bool"},
}

MERCHANT_SCHEMA: dict[str, Any] = {
    "name": "storefront.merchant",
    "version": 1,
    "fields": {
        "merchantLevel": "uint8",
        "merchantCategory": "string",
        "reviewScore": "uint32",
        "isActive": "bool",
    },
}


def canonical_json(data: dict[str, Any]) -> bytes:
    """Serialize a dict as canonical JSON bytes (sorted keys, compact)."""
    return json.dumps(data, sort_keys=True, separators=(',', ':')).encode('utf-8')


def canonical_json_hash(data: dict[str, Any]) -> str:
    """Generate deterministic SHA256 hash from canonical JSON.

    Args:
        data: Dictionary to hash

    Returns:
        Hex-encoded SHA256 hash
    """
    if not data:
        raise ValueError("Data cannot be empty")
    return hashlib.sha256(canonical_json(data)).hexdigest()


def generate_schema_id(schema_data: dict[str, Any]) -> str:
    """Generate deterministic schema ID from schema JSON."""
    return canonical_json_hash(schema_data)


DEFAULT_REGION_SCHEMA_ID = generate_schema_id(REGION_SCHEMA)
DEFAULT_TRADING_SCHEMA_ID = generate_schema_id(TRADING_SCHEMA)
DEFAULT_MERCHANT_SCHEMA_ID = generate_schema_id(MERCHANT_SCHEMA)


def schema_id_to_bytes(schema_id: str) -> bytes:
    """Convert schema ID string to the bytes used in box keys and messages.

    A 64-character hex string is interpreted as 32 raw bytes; anything
    else is taken as UTF-8 (short IDs used in tests).
    """
    if len(schema_id) == 64:
        try:
            return bytes.fromhex(schema_id)
        except ValueError:
            pass
    return schema_id.encode('utf-8')


def build_claim_message(schema_id: str, subject: str, payload: bytes, issued_at: int, expires_at: int = 0) -> bytes:
    """Build canonical message an issuer signs for a claim.

    schema_id_bytes + subject_pk(32) + sha256(payload) + issued_at(8) + expires_at(8)
    """
    return (
        schema_id_to_bytes(schema_id)
        + encoding.decode_address(subject)
        + hashlib.sha256(payload).digest()
        + issued_at.to_bytes(8, 'big')
        + expires_at.to_bytes(8, 'big')
    )


def sign_claim(signing_key: SigningKey, schema_id: str, subject: str, payload: bytes, issued_at: int, expires_at: int = 0) -> str:
    """Sign claim message with ed25519 and return the signature as hex."""
    if not signing_key:
        raise ValueError("Signing key is required")

    message = build_claim_message(schema_id, subject, payload, issued_at, expires_at)
    return signing_key.sign(message).signature.hex()


def verify_claim_signature(
    verify_key: VerifyKey,
    signature_hex: str,
    schema_id: str,
    subject: str,
    payload: bytes,
    issued_at: int,
    expires_at: int = 0,
) -> bool:
    """Verify an issuer's ed25519 signature over a claim."""
    if not verify_key or not signature_hex:
        return False

    try:
        signature_bytes = bytes.fromhex(signature_hex)
        message = build_claim_message(schema_id, subject, payload, issued_at, expires_at)
        verify_key.verify(message, signature_bytes)
        return True
    except (BadSignatureError, ValueError):
        return False
