"""Read-only access to the on-chain attestation registry.

Claims live in boxes of an Algorand application:

- ``idx:<schema_id><subject_pk>`` holds the 32-byte UID of the current claim
  for a (subject, schema) pair.
- ``att:<uid>`` holds the claim record:
  status(1) + subject(32) + issuer_pk(32) + issued_at(8) + expires_at(8) +
  revoked_at(8) + signature(64) + schema_id_len(8) + schema_id + payload.

Box reads go through the synchronous algod client in a worker thread so
callers can await several lookups concurrently.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from datetime import datetime, timezone
from typing import Protocol

from algosdk import encoding
from algosdk.error import AlgodHTTPError, AlgodResponseError
from algosdk.v2client import algod

from storegate.sdk.did import did_key_to_public_key, public_key_to_did_key
from storegate.sdk.errors import ClaimDecodeError, ResolutionError
from storegate.sdk.hashing import schema_id_to_bytes
from storegate.sdk.models import AttestationClaim

logger = logging.getLogger(__name__)

STATUS_ACTIVE = b"A"
STATUS_REVOKED = b"R"
_HEADER_LEN = 1 + 32 + 32 + 8 + 8 + 8 + 64 + 8
_EMPTY_UID = bytes(32)


class AttestationRegistry(Protocol):
    """The two read operations the resolver consumes."""

    async def lookup_claim_id(self, address: str, schema_id: str) -> str | None: ...

    async def fetch_claim(self, claim_id: str) -> AttestationClaim | None: ...


class AlgodAttestationRegistry:
    """Attestation registry backed by Algorand application boxes."""

    def __init__(self, algod_client: algod.AlgodClient, app_id: int):
        """Initialize registry reader.

        Args:
            algod_client: Algorand client
            app_id: Registry application ID
        """
        if not algod_client:
            raise ValueError("Algod client is required")
        if not app_id or app_id <= 0:
            raise ValueError("App ID must be positive")

        self.algod_client = algod_client
        self.app_id = app_id

    async def lookup_claim_id(self, address: str, schema_id: str) -> str | None:
        """Return the current claim UID for (address, schema), or None."""
        box_name = index_box_name(address, schema_id)
        raw = await self._read_box(box_name)
        if raw is None or raw == _EMPTY_UID:
            return None
        if len(raw) != 32:
            logger.warning("Ignoring malformed index entry for %s (schema %s): %d bytes", address, schema_id, len(raw))
            return None
        return raw.hex()

    async def fetch_claim(self, claim_id: str) -> AttestationClaim | None:
        """Fetch and parse a claim record, or None when it does not exist."""
        raw = await self._read_box(claim_box_name(claim_id))
        if raw is None:
            return None
        try:
            return parse_claim_record(claim_id, raw)
        except ClaimDecodeError as e:
            logger.warning("Unreadable claim record %s: %s", claim_id, e)
            return None

    async def _read_box(self, box_name: bytes) -> bytes | None:
        """Read raw box bytes; None when the box does not exist."""
        try:
            response = await asyncio.to_thread(self.algod_client.application_box_by_name, self.app_id, box_name)
        except AlgodHTTPError as e:
            if e.code == 404:
                return None
            raise ResolutionError(f"Registry read failed ({e.code}): {e}") from e
        except (AlgodResponseError, OSError) as e:
            raise ResolutionError(f"Registry unreachable: {e}") from e

        if not isinstance(response, dict) or 'value' not in response:
            raise ResolutionError("Registry returned an unexpected box response")
        value = response['value']
        if isinstance(value, str):
            return base64.b64decode(value)
        return bytes(value)


def index_box_name(address: str, schema_id: str) -> bytes:
    """Box key of the (subject, schema) -> claim UID index entry."""
    return b"idx:" + schema_id_to_bytes(schema_id) + encoding.decode_address(address)


def claim_box_name(claim_id: str) -> bytes:
    """Box key of a claim record."""
    try:
        uid = bytes.fromhex(claim_id)
    except ValueError:
        raise ValueError(f"Claim ID must be hex: {claim_id!r}")
    if len(uid) != 32:
        raise ValueError("Claim ID must be 32 bytes")
    return b"att:" + uid


def encode_claim_record(
    subject: str,
    issuer_did: str,
    schema_id: str,
    payload: bytes,
    signature: str,
    issued_at: int,
    expires_at: int = 0,
    revoked_at: int = 0,
) -> bytes:
    """Build the box value for a claim record (issuer side and fixtures)."""
    schema_id_bytes = schema_id_to_bytes(schema_id)
    signature_bytes = bytes.fromhex(signature) if signature else bytes(64)
    if len(signature_bytes) != 64:
        raise ValueError("Signature must be 64 bytes")
    status = STATUS_REVOKED if revoked_at else STATUS_ACTIVE
    return (
        status
        + encoding.decode_address(subject)
        + bytes(did_key_to_public_key(issuer_did))
        + issued_at.to_bytes(8, 'big')
        + expires_at.to_bytes(8, 'big')
        + revoked_at.to_bytes(8, 'big')
        + signature_bytes
        + len(schema_id_bytes).to_bytes(8, 'big')
        + schema_id_bytes
        + payload
    )


def parse_claim_record(claim_id: str, raw: bytes) -> AttestationClaim:
    """Parse a claim record box value into an AttestationClaim."""
    if len(raw) < _HEADER_LEN:
        raise ClaimDecodeError(f"Claim record too short: {len(raw)} bytes")

    status = raw[0:1]
    if status not in (STATUS_ACTIVE, STATUS_REVOKED):
        raise ClaimDecodeError(f"Unknown claim status byte: {status!r}")

    issued_at = int.from_bytes(raw[65:73], 'big')
    expires_at = int.from_bytes(raw[73:81], 'big')
    revoked_at = int.from_bytes(raw[81:89], 'big')
    schema_id_len = int.from_bytes(raw[153:161], 'big')
    schema_end = _HEADER_LEN + schema_id_len
    if schema_end > len(raw):
        raise ClaimDecodeError("Claim record schema ID overruns record")

    revoked = status == STATUS_REVOKED or revoked_at > 0
    return AttestationClaim(
        uid=claim_id,
        subject=encoding.encode_address(raw[1:33]),
        issuer=public_key_to_did_key(raw[33:65]),
        issued_at=_timestamp(issued_at),
        expires_at=_timestamp(expires_at) if expires_at else None,
        revoked_at=_timestamp(revoked_at) if revoked else None,
        signature=raw[89:153].hex(),
        schema_id=_schema_id_from_bytes(raw[_HEADER_LEN:schema_end]),
        payload=raw[schema_end:],
    )


def _timestamp(seconds: int) -> datetime:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise ClaimDecodeError(f"Timestamp out of range: {seconds}")


def _schema_id_from_bytes(schema_id_bytes: bytes) -> str:
    """Inverse of schema_id_to_bytes: 32 raw bytes render as hex."""
    if len(schema_id_bytes) == 32:
        return schema_id_bytes.hex()
    try:
        return schema_id_bytes.decode('utf-8')
    except UnicodeDecodeError:
        return schema_id_bytes.hex()
