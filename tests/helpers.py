"""Test helper functions for DRY code and simplified test patterns.

Provides deterministic addresses and issuer keys, signed claim builders and
an in-memory registry that counts calls, so tests can assert exactly when
the network would have been touched.
"""

from __future__ import annotations

import asyncio
import hashlib
from typing import Any

from algosdk import encoding
from nacl.signing import SigningKey

from storegate.sdk.decoding import SchemaRegistry
from storegate.sdk.did import generate_did_key
from storegate.sdk.hashing import (
    DEFAULT_MERCHANT_SCHEMA_ID,
    DEFAULT_REGION_SCHEMA_ID,
    DEFAULT_TRADING_SCHEMA_ID,
    canonical_json,
    sign_claim,
)
from storegate.sdk.models import AttestationClaim
from storegate.sdk.registry import encode_claim_record, parse_claim_record

ADDR_A = encoding.encode_address(bytes([1]) * 32)
ADDR_B = encoding.encode_address(bytes([2]) * 32)
ISSUER_KEY = SigningKey(hashlib.sha256(b"test-issuer").digest())
ISSUER_DID = generate_did_key(ISSUER_KEY)
OTHER_ISSUER_KEY = SigningKey(hashlib.sha256(b"other-issuer").digest())
REGION_SCHEMA_ID = DEFAULT_REGION_SCHEMA_ID
TRADING_SCHEMA_ID = DEFAULT_TRADING_SCHEMA_ID
MERCHANT_SCHEMA_ID = DEFAULT_MERCHANT_SCHEMA_ID
ISSUED_AT = 1_700_000_000


def make_schemas(merchant: bool = False) -> SchemaRegistry:
    return SchemaRegistry(REGION_SCHEMA_ID, TRADING_SCHEMA_ID, MERCHANT_SCHEMA_ID if merchant else None)


def build_record(
    subject: str,
    schema_id: str,
    payload: dict[str, Any] | bytes,
    signing_key: SigningKey = ISSUER_KEY,
    issued_at: int = ISSUED_AT,
    expires_at: int = 0,
    revoked_at: int = 0,
) -> bytes:
    """Encode a signed claim record box value."""
    payload_bytes = canonical_json(payload) if isinstance(payload, dict) else payload
    signature = sign_claim(signing_key, schema_id, subject, payload_bytes, issued_at, expires_at)
    return encode_claim_record(
        subject, generate_did_key(signing_key), schema_id, payload_bytes, signature, issued_at, expires_at, revoked_at
    )


def make_claim(subject: str, schema_id: str, payload: dict[str, Any] | bytes, **kwargs: Any) -> AttestationClaim:
    """Build a signed claim as the registry would return it."""
    record = build_record(subject, schema_id, payload, **kwargs)
    return parse_claim_record(hashlib.sha256(record).hexdigest(), record)


def region_claim(subject: str, region: str, **kwargs: Any) -> AttestationClaim:
    return make_claim(subject, REGION_SCHEMA_ID, {"region": region}, **kwargs)


def trading_claim(subject: str, has_access: bool = True, **kwargs: Any) -> AttestationClaim:
    return make_claim(subject, TRADING_SCHEMA_ID, {"hasTradingAccess": has_access}, **kwargs)


def merchant_claim(
    subject: str, level: int = 1, category: str = "NFT", score: int = 90, active: bool = True, **kwargs: Any
) -> AttestationClaim:
    payload = {"merchantLevel": level, "merchantCategory": category, "reviewScore": score, "isActive": active}
    return make_claim(subject, MERCHANT_SCHEMA_ID, payload, **kwargs)


class FakeRegistry:
    """In-memory AttestationRegistry that records how often it is called."""

    def __init__(self, *claims: AttestationClaim, delay: float = 0.0):
        self.index: dict[tuple[str, str], str] = {}
        self.claims: dict[str, AttestationClaim] = {}
        self.lookup_calls = 0
        self.fetch_calls = 0
        self.delay = delay
        self.fail_with: Exception | None = None
        for claim in claims:
            self.add(claim)

    def add(self, claim: AttestationClaim) -> None:
        self.index[(claim.subject, claim.schema_id)] = claim.uid
        self.claims[claim.uid] = claim

    def replace(self, claim: AttestationClaim) -> None:
        """Point the index at a new claim for the same (subject, schema)."""
        self.add(claim)

    @property
    def calls(self) -> int:
        return self.lookup_calls + self.fetch_calls

    async def lookup_claim_id(self, address: str, schema_id: str) -> str | None:
        self.lookup_calls += 1
        await self._io()
        return self.index.get((address, schema_id))

    async def fetch_claim(self, claim_id: str) -> AttestationClaim | None:
        self.fetch_calls += 1
        await self._io()
        return self.claims.get(claim_id)

    async def _io(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
