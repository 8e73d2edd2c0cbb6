"""Attestation resolution.

Turns (subject address, schema ID) into the decoded value of a live claim,
or None when no usable claim exists. Registry failures are raised as
ResolutionError so callers can tell "no claim" from "could not check".
A payload that fails to decode degrades that one schema to its unknown
value instead of failing the whole resolution.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import TypeVar

from algosdk import encoding

from storegate.sdk.decoding import UNKNOWN_VALUES, SchemaRegistry, decode
from storegate.sdk.did import did_key_to_public_key, validate_did_key_format
from storegate.sdk.errors import ClaimDecodeError, ResolutionError
from storegate.sdk.hashing import schema_id_to_bytes, verify_claim_signature
from storegate.sdk.models import AttestationClaim, MerchantProfile, ResolvedClaim, SchemaKind, VerificationState
from storegate.sdk.registry import AttestationRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 8.0


def validate_address(address: str) -> None:
    """Raise ValueError unless `address` is a well-formed Algorand address."""
    if not isinstance(address, str) or not encoding.is_valid_address(address):
        raise ValueError(f"Invalid wallet address: {address!r}")


class AttestationResolver:
    """Resolves region and trading-access claims for wallet addresses."""

    def __init__(
        self,
        registry: AttestationRegistry,
        schemas: SchemaRegistry,
        *,
        trusted_issuers: Iterable[str] | None = None,
        verify_signatures: bool = True,
        timeout: float | None = DEFAULT_TIMEOUT,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize resolver.

        Args:
            registry: Registry to read claims from
            schemas: Configured region and trading schema IDs
            trusted_issuers: did:key identities whose claims are accepted;
                None accepts any issuer
            verify_signatures: Check each claim's ed25519 signature
            timeout: Seconds allowed per registry call; None disables it
            clock: Source of the current UTC time (expiry checks)
        """
        if registry is None:
            raise ValueError("Registry is required")
        if timeout is not None and timeout <= 0:
            raise ValueError("Timeout must be positive")

        self.registry = registry
        self.schemas = schemas
        self.verify_signatures = verify_signatures
        self.timeout = timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.trusted_issuers: frozenset[str] | None = None
        if trusted_issuers is not None:
            issuers = frozenset(trusted_issuers)
            invalid = [did for did in issuers if not validate_did_key_format(did)]
            if invalid:
                raise ValueError(f"Invalid trusted issuer did:key: {invalid[0]}")
            self.trusted_issuers = issuers

    async def resolve(self, subject: str, schema_id: str) -> ResolvedClaim | None:
        """Resolve the claim for (subject, schema) to its decoded value.

        Returns None when no live claim exists. Raises ResolutionError when
        the registry cannot be consulted and ValueError for a malformed
        address or unknown schema.
        """
        validate_address(subject)
        kind = self.schemas.kind_for(schema_id)

        claim_id = await self._call(self.registry.lookup_claim_id(subject, schema_id), subject, schema_id)
        if not claim_id:
            logger.debug("No %s claim indexed for %s", kind.value, subject)
            return None

        claim = await self._call(self.registry.fetch_claim(claim_id), subject, schema_id)
        if claim is None:
            logger.debug("Claim %s indexed for %s but not found", claim_id, subject)
            return None
        if not self._is_usable(claim, subject, schema_id):
            return None

        return self._decode_claim(claim, kind)

    async def resolve_state(self, subject: str) -> VerificationState:
        """Resolve every configured schema concurrently into a VerificationState."""
        lookups = [
            self.resolve(subject, self.schemas.region_schema_id),
            self.resolve(subject, self.schemas.trading_schema_id),
        ]
        if self.schemas.merchant_schema_id is not None:
            lookups.append(self.resolve(subject, self.schemas.merchant_schema_id))
        claims = await asyncio.gather(*lookups)
        return VerificationState.from_claims(*claims)

    async def resolve_merchant(self, subject: str) -> MerchantProfile | None:
        """Merchant profile of `subject`, or None without a decodable claim.

        Raises ValueError when no merchant schema is configured.
        """
        schema_id = self.schemas.schema_id_for(SchemaKind.MERCHANT)
        claim = await self.resolve(subject, schema_id)
        if claim is None or not isinstance(claim.value, MerchantProfile):
            return None
        return claim.value

    async def _call(self, operation: Awaitable[T], subject: str, schema_id: str) -> T:
        """Await a registry operation under the timeout, normalising failures."""
        try:
            if self.timeout is None:
                return await operation
            return await asyncio.wait_for(operation, self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning("Registry call timed out after %ss for %s", self.timeout, subject)
            raise ResolutionError("Registry call timed out", subject, schema_id) from e
        except ResolutionError as e:
            logger.warning("Registry call failed for %s: %s", subject, e)
            e.subject = e.subject or subject
            e.schema_id = e.schema_id or schema_id
            raise
        except OSError as e:
            logger.warning("Registry unreachable for %s: %s", subject, e)
            raise ResolutionError(f"Registry unreachable: {e}", subject, schema_id) from e

    def _is_usable(self, claim: AttestationClaim, subject: str, schema_id: str) -> bool:
        """Check that a fetched claim is live and actually about this request."""
        if claim.is_revoked:
            logger.debug("Claim %s for %s is revoked", claim.uid, subject)
            return False
        if not claim.payload:
            logger.debug("Claim %s for %s has no payload", claim.uid, subject)
            return False
        if claim.subject != subject:
            logger.warning("Claim %s is about %s, not %s; ignoring", claim.uid, claim.subject, subject)
            return False
        if schema_id_to_bytes(claim.schema_id) != schema_id_to_bytes(schema_id):
            logger.warning("Claim %s has schema %s, expected %s; ignoring", claim.uid, claim.schema_id, schema_id)
            return False
        if claim.is_expired(self._clock()):
            logger.debug("Claim %s for %s expired at %s", claim.uid, subject, claim.expires_at)
            return False
        if self.trusted_issuers is not None and claim.issuer not in self.trusted_issuers:
            logger.warning("Claim %s issued by untrusted %s; ignoring", claim.uid, claim.issuer)
            return False
        if self.verify_signatures and not self._signature_valid(claim):
            logger.warning("Claim %s has an invalid issuer signature; ignoring", claim.uid)
            return False
        return True

    def _signature_valid(self, claim: AttestationClaim) -> bool:
        try:
            verify_key = did_key_to_public_key(claim.issuer)
        except ValueError:
            return False
        expires_at = int(claim.expires_at.timestamp()) if claim.expires_at else 0
        return verify_claim_signature(
            verify_key,
            claim.signature,
            claim.schema_id,
            claim.subject,
            claim.payload,
            int(claim.issued_at.timestamp()),
            expires_at,
        )

    def _decode_claim(self, claim: AttestationClaim, kind: SchemaKind) -> ResolvedClaim:
        try:
            value = decode(kind, claim.payload)
            decode_failed = False
        except ClaimDecodeError as e:
            logger.warning("Could not decode %s claim %s: %s", kind.value, claim.uid, e)
            value = UNKNOWN_VALUES[kind]
            decode_failed = True

        return ResolvedClaim(
            uid=claim.uid,
            schema_id=claim.schema_id,
            kind=kind,
            value=value,
            issuer=claim.issuer,
            issued_at=claim.issued_at,
            decode_failed=decode_failed,
        )
