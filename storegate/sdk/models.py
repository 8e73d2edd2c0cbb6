"""Pydantic models for storegate data structures.

Covers attestation claims as read from the registry, the decoded
verification state of a wallet, products and their verification
requirement, and the eligibility decision handed back to callers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field


class VerificationRequirement(str, Enum):
    """Which attestation checks gate a purchase."""
    NONE = "NONE"
    REGION = "REGION"
    TRADING = "TRADING"
    BOTH = "BOTH"


class SchemaKind(str, Enum):
    """Claim types the storefront understands."""
    REGION = "REGION"
    TRADING = "TRADING"
    MERCHANT = "MERCHANT"


class MerchantLevel(IntEnum):
    BASIC = 0
    TRUSTED = 1
    PREMIUM = 2
    EXPERT = 3


class MerchantCategory(str, Enum):
    GENERAL = "GENERAL"
    NFT = "NFT"
    PHYSICAL = "PHYSICAL"
    DIGITAL = "DIGITAL"


class DenialCode(str, Enum):
    """Machine-readable cause of a negative eligibility decision."""
    WALLET_NOT_CONNECTED = "WALLET_NOT_CONNECTED"
    VERIFICATION_UNAVAILABLE = "VERIFICATION_UNAVAILABLE"
    REGION_VERIFICATION_REQUIRED = "REGION_VERIFICATION_REQUIRED"
    REGION_NOT_ELIGIBLE = "REGION_NOT_ELIGIBLE"
    TRADING_VERIFICATION_REQUIRED = "TRADING_VERIFICATION_REQUIRED"


class AttestationClaim(BaseModel):
    """Signed claim record as stored by the attestation registry."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    uid: str = Field(..., description="Claim UID (64-char hex)")
    subject: str = Field(..., description="Subject wallet address")
    schema_id: str = Field(..., description="Schema the claim was issued under")
    payload: bytes = Field(default=b"", description="Encoded claim payload")
    issuer: str = Field(..., description="Issuer did:key")
    signature: str = Field(default="", description="Ed25519 signature (hex)")
    issued_at: datetime = Field(..., description="Issuance time (UTC)")
    expires_at: datetime | None = Field(default=None, description="Expiry time, None if the claim never expires")
    revoked_at: datetime | None = Field(default=None, description="Revocation time, None while the claim is live")

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now


class MerchantProfile(BaseModel):
    """Decoded merchant claim. Validated from the claim's JSON field names."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    level: MerchantLevel = Field(..., alias="merchantLevel")
    category: MerchantCategory = Field(..., alias="merchantCategory")
    review_score: int = Field(..., alias="reviewScore", ge=0, le=2**32 - 1)
    is_active: bool = Field(..., alias="isActive")


class ResolvedClaim(BaseModel):
    """Decoded value of a live claim for one schema."""

    model_config = ConfigDict(frozen=True)

    uid: str
    schema_id: str
    kind: SchemaKind
    value: str | bool | MerchantProfile | None
    issuer: str
    issued_at: datetime
    decode_failed: bool = Field(default=False, description="Payload could not be decoded; value is the unknown default")


class VerificationState(BaseModel):
    """Application-level view of a wallet's verified standing."""

    model_config = ConfigDict(frozen=True)

    region: str = ""
    has_trading_access: bool = False
    merchant: MerchantProfile | None = None
    region_claim: ResolvedClaim | None = None
    trading_claim: ResolvedClaim | None = None
    merchant_claim: ResolvedClaim | None = None

    @property
    def is_merchant_verified(self) -> bool:
        return self.merchant is not None and self.merchant.is_active

    @classmethod
    def from_claims(
        cls,
        region_claim: ResolvedClaim | None,
        trading_claim: ResolvedClaim | None,
        merchant_claim: ResolvedClaim | None = None,
    ) -> VerificationState:
        """Build state from per-schema results; missing claims give the defaults."""
        region = ""
        if region_claim is not None and not region_claim.decode_failed and isinstance(region_claim.value, str):
            region = region_claim.value
        trading = bool(
            trading_claim is not None
            and not trading_claim.decode_failed
            and trading_claim.value is True
        )
        merchant = None
        if merchant_claim is not None and isinstance(merchant_claim.value, MerchantProfile):
            merchant = merchant_claim.value
        return cls(
            region=region,
            has_trading_access=trading,
            merchant=merchant,
            region_claim=region_claim,
            trading_claim=trading_claim,
            merchant_claim=merchant_claim,
        )


class Product(BaseModel):
    """Product or listing as far as eligibility is concerned."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Product identifier")
    name: str = Field(default="", description="Display name")
    region: str = Field(default="", description="Region the product is restricted to")
    verification_required: VerificationRequirement = Field(default=VerificationRequirement.NONE)


class EligibilityDecision(BaseModel):
    """Result of a purchase or listing check. Never persisted."""

    model_config = ConfigDict(frozen=True)

    can_purchase: bool
    reason: str | None = None
    code: DenialCode | None = None

    @classmethod
    def allow(cls) -> EligibilityDecision:
        return cls(can_purchase=True)

    @classmethod
    def deny(cls, code: DenialCode, reason: str) -> EligibilityDecision:
        return cls(can_purchase=False, reason=reason, code=code)
