"""Configuration management for storegate using pydantic-settings.

Handles Algod client setup, registry and schema settings, and wiring of
the resolver, cache and purchase gate from environment configuration.
"""

from __future__ import annotations

from algosdk.v2client.algod import AlgodClient
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storegate.sdk.cache import DEFAULT_ERROR_TTL, DEFAULT_TTL, VerificationCache
from storegate.sdk.decoding import SchemaRegistry
from storegate.sdk.did import validate_did_key_format
from storegate.sdk.gate import DEFAULT_LISTING_REGION, PurchaseGate
from storegate.sdk.hashing import DEFAULT_MERCHANT_SCHEMA_ID, DEFAULT_REGION_SCHEMA_ID, DEFAULT_TRADING_SCHEMA_ID
from storegate.sdk.registry import AlgodAttestationRegistry
from storegate.sdk.resolver import DEFAULT_TIMEOUT, AttestationResolver


class StoreGateConfig(BaseSettings):
    """storegate configuration using pydantic-settings BaseSettings."""

    model_config = SettingsConfigDict(
        env_prefix='STOREGATE_',
        env_file='.env',
        env_file_encoding='utf-8',
        secrets_dir='/run/secrets'
    )

    algod_url: str = Field(
        default="http://localhost:4001",
        description="Algorand node URL"
    )
    algod_token: str = Field(
        default="aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa",
        description="Algorand node API token"
    )
    app_id: int | None = Field(
        default=None,
        description="Attestation registry application ID"
    )
    region_schema_id: str = Field(
        default=DEFAULT_REGION_SCHEMA_ID,
        description="Schema ID of region claims"
    )
    trading_schema_id: str = Field(
        default=DEFAULT_TRADING_SCHEMA_ID,
        description="Schema ID of trading-access claims"
    )
    merchant_schema_id: str = Field(
        default=DEFAULT_MERCHANT_SCHEMA_ID,
        description="Schema ID of merchant claims; empty disables merchant checks"
    )
    trusted_issuers: list[str] | None = Field(
        default=None,
        description="did:key issuers whose claims are accepted (JSON list); unset accepts any"
    )
    verify_signatures: bool = Field(default=True, description="Verify issuer signatures on claims")
    resolve_timeout: float = Field(default=DEFAULT_TIMEOUT, description="Seconds allowed per registry call")
    cache_ttl: float = Field(default=DEFAULT_TTL, description="Seconds a resolved state is reused")
    error_ttl: float = Field(default=DEFAULT_ERROR_TTL, description="Seconds a resolution failure is reused")
    listing_region: str = Field(default=DEFAULT_LISTING_REGION, description="Region required to list products")
    webhook_secret: str | None = Field(default=None, description="Shared secret for payment webhooks")
    log_level: str = Field(default="WARNING", description="CLI log level")

    @field_validator('app_id')
    @classmethod
    def validate_app_id(cls, v: int | None) -> int | None:
        """Validate app ID is positive if provided."""
        if v is not None and v <= 0:
            raise ValueError("App ID must be positive")
        return v

    @field_validator('trusted_issuers')
    @classmethod
    def validate_trusted_issuers(cls, v: list[str] | None) -> list[str] | None:
        if v is not None:
            for did in v:
                if not validate_did_key_format(did):
                    raise ValueError(f"Invalid did:key: {did}")
        return v

    @field_validator('resolve_timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Resolve timeout must be positive")
        return v

    @field_validator('cache_ttl', 'error_ttl')
    @classmethod
    def validate_ttl(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Cache TTL must not be negative")
        return v


def create_algod_client(config: StoreGateConfig) -> AlgodClient:
    """Create Algod client from configuration."""
    return AlgodClient(config.algod_token, config.algod_url)


def create_registry(config: StoreGateConfig) -> AlgodAttestationRegistry:
    """Create registry reader from configuration."""
    validate_config(config)
    return AlgodAttestationRegistry(create_algod_client(config), config.app_id)


def create_resolver(config: StoreGateConfig) -> AttestationResolver:
    """Create attestation resolver from configuration."""
    return AttestationResolver(
        create_registry(config),
        SchemaRegistry(config.region_schema_id, config.trading_schema_id, config.merchant_schema_id or None),
        trusted_issuers=config.trusted_issuers,
        verify_signatures=config.verify_signatures,
        timeout=config.resolve_timeout,
    )


def create_gate(config: StoreGateConfig) -> PurchaseGate:
    """Create a purchase gate with a fresh session cache."""
    cache = VerificationCache(ttl=config.cache_ttl, error_ttl=config.error_ttl)
    return PurchaseGate(create_resolver(config), cache, listing_region=config.listing_region)


def validate_config(config: StoreGateConfig) -> None:
    """Validate configuration completeness for registry access."""
    if not config.app_id:
        raise ValueError("App ID required. Set STOREGATE_APP_ID environment variable.")
    schema_ids = [config.region_schema_id, config.trading_schema_id]
    if config.merchant_schema_id:
        schema_ids.append(config.merchant_schema_id)
    if len(set(schema_ids)) != len(schema_ids):
        raise ValueError(
            "STOREGATE_REGION_SCHEMA_ID, STOREGATE_TRADING_SCHEMA_ID and STOREGATE_MERCHANT_SCHEMA_ID must differ."
        )
