"""Payload decoders, one per claim schema.

Each schema's encoding sits behind a single decoder function so a change
in one issuer's format is a local swap. Payloads are canonical JSON
objects.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from storegate.sdk.errors import ClaimDecodeError
from storegate.sdk.models import MerchantProfile, SchemaKind

ClaimValue = str | bool | MerchantProfile | None
Decoder = Callable[[bytes], ClaimValue]


def _load_object(payload: bytes) -> dict[str, Any]:
    try:
        data = json.loads(payload.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ClaimDecodeError(f"Payload is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise ClaimDecodeError("Payload must be a JSON object")
    return data


def _flags_set(data: dict[str, Any]) -> bool:
    return all(value for value in data.values() if isinstance(value, bool))


def decode_region(payload: bytes) -> str:
    """Decode a region claim: ``{"region": "CA", "isActive": true}``.

    A claim whose status flags (``isActive``, ``hasVerifiedAccount`` or any
    other boolean field) are not all true verifies no region and decodes
    to the empty string.
    """
    data = _load_object(payload)
    region = data.get("region")
    if not isinstance(region, str):
        raise ClaimDecodeError("Region claim must carry a string 'region' field")
    if not _flags_set(data):
        return ""
    return region.strip()


def decode_trading_access(payload: bytes) -> bool:
    """Decode a trading-access claim.

    The claim grants access when every boolean field it carries is true.
    An object without boolean fields counts as a bare presence flag.
    """
    data = _load_object(payload)
    if "hasTradingAccess" in data and not isinstance(data["hasTradingAccess"], bool):
        raise ClaimDecodeError("'hasTradingAccess' must be a boolean")
    return _flags_set(data)


def decode_merchant(payload: bytes) -> MerchantProfile:
    """Decode a merchant claim into its level, category, score and status."""
    try:
        return MerchantProfile.model_validate_json(payload, strict=True)
    except ValidationError as e:
        raise ClaimDecodeError(f"Invalid merchant claim: {e}")


DECODERS: dict[SchemaKind, Decoder] = {
    SchemaKind.REGION: decode_region,
    SchemaKind.TRADING: decode_trading_access,
    SchemaKind.MERCHANT: decode_merchant,
}

UNKNOWN_VALUES: dict[SchemaKind, ClaimValue] = {
    SchemaKind.REGION: "",
    SchemaKind.TRADING: False,
    SchemaKind.MERCHANT: None,
}


def decode(kind: SchemaKind, payload: bytes) -> ClaimValue:
    """Decode a payload according to its schema kind."""
    return DECODERS[kind](payload)


class SchemaRegistry:
    """Maps the configured schema IDs to the claim kinds they carry.

    The merchant schema is optional; without it merchant claims are never
    resolved.
    """

    def __init__(self, region_schema_id: str, trading_schema_id: str, merchant_schema_id: str | None = None):
        if not region_schema_id or not trading_schema_id:
            raise ValueError("Region and trading schema IDs are required")
        self._by_kind = {
            SchemaKind.REGION: region_schema_id,
            SchemaKind.TRADING: trading_schema_id,
        }
        if merchant_schema_id:
            self._by_kind[SchemaKind.MERCHANT] = merchant_schema_id
        self._by_id = {schema_id: kind for kind, schema_id in self._by_kind.items()}
        if len(self._by_id) != len(self._by_kind):
            raise ValueError("Region, trading and merchant schema IDs must differ")

    def kind_for(self, schema_id: str) -> SchemaKind:
        try:
            return self._by_id[schema_id]
        except KeyError:
            raise ValueError(f"Unknown schema ID: {schema_id}")

    def schema_id_for(self, kind: SchemaKind) -> str:
        try:
            return self._by_kind[kind]
        except KeyError:
            raise ValueError(f"No schema ID configured for {kind.value} claims")

    @property
    def region_schema_id(self) -> str:
        return self._by_kind[SchemaKind.REGION]

    @property
    def trading_schema_id(self) -> str:
        return self._by_kind[SchemaKind.TRADING]

    @property
    def merchant_schema_id(self) -> str | None:
        return self._by_kind.get(SchemaKind.MERCHANT)
