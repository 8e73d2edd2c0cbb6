"""Test CLI commands and configuration."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from storegate import __version__
from storegate.cli.config import StoreGateConfig, create_algod_client, create_gate, create_registry, validate_config
from storegate.cli.main import app
from storegate.sdk.errors import ResolutionError
from storegate.sdk.evaluator import REGION_VERIFICATION_REQUIRED
from storegate.sdk.gate import PurchaseGate
from storegate.sdk.hashing import DEFAULT_MERCHANT_SCHEMA_ID, DEFAULT_REGION_SCHEMA_ID, DEFAULT_TRADING_SCHEMA_ID
from storegate.sdk.models import (
    DenialCode,
    EligibilityDecision,
    MerchantCategory,
    MerchantLevel,
    MerchantProfile,
    VerificationRequirement,
    VerificationState,
)
from storegate.sdk.registry import parse_claim_record
from tests.helpers import ADDR_A, ISSUER_DID, REGION_SCHEMA_ID


@pytest.fixture
def runner() -> CliRunner:
    """CLI test runner fixture."""
    return CliRunner()


@pytest.fixture
def mock_config() -> StoreGateConfig:
    """Configuration with valid test data."""
    return StoreGateConfig(algod_url="http://localhost:4001", algod_token="test_token", app_id=123)


@pytest.fixture
def mock_gate() -> MagicMock:
    gate = MagicMock()
    gate.check_purchase = AsyncMock(return_value=EligibilityDecision.allow())
    gate.check_listing = AsyncMock(return_value=EligibilityDecision.allow())
    gate.verification_state = AsyncMock(return_value=VerificationState(region="CA", has_trading_access=True))
    return gate


def test_config_load_from_env():
    """Test configuration loading from environment variables."""
    with patch.dict('os.environ', {
        'STOREGATE_ALGOD_URL': 'http://testnet:4001',
        'STOREGATE_APP_ID': '456',
        'STOREGATE_TRUSTED_ISSUERS': json.dumps([ISSUER_DID]),
        'STOREGATE_CACHE_TTL': '30',
        'STOREGATE_LISTING_REGION': 'US',
    }):
        config = StoreGateConfig()
        assert config.algod_url == 'http://testnet:4001'
        assert config.app_id == 456
        assert config.trusted_issuers == [ISSUER_DID]
        assert config.cache_ttl == 30
        assert config.listing_region == 'US'


def test_config_defaults():
    config = StoreGateConfig()
    assert config.region_schema_id == DEFAULT_REGION_SCHEMA_ID
    assert config.trading_schema_id == DEFAULT_TRADING_SCHEMA_ID
    assert config.verify_signatures is True
    assert config.listing_region == "CA"


@pytest.mark.parametrize("field, value", [
    ("app_id", 0),
    ("resolve_timeout", 0),
    ("cache_ttl", -1),
    ("trusted_issuers", ["not-a-did"]),
])
def test_config_rejects_invalid_values(field: str, value):
    with pytest.raises(ValueError):
        StoreGateConfig(**{field: value})


def test_config_validation_success(mock_config: StoreGateConfig):
    validate_config(mock_config)  # Should not raise


def test_config_validation_missing_app_id():
    with pytest.raises(ValueError, match="App ID required"):
        validate_config(StoreGateConfig())


def test_config_validation_same_schema_ids():
    config = StoreGateConfig(app_id=1, trading_schema_id=DEFAULT_REGION_SCHEMA_ID)
    with pytest.raises(ValueError, match="must differ"):
        validate_config(config)


def test_config_validation_merchant_schema_must_differ():
    config = StoreGateConfig(app_id=1, merchant_schema_id=DEFAULT_TRADING_SCHEMA_ID)
    with pytest.raises(ValueError, match="STOREGATE_MERCHANT_SCHEMA_ID"):
        validate_config(config)


def test_create_registry_requires_app_id():
    with pytest.raises(ValueError, match="App ID required"):
        create_registry(StoreGateConfig())


def test_create_gate_merchant_schema(mock_config: StoreGateConfig):
    assert create_gate(mock_config).resolver.schemas.merchant_schema_id == DEFAULT_MERCHANT_SCHEMA_ID

    disabled = mock_config.model_copy(update={"merchant_schema_id": ""})
    assert create_gate(disabled).resolver.schemas.merchant_schema_id is None


def test_create_algod_client(mock_config: StoreGateConfig):
    assert create_algod_client(mock_config) is not None


def test_create_gate(mock_config: StoreGateConfig):
    gate = create_gate(mock_config)
    assert isinstance(gate, PurchaseGate)
    assert gate.cache.ttl == mock_config.cache_ttl
    assert gate.resolver.registry.app_id == 123


def test_version(runner: CliRunner):
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_schema_ids(runner: CliRunner):
    result = runner.invoke(app, ["schema-ids"])
    assert result.exit_code == 0
    assert DEFAULT_REGION_SCHEMA_ID in result.output
    assert DEFAULT_TRADING_SCHEMA_ID in result.output


def test_check_allowed(runner: CliRunner, mock_gate: MagicMock):
    with patch("storegate.cli.main.create_gate", return_value=mock_gate):
        result = runner.invoke(app, ["check", ADDR_A, "--requirement", "region", "--region", "CA"])

    assert result.exit_code == 0
    assert "Eligible to purchase" in result.output
    subject, product = mock_gate.check_purchase.call_args.args
    assert subject == ADDR_A
    assert product.region == "CA"
    assert product.verification_required == VerificationRequirement.REGION


def test_check_denied(runner: CliRunner, mock_gate: MagicMock):
    mock_gate.check_purchase.return_value = EligibilityDecision.deny(
        DenialCode.REGION_VERIFICATION_REQUIRED, REGION_VERIFICATION_REQUIRED
    )
    with patch("storegate.cli.main.create_gate", return_value=mock_gate):
        result = runner.invoke(app, ["check", ADDR_A, "--region", "CA"])

    assert result.exit_code == 1
    assert REGION_VERIFICATION_REQUIRED in result.output
    assert "REGION_VERIFICATION_REQUIRED" in result.output


def test_check_missing_app_id(runner: CliRunner):
    result = runner.invoke(app, ["check", ADDR_A])
    assert result.exit_code == 1
    assert "App ID required" in result.output


def test_check_listing(runner: CliRunner, mock_gate: MagicMock):
    with patch("storegate.cli.main.create_gate", return_value=mock_gate):
        result = runner.invoke(app, ["check-listing", ADDR_A, "--no-trading"])

    assert result.exit_code == 0
    assert "Eligible to list products" in result.output
    mock_gate.check_listing.assert_awaited_once_with(ADDR_A, None, False)


def test_resolve(runner: CliRunner, mock_gate: MagicMock):
    with patch("storegate.cli.main.create_gate", return_value=mock_gate):
        result = runner.invoke(app, ["resolve", ADDR_A])

    assert result.exit_code == 0
    assert "CA" in result.output


def test_resolve_error(runner: CliRunner, mock_gate: MagicMock):
    mock_gate.verification_state.side_effect = ResolutionError("Registry unreachable")
    with patch("storegate.cli.main.create_gate", return_value=mock_gate):
        result = runner.invoke(app, ["resolve", ADDR_A])

    assert result.exit_code == 1
    assert "Registry unreachable" in result.output


def test_issuer_keygen_seed_is_deterministic(runner: CliRunner):
    first = runner.invoke(app, ["issuer", "keygen", "--seed", "test"])
    second = runner.invoke(app, ["issuer", "keygen", "--seed", "test"])

    assert first.exit_code == 0
    assert first.output.strip().startswith("did:key:z6Mk")
    assert first.output == second.output


def test_issuer_keygen_refuses_overwrite(runner: CliRunner, tmp_path: Path):
    key_file = tmp_path / "issuer.json"
    key_file.write_text("{}")

    result = runner.invoke(app, ["issuer", "keygen", "--output", str(key_file)])

    assert result.exit_code == 1
    assert key_file.read_text() == "{}"


def test_issuer_encode_claim(runner: CliRunner, tmp_path: Path):
    key_file = tmp_path / "issuer.json"
    claim_file = tmp_path / "claim.json"
    claim_file.write_text(json.dumps({"region": "CA"}))

    keygen = runner.invoke(app, ["issuer", "keygen", "--seed", "encode", "--output", str(key_file)])
    assert keygen.exit_code == 0
    did = json.loads(key_file.read_text())["did"]

    result = runner.invoke(
        app, ["issuer", "encode-claim", REGION_SCHEMA_ID, ADDR_A, str(claim_file), "--key-file", str(key_file)]
    )
    assert result.exit_code == 0

    output = json.loads(result.output)
    claim = parse_claim_record(output["claim_id"], bytes.fromhex(output["record"]))
    assert claim.subject == ADDR_A
    assert claim.issuer == did
    assert claim.payload == b'{"region":"CA"}'
    assert output["record_box"].endswith(output["claim_id"])


def test_issuer_encode_claim_missing_key(runner: CliRunner, tmp_path: Path):
    claim_file = tmp_path / "claim.json"
    claim_file.write_text("{}")

    result = runner.invoke(
        app, ["issuer", "encode-claim", REGION_SCHEMA_ID, ADDR_A, str(claim_file), "--key-file", str(tmp_path / "x.json")]
    )
    assert result.exit_code == 1
    assert "Key file not found" in result.output


def test_check_merchant(runner: CliRunner, mock_gate: MagicMock):
    mock_gate.merchant_profile = AsyncMock(return_value=MerchantProfile(
        level=MerchantLevel.TRUSTED, category=MerchantCategory.NFT, review_score=90, is_active=True
    ))
    with patch("storegate.cli.main.create_gate", return_value=mock_gate):
        result = runner.invoke(app, ["check-merchant", ADDR_A])

    assert result.exit_code == 0
    assert "TRUSTED NFT" in result.output
    assert "Verified merchant" in result.output


@pytest.mark.parametrize("profile, message", [
    (None, "No merchant attestation"),
    (
        MerchantProfile(level=MerchantLevel.BASIC, category=MerchantCategory.GENERAL, review_score=0, is_active=False),
        "inactive",
    ),
])
def test_check_merchant_not_verified(runner: CliRunner, mock_gate: MagicMock, profile, message: str):
    mock_gate.merchant_profile = AsyncMock(return_value=profile)
    with patch("storegate.cli.main.create_gate", return_value=mock_gate):
        result = runner.invoke(app, ["check-merchant", ADDR_A])

    assert result.exit_code == 1
    assert message in result.output
