"""Test the purchase eligibility policy."""

from __future__ import annotations

import pytest

from storegate.sdk.errors import ResolutionError
from storegate.sdk.evaluator import (
    REGION_VERIFICATION_REQUIRED,
    TRADING_VERIFICATION_REQUIRED,
    VERIFICATION_UNAVAILABLE,
    WALLET_NOT_CONNECTED,
    evaluate_eligibility,
    evaluate_product,
)
from storegate.sdk.models import DenialCode, Product, VerificationRequirement, VerificationState

R = VerificationRequirement


def state(region: str = "", trading: bool = False) -> VerificationState:
    return VerificationState(region=region, has_trading_access=trading)


def test_none_requirement_always_allowed() -> None:
    for s, err in ((None, None), (state(), None), (None, ResolutionError("down"))):
        decision = evaluate_eligibility(s, err, "CA", R.NONE)
        assert decision.can_purchase
        assert decision.reason is None


@pytest.mark.parametrize("requirement", [R.REGION, R.TRADING, R.BOTH])
def test_no_subject_requires_wallet(requirement: VerificationRequirement) -> None:
    decision = evaluate_eligibility(None, None, "CA", requirement)

    assert not decision.can_purchase
    assert decision.code == DenialCode.WALLET_NOT_CONNECTED
    assert decision.reason == WALLET_NOT_CONNECTED


@pytest.mark.parametrize("requirement", [R.REGION, R.TRADING, R.BOTH])
def test_resolution_failure_is_not_a_policy_denial(requirement: VerificationRequirement) -> None:
    decision = evaluate_eligibility(None, ResolutionError("down"), "CA", requirement)

    assert not decision.can_purchase
    assert decision.code == DenialCode.VERIFICATION_UNAVAILABLE
    assert decision.reason == VERIFICATION_UNAVAILABLE


def test_region_match() -> None:
    assert evaluate_eligibility(state("CA"), None, "CA", R.REGION).can_purchase


def test_region_unknown() -> None:
    decision = evaluate_eligibility(state(""), None, "CA", R.REGION)

    assert not decision.can_purchase
    assert decision.code == DenialCode.REGION_VERIFICATION_REQUIRED
    assert decision.reason == REGION_VERIFICATION_REQUIRED


def test_region_mismatch_names_required_region() -> None:
    decision = evaluate_eligibility(state("US"), None, "CA", R.REGION)

    assert not decision.can_purchase
    assert decision.code == DenialCode.REGION_NOT_ELIGIBLE
    assert "CA" in decision.reason


def test_region_match_is_case_sensitive() -> None:
    assert not evaluate_eligibility(state("ca"), None, "CA", R.REGION).can_purchase


def test_region_requirement_without_product_region() -> None:
    decision = evaluate_eligibility(state("CA"), None, "", R.REGION)
    assert decision.code == DenialCode.REGION_NOT_ELIGIBLE


def test_trading_required() -> None:
    denied = evaluate_eligibility(state("CA", trading=False), None, "CA", R.TRADING)

    assert not denied.can_purchase
    assert denied.reason == TRADING_VERIFICATION_REQUIRED
    assert evaluate_eligibility(state(trading=True), None, "", R.TRADING).can_purchase


def test_trading_only_ignores_region() -> None:
    """Region is irrelevant to a trading-only requirement."""
    decision = evaluate_eligibility(state("", trading=True), None, "CA", R.TRADING)
    assert decision.can_purchase


def test_both_requires_both() -> None:
    assert evaluate_eligibility(state("US", trading=True), None, "US", R.BOTH).can_purchase
    assert not evaluate_eligibility(state("CA", trading=True), None, "US", R.BOTH).can_purchase
    assert not evaluate_eligibility(state("US", trading=False), None, "US", R.BOTH).can_purchase


def test_both_reports_trading_failure_first() -> None:
    decision = evaluate_eligibility(state("US", trading=False), None, "CA", R.BOTH)

    assert decision.code == DenialCode.TRADING_VERIFICATION_REQUIRED
    assert decision.reason == TRADING_VERIFICATION_REQUIRED


def test_evaluation_is_pure() -> None:
    s = state("US", trading=True)
    first = evaluate_eligibility(s, None, "CA", R.BOTH)
    second = evaluate_eligibility(s, None, "CA", R.BOTH)

    assert first == second
    assert s == state("US", trading=True)


def test_evaluate_product() -> None:
    product = Product(id="flash-1", name="Samba OG", region="CA", verification_required=R.REGION)

    assert evaluate_product(state("CA"), None, product).can_purchase
    assert not evaluate_product(state("EU"), None, product).can_purchase
