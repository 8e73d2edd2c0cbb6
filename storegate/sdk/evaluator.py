"""Purchase eligibility policy.

Pure mapping from a resolved verification state and a product's
requirement to an EligibilityDecision. No I/O, no state.
"""

from __future__ import annotations

from storegate.sdk.errors import ResolutionError
from storegate.sdk.models import (
    DenialCode,
    EligibilityDecision,
    Product,
    VerificationRequirement,
    VerificationState,
)

WALLET_NOT_CONNECTED = "Connect your wallet to continue"
VERIFICATION_UNAVAILABLE = "Could not verify eligibility, try again"
REGION_VERIFICATION_REQUIRED = "Region verification required"
TRADING_VERIFICATION_REQUIRED = "Trading verification required"


def region_not_eligible(required_region: str) -> str:
    return f"Region not eligible: available only in {required_region or 'no region'}"


def evaluate_eligibility(
    state: VerificationState | None,
    error: ResolutionError | None,
    product_region: str,
    requirement: VerificationRequirement,
) -> EligibilityDecision:
    """Decide whether a subject with `state` may buy under `requirement`.

    `state` None with no `error` means no wallet is connected. An `error`
    means the registry could not be consulted.
    """
    if requirement == VerificationRequirement.NONE:
        return EligibilityDecision.allow()
    if error is not None:
        return EligibilityDecision.deny(DenialCode.VERIFICATION_UNAVAILABLE, VERIFICATION_UNAVAILABLE)
    if state is None:
        return EligibilityDecision.deny(DenialCode.WALLET_NOT_CONNECTED, WALLET_NOT_CONNECTED)

    # trading is checked first so BOTH reports the trading failure
    if requirement in (VerificationRequirement.TRADING, VerificationRequirement.BOTH):
        if not state.has_trading_access:
            return EligibilityDecision.deny(DenialCode.TRADING_VERIFICATION_REQUIRED, TRADING_VERIFICATION_REQUIRED)

    if requirement in (VerificationRequirement.REGION, VerificationRequirement.BOTH):
        denial = _check_region(state.region, product_region)
        if denial is not None:
            return denial

    return EligibilityDecision.allow()


def evaluate_product(
    state: VerificationState | None,
    error: ResolutionError | None,
    product: Product,
) -> EligibilityDecision:
    return evaluate_eligibility(state, error, product.region, product.verification_required)


def _check_region(resolved_region: str, product_region: str) -> EligibilityDecision | None:
    if not resolved_region:
        return EligibilityDecision.deny(DenialCode.REGION_VERIFICATION_REQUIRED, REGION_VERIFICATION_REQUIRED)
    if resolved_region != product_region:
        return EligibilityDecision.deny(DenialCode.REGION_NOT_ELIGIBLE, region_not_eligible(product_region))
    return None
