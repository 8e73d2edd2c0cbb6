"""Purchase gate.

The single entry point cart and listing flows call before letting an
action complete. Combines the resolver, the verification cache and the
eligibility policy into an allow/deny decision with a displayable reason.
"""

from __future__ import annotations

import asyncio
import logging

from storegate.sdk.cache import VerificationCache
from storegate.sdk.errors import ResolutionError
from storegate.sdk.evaluator import evaluate_eligibility, evaluate_product
from storegate.sdk.models import (
    EligibilityDecision,
    MerchantProfile,
    Product,
    VerificationRequirement,
    VerificationState,
)
from storegate.sdk.resolver import AttestationResolver, validate_address

logger = logging.getLogger(__name__)

DEFAULT_LISTING_REGION = "CA"


class PurchaseGate:
    """Eligibility checks for purchases and merchant listings."""

    def __init__(
        self,
        resolver: AttestationResolver,
        cache: VerificationCache | None = None,
        *,
        listing_region: str = DEFAULT_LISTING_REGION,
    ):
        """Initialize gate.

        Args:
            resolver: Attestation resolver used on cache misses
            cache: Session cache; a fresh one is created when omitted
            listing_region: Region merchants must be verified in to list
        """
        if resolver is None:
            raise ValueError("Resolver is required")

        self.resolver = resolver
        self.cache = cache if cache is not None else VerificationCache()
        self.listing_region = listing_region
        self._inflight: dict[str, asyncio.Task[VerificationState]] = {}

    def switch_address(self, address: str | None) -> None:
        """Wallet connected, switched or disconnected (None)."""
        if address is not None:
            validate_address(address)
        if self.cache.activate(address):
            self._inflight.clear()

    async def check_purchase(self, subject: str | None, product: Product) -> EligibilityDecision:
        """Decide whether `subject` may add `product` to the cart."""
        if product.verification_required == VerificationRequirement.NONE:
            return EligibilityDecision.allow()
        if subject is None:
            return evaluate_product(None, None, product)

        state, error = await self._lookup(subject)
        decision = evaluate_product(state, error, product)
        logger.debug("Purchase check %s / %s: %s", subject, product.id, decision.reason or "allowed")
        return decision

    async def check_listing(
        self,
        subject: str | None,
        required_region: str | None = None,
        require_trading: bool = True,
    ) -> EligibilityDecision:
        """Merchant onboarding policy: fixed region, optionally trading access."""
        region = self.listing_region if required_region is None else required_region
        requirement = VerificationRequirement.BOTH if require_trading else VerificationRequirement.REGION
        if subject is None:
            return evaluate_eligibility(None, None, region, requirement)

        state, error = await self._lookup(subject)
        decision = evaluate_eligibility(state, error, region, requirement)
        logger.debug("Listing check %s: %s", subject, decision.reason or "allowed")
        return decision

    async def check_listing_eligibility(
        self,
        subject: str | None,
        required_region: str | None = None,
        require_trading: bool = True,
    ) -> bool:
        decision = await self.check_listing(subject, required_region, require_trading)
        return decision.can_purchase

    async def is_merchant_verified(self, subject: str | None) -> bool:
        """True when `subject` holds an active merchant claim.

        No wallet, or a registry that cannot be reached, gives False.
        """
        if subject is None:
            return False
        self._require_merchant_schema()
        state, error = await self._lookup(subject)
        if state is None:
            logger.warning("Merchant check for %s unavailable: %s", subject, error)
            return False
        return state.is_merchant_verified

    async def merchant_profile(self, subject: str) -> MerchantProfile | None:
        """Merchant claim for display; raises ResolutionError if unavailable."""
        self._require_merchant_schema()
        state = await self.verification_state(subject)
        return state.merchant

    async def verification_state(self, subject: str) -> VerificationState:
        """Resolved state for display; raises ResolutionError if unavailable."""
        state, error = await self._lookup(subject)
        if state is None:
            raise error or ResolutionError("Verification state unavailable", subject)
        return state

    def _require_merchant_schema(self) -> None:
        if self.resolver.schemas.merchant_schema_id is None:
            raise ValueError("No merchant schema ID configured")

    async def _lookup(self, subject: str) -> tuple[VerificationState | None, ResolutionError | None]:
        """Cached state for `subject`, resolving (once per burst) on a miss."""
        validate_address(subject)
        entry = self.cache.get(subject)
        if entry is not None:
            if entry.error:
                return None, ResolutionError("Recent resolution failed", subject)
            return entry.state, None

        task = self._inflight.get(subject)
        if task is None:
            task = asyncio.create_task(self._resolve_and_store(subject, self.cache.generation))
            self._inflight[subject] = task
            task.add_done_callback(lambda done, s=subject: self._forget(s, done))

        try:
            state = await asyncio.shield(task)
        except ResolutionError as e:
            return None, e
        return state, None

    async def _resolve_and_store(self, subject: str, generation: int) -> VerificationState:
        try:
            state = await self.resolver.resolve_state(subject)
        except ResolutionError:
            if self._can_commit(subject, generation):
                self.cache.put(subject, None, error=True)
            raise

        if self._can_commit(subject, generation):
            self.cache.put(subject, state)
        else:
            logger.debug("Discarding resolution for %s: wallet changed while in flight", subject)
        return state

    def _can_commit(self, subject: str, generation: int) -> bool:
        active = self.cache.active_address
        return generation == self.cache.generation and (active is None or active == subject)

    def _forget(self, subject: str, task: asyncio.Task[VerificationState]) -> None:
        if self._inflight.get(subject) is task:
            del self._inflight[subject]
        if not task.cancelled():
            task.exception()  # mark retrieved; awaiters get it through shield
