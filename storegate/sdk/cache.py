"""Per-session verification cache.

Short-lived memoization of resolved verification state, keyed by wallet
address. Entries expire after a freshness window and everything is evicted
when the active wallet changes. Nothing is persisted; an empty cache is
always a valid cache.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from storegate.sdk.models import VerificationState

logger = logging.getLogger(__name__)

DEFAULT_TTL = 60.0
DEFAULT_ERROR_TTL = 5.0


@dataclass(frozen=True)
class CacheEntry:
    """Resolved state for one address, or a record that resolution failed."""
    state: VerificationState | None
    resolved_at: float
    error: bool = False


class VerificationCache:
    """In-memory cache of VerificationState keyed by subject address."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        error_ttl: float = DEFAULT_ERROR_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl < 0 or error_ttl < 0:
            raise ValueError("Cache TTLs must not be negative")
        self.ttl = ttl
        self.error_ttl = error_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._active_address: str | None = None
        self._generation = 0

    @property
    def active_address(self) -> str | None:
        return self._active_address

    @property
    def generation(self) -> int:
        """Counter bumped on every eviction; lets in-flight work detect staleness."""
        return self._generation

    def activate(self, address: str | None) -> bool:
        """Record the connected wallet; evicts everything if it changed.

        Returns True when the active address changed.
        """
        if address == self._active_address:
            return False
        logger.debug("Active address changed from %s to %s; evicting cache", self._active_address, address)
        self._active_address = address
        self.clear()
        return True

    def get(self, address: str) -> CacheEntry | None:
        """Return a fresh entry for `address`, or None on miss or staleness."""
        entry = self._entries.get(address)
        if entry is None:
            return None
        if self._is_stale(entry, self._clock()):
            del self._entries[address]
            return None
        return entry

    def put(self, address: str, state: VerificationState | None, error: bool = False) -> CacheEntry:
        """Store state for `address`, dropping entries that have gone stale."""
        now = self._clock()
        self._prune(now)
        entry = CacheEntry(state=state, resolved_at=now, error=error)
        self._entries[address] = entry
        return entry

    def invalidate(self, address: str | None = None) -> None:
        """Drop one address, or everything when no address is given."""
        if address is None:
            self.clear()
            return
        if self._entries.pop(address, None) is not None:
            self._generation += 1

    def clear(self) -> None:
        self._entries.clear()
        self._generation += 1

    def _is_stale(self, entry: CacheEntry, now: float) -> bool:
        window = self.error_ttl if entry.error else self.ttl
        return now - entry.resolved_at > window

    def _prune(self, now: float) -> None:
        stale = [address for address, entry in self._entries.items() if self._is_stale(entry, now)]
        for address in stale:
            del self._entries[address]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, address: object) -> bool:
        return address in self._entries
