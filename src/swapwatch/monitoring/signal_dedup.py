"""
Signature deduplicator for the logs subscription.

A logsSubscribe feed can deliver the same signature more than once (one
notification per log batch, plus redelivery after a resubscribe). Only the
first notification of a signature is dispatched to the pipeline. State is
in-memory and owned by one subscription manager; nothing is persisted.
"""

import time
from typing import Callable

from swapwatch.utils.logger import get_logger

logger = get_logger(__name__)


class SignalDedup:
    """TTL set of recently dispatched signatures."""

    CLEANUP_THRESHOLD = 50

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self._seen: dict[str, float] = {}  # signature -> first seen
        self._ttl = ttl_seconds
        self._clock = clock
        self._duplicates = 0
        self._passes = 0

    def is_new(self, signature: str, source: str = "") -> bool:
        """True the first time `signature` is seen within the TTL window."""
        now = self._clock()
        self._cleanup(now)
        first_seen = self._seen.get(signature)
        if first_seen is not None and now - first_seen < self._ttl:
            self._duplicates += 1
            logger.debug(f"[DEDUP] {source} duplicate {signature[:16]}...")
            return False
        self._seen[signature] = now
        self._passes += 1
        return True

    def _cleanup(self, now: float) -> None:
        if len(self._seen) < self.CLEANUP_THRESHOLD:
            return
        cutoff = now - self._ttl
        for sig in [s for s, ts in self._seen.items() if ts < cutoff]:
            del self._seen[sig]

    def __len__(self) -> int:
        return len(self._seen)

    def get_stats(self) -> dict:
        return {
            "seen_count": len(self._seen),
            "ttl_seconds": self._ttl,
            "duplicates": self._duplicates,
            "passes": self._passes,
        }
