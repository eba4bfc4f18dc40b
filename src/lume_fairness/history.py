from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, TypeVar

from lume_fairness.analytics.bias import BiasDetector, is_adverse
from lume_fairness.analytics.schemas import Decision, Severity

logger = logging.getLogger("lume.history")

T = TypeVar("T")


class TTLCache(Generic[T]):
    """
    Single-value cache with an explicit time-to-live.

    Owned and passed around by the caller; the clock is injectable so
    expiry can be driven deterministically in tests.
    """

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._value: T | None = None
        self._stored_at: float | None = None

    @property
    def is_fresh(self) -> bool:
        with self._lock:
            return self._fresh_locked()

    def _fresh_locked(self) -> bool:
        if self._stored_at is None:
            return False
        return (self._clock() - self._stored_at) < self.ttl_seconds

    def get(self) -> T | None:
        """Return the cached value while it is fresh, else None."""
        with self._lock:
            return self._value if self._fresh_locked() else None

    def peek(self) -> T | None:
        """Return the cached value even if it has expired."""
        with self._lock:
            return self._value

    def put(self, value: T) -> None:
        with self._lock:
            self._value = value
            self._stored_at = self._clock()

    def clear(self) -> None:
        with self._lock:
            self._value = None
            self._stored_at = None


@dataclass(frozen=True)
class DecisionStats:
    total: int = 0
    adverse: int = 0
    approved: int = 0
    bias_flagged: int = 0
    high_severity_bias: int = 0

    @property
    def approval_rate(self) -> float:
        return self.approved / self.total * 100 if self.total else 0.0

    @property
    def bias_rate(self) -> float:
        return self.bias_flagged / self.total * 100 if self.total else 0.0


class DecisionHistory:
    """
    Read-through view over a customer's decision feed.

    `loader` fetches the current decisions from whatever store the caller
    uses. Results are kept in the supplied `TTLCache`; when a refresh fails
    the last known decisions are served instead.
    """

    def __init__(
        self,
        loader: Callable[[], Iterable[Decision]],
        cache: TTLCache[tuple[Decision, ...]],
        *,
        detector: BiasDetector | None = None,
    ) -> None:
        self._loader = loader
        self._cache = cache
        self._detector = detector or BiasDetector()

    def all(self, force_refresh: bool = False) -> tuple[Decision, ...]:
        """Decisions sorted newest first."""
        if not force_refresh:
            cached = self._cache.get()
            if cached is not None:
                return cached
        try:
            decisions = tuple(sorted(self._loader(), key=lambda d: d.timestamp, reverse=True))
        except Exception as e:
            stale = self._cache.peek() or ()
            logger.warning("decision_refresh_failed", extra={"error": str(e), "served_stale": len(stale)})
            return stale
        self._cache.put(decisions)
        logger.debug("decision_refresh", extra={"n_decisions": len(decisions)})
        return decisions

    def latest(self, force_refresh: bool = False) -> Decision | None:
        decisions = self.all(force_refresh)
        return decisions[0] if decisions else None

    def adverse(self, force_refresh: bool = False) -> list[Decision]:
        return [d for d in self.all(force_refresh) if is_adverse(d.decision_type)]

    def approved(self, force_refresh: bool = False) -> list[Decision]:
        return [d for d in self.all(force_refresh) if not is_adverse(d.decision_type)]

    def for_customer(self, customer_id: str, force_refresh: bool = False) -> list[Decision]:
        return [d for d in self.all(force_refresh) if d.customer_id == customer_id]

    def search(self, query: str, force_refresh: bool = False) -> list[Decision]:
        decisions = self.all(force_refresh)
        if not query.strip():
            return list(decisions)
        q = query.lower()
        return [d for d in decisions if q in d.customer_id.lower() or q in d.decision_type.lower()]

    def stats(self, force_refresh: bool = False) -> DecisionStats:
        decisions = self.all(force_refresh)
        warnings = [self._detector.analyze(d) for d in decisions]
        flagged = [w for w in warnings if w is not None]
        adverse = sum(1 for d in decisions if is_adverse(d.decision_type))
        return DecisionStats(
            total=len(decisions),
            adverse=adverse,
            approved=len(decisions) - adverse,
            bias_flagged=len(flagged),
            high_severity_bias=sum(1 for w in flagged if w.severity is Severity.HIGH),
        )

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.debug("decision_cache_cleared")
