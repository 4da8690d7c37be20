"""
Hierarchical Grid Cache

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Remember, per generation key, whether features were never
requested, are being generated, are available, or failed. Keys are zone
names ("05Q") for 100 km squares and square ids ("05QKB") for 10 km cells.

Key Functions:
- GridCache.needs_dispatch(): single-flight gate used before every submit
- GridCache.mark_pending() / resolve() / fail(): state transitions
- GridCache.features(): read-only feature tuple of a resolved key
- GridCache.clear_all(): drop every entry
- create_grid_cache(): factory

State machine:
    UNREQUESTED -> PENDING -> RESOLVED   (terminal until clear_all)
    PENDING -> ERROR                     (retry-eligible)
    ERROR -> PENDING                     (retry, unless max_attempts reached)

Concurrency Model:
- Single writer: only the viewport controller mutates the cache, and only
  from its own thread (dispatcher callbacks are delivered there)
- No locks

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from mgrs_graticule.models import CacheEntry, CacheState, GridPolygon

logger = logging.getLogger("MGRS.Parallel.GridCache")


# ═══════════════════════════════════════════════════════════════════════════
# 📊 CACHE STATISTICS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class GridCacheStats:
    """Statistics for grid cache activity."""

    hits: int = 0
    misses: int = 0
    dispatches: int = 0
    resolutions: int = 0
    failures: int = 0
    stale_results: int = 0

    def hit_rate(self) -> float:
        """Calculate cache hit rate as percentage."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits / total) * 100.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary for logging."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate_pct": round(self.hit_rate(), 1),
            "dispatches": self.dispatches,
            "resolutions": self.resolutions,
            "failures": self.failures,
            "stale_results": self.stale_results,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🏗️ GRID CACHE
# ═══════════════════════════════════════════════════════════════════════════


class GridCache:
    """
    Per-key generation state and resolved features.

    Attributes:
        max_attempts: Dispatch attempts allowed per key (0 = unlimited)
        stats: GridCacheStats

    Example:
        cache = create_grid_cache()
        if cache.needs_dispatch("05Q"):
            cache.mark_pending("05Q")
            dispatcher.submit(request, on_result=..., on_error=...)
        ...
        cache.resolve("05Q", features)
    """

    def __init__(self, max_attempts: int = 0):
        if max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {max_attempts}")
        self.max_attempts = max_attempts
        self.stats = GridCacheStats()
        self._entries: Dict[str, CacheEntry] = {}

    # ───────────────────────────────────────────────────────────────────────
    # Queries
    # ───────────────────────────────────────────────────────────────────────

    def state(self, key: str) -> CacheState:
        entry = self._entries.get(key)
        return entry.state if entry else CacheState.UNREQUESTED

    def entry(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def needs_dispatch(self, key: str) -> bool:
        """
        True when the key is unrequested, or failed and may be retried.

        Resolved and pending keys count as hits and are never dispatched
        again.
        """
        entry = self._entries.get(key)
        if entry is None or entry.state == CacheState.UNREQUESTED:
            self.stats.misses += 1
            return True
        if entry.state == CacheState.ERROR:
            if self.max_attempts and entry.attempts >= self.max_attempts:
                return False
            self.stats.misses += 1
            return True
        self.stats.hits += 1
        return False

    def features(self, key: str) -> Tuple[GridPolygon, ...]:
        """Resolved features of a key (empty unless resolved)."""
        entry = self._entries.get(key)
        if entry is None or entry.state != CacheState.RESOLVED:
            return ()
        return entry.features

    def resolved_keys(self) -> List[str]:
        return [k for k, e in self._entries.items() if e.state == CacheState.RESOLVED]

    def keys_in_state(self, state: CacheState) -> List[str]:
        return [k for k, e in self._entries.items() if e.state == state]

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    # ───────────────────────────────────────────────────────────────────────
    # Transitions
    # ───────────────────────────────────────────────────────────────────────

    def mark_pending(self, key: str) -> None:
        """UNREQUESTED/ERROR -> PENDING."""
        entry = self._entries.setdefault(key, CacheEntry(key=key))
        if entry.state in (CacheState.PENDING, CacheState.RESOLVED):
            raise ValueError(f"Cannot dispatch {key}: already {entry.state.value}")
        if entry.state == CacheState.ERROR:
            logger.info(f"🔁 Retrying {key} (previous error: {entry.error})")
        entry.state = CacheState.PENDING
        entry.error = None
        entry.attempts += 1
        self.stats.dispatches += 1

    def resolve(self, key: str, features: Sequence[GridPolygon]) -> bool:
        """
        PENDING -> RESOLVED.

        Returns:
            False when the key is not pending (cleared or already resolved);
            the features are ignored in that case.
        """
        entry = self._entries.get(key)
        if entry is None or entry.state != CacheState.PENDING:
            self.stats.stale_results += 1
            logger.debug(f"Ignoring stale result for {key}")
            return False
        entry.state = CacheState.RESOLVED
        entry.features = tuple(features)
        self.stats.resolutions += 1
        logger.debug(f"📦 Cached {len(entry.features)} features for {key}")
        return True

    def fail(self, key: str, error: str) -> bool:
        """
        PENDING -> ERROR (retry-eligible).

        Returns:
            False when the key is not pending.
        """
        entry = self._entries.get(key)
        if entry is None or entry.state != CacheState.PENDING:
            self.stats.stale_results += 1
            logger.debug(f"Ignoring stale error for {key}")
            return False
        entry.state = CacheState.ERROR
        entry.error = error
        self.stats.failures += 1
        if self.max_attempts and entry.attempts >= self.max_attempts:
            logger.warning(
                f"⚠️ {key} failed {entry.attempts} times, giving up: {error}"
            )
        return True

    def clear_all(self) -> None:
        """Forget every entry and statistic."""
        count = len(self._entries)
        self._entries.clear()
        self.stats = GridCacheStats()
        logger.info(f"♻️ Grid cache cleared ({count} entries)")

    # ───────────────────────────────────────────────────────────────────────
    # Reporting
    # ───────────────────────────────────────────────────────────────────────

    def log_summary(self) -> None:
        """Log cache state counts and statistics."""
        counts = {
            state.value: len(self.keys_in_state(state))
            for state in CacheState
            if state != CacheState.UNREQUESTED
        }
        feature_total = sum(len(e.features) for e in self._entries.values())
        logger.info(
            f"📊 Grid cache: {len(self._entries)} keys {counts}, "
            f"{feature_total} features, stats={self.stats.to_dict()}"
        )


# ═══════════════════════════════════════════════════════════════════════════
# 🏭 FACTORY FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════


def create_grid_cache(max_attempts: int = 0) -> GridCache:
    """Create an empty grid cache."""
    return GridCache(max_attempts=max_attempts)
