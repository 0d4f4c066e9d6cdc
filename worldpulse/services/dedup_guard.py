"""
SignalDedupGuard - Time-boxed "already alerted" store for signal dedupe keys.

Features:
- Memory-based store with TTL per key
- Oldest-first eviction once max_size is reached
- Thread-safe, so detectors may run on worker threads
- Periodic sweep of expired keys
"""

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from loguru import logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SignalDedupGuard:
    """
    In-memory dedup guard for correlation signals.

    Usage:
        guard = SignalDedupGuard(ttl=timedelta(minutes=30))
        engine = CorrelationEngine(collaborators=Collaborators.with_guard(guard))

        # Between cycles
        guard.cleanup_expired()
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=30),
        max_size: int = 5000,
        clock: Callable[[], datetime] = _utcnow,
        debug: bool = False,
    ):
        self._seen: dict[str, datetime] = {}
        self._ttl = ttl
        self._max_size = max_size
        self._clock = clock
        self._debug = debug
        self._lock = threading.Lock()
        self._stats = DedupGuardStats()

    def is_recent_duplicate(self, key: str) -> bool:
        """True if key was marked within the TTL."""
        with self._lock:
            seen_at = self._seen.get(key)
            if seen_at is None:
                self._stats.misses += 1
                self._log(f"MISS: {key}")
                return False

            if self._clock() - seen_at > self._ttl:
                del self._seen[key]
                self._stats.misses += 1
                self._log(f"EXPIRED: {key}")
                return False

            self._stats.suppressed += 1
            self._log(f"DUPLICATE: {key}")
            return True

    def mark_signal_seen(self, key: str) -> None:
        with self._lock:
            if len(self._seen) >= self._max_size and key not in self._seen:
                self._evict_oldest()
            self._seen[key] = self._clock()
            self._stats.marked += 1
            self._log(f"MARK: {key} (TTL: {self._ttl.total_seconds()}s)")

    def check_and_mark(self, key: str) -> bool:
        """
        Atomic read-then-mark.

        Returns True when the key was fresh and is now marked, False when it
        was a recent duplicate (left unmarked).
        """
        with self._lock:
            now = self._clock()
            seen_at = self._seen.get(key)
            if seen_at is not None and now - seen_at <= self._ttl:
                self._stats.suppressed += 1
                self._log(f"DUPLICATE: {key}")
                return False
            self._stats.misses += 1
            if len(self._seen) >= self._max_size and key not in self._seen:
                self._evict_oldest()
            self._seen[key] = now
            self._stats.marked += 1
            return True

    def cleanup_expired(self) -> int:
        """Remove all expired keys. Returns count of removed keys."""
        with self._lock:
            now = self._clock()
            expired = [k for k, v in self._seen.items() if now - v > self._ttl]
            for key in expired:
                del self._seen[key]

            if expired:
                self._log(f"CLEANUP: {len(expired)} expired keys removed")

            return len(expired)

    def clear(self) -> None:
        with self._lock:
            count = len(self._seen)
            self._seen.clear()
            self._log(f"CLEAR: {count} keys removed")

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def _evict_oldest(self) -> None:
        """Evict the oldest key. Caller holds the lock."""
        if not self._seen:
            return
        oldest_key = min(self._seen, key=self._seen.__getitem__)
        del self._seen[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key}")

    def get_stats(self) -> "DedupGuardStats":
        """Point-in-time copy of the guard statistics."""
        with self._lock:
            return replace(
                self._stats, size=len(self._seen), max_size=self._max_size
            )

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[SignalDedupGuard] {message}")


@dataclass
class DedupGuardStats:
    """Dedup guard statistics."""

    marked: int = 0
    suppressed: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def suppression_rate(self) -> float:
        total = self.suppressed + self.misses
        if total == 0:
            return 0.0
        return self.suppressed / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "marked": self.marked,
            "suppressed": self.suppressed,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "suppression_rate": f"{self.suppression_rate:.2%}",
        }
