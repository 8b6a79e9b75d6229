"""TTL cache for logo and flag URLs with verification and retry bookkeeping.

Entries pointing at the fallback asset live for ``fallback_max_age`` so a
real logo gets another chance once the upstream host recovers; anything
else lives for ``max_age``.
"""
from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .config import setup_logger
from .constants import (
    FALLBACK_MARKER,
    IMAGE_CACHE_TARGET_FRACTION,
    LOGO_CACHE_CLEANUP_INTERVAL,
    LOGO_CACHE_FALLBACK_MAX_AGE,
    LOGO_CACHE_MAX_AGE,
    LOGO_CACHE_MAX_RETRIES,
)

logger = setup_logger(__name__)


@dataclass(frozen=True)
class LogoCacheConfig:
    max_age: float = LOGO_CACHE_MAX_AGE
    fallback_max_age: float = LOGO_CACHE_FALLBACK_MAX_AGE
    max_size: int = 1000
    cleanup_interval: float = LOGO_CACHE_CLEANUP_INTERVAL
    max_retries: int = LOGO_CACHE_MAX_RETRIES
    fallback_marker: str = FALLBACK_MARKER
    target_fraction: float = IMAGE_CACHE_TARGET_FRACTION


@dataclass
class LogoEntry:
    key: str
    url: str
    timestamp: float
    source: str
    verified: bool = False
    retry_count: int = 0

    def is_fallback(self, marker: str = FALLBACK_MARKER) -> bool:
        return marker in self.url


@dataclass
class LogoCache:
    config: LogoCacheConfig = field(default_factory=LogoCacheConfig)
    name: str = "logos"
    clock: Callable[[], float] = time.time

    def __post_init__(self) -> None:
        self._entries: Dict[str, LogoEntry] = {}
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._closed = False

    def __len__(self) -> int:
        return len(self._entries)

    def effective_max_age(self, entry: LogoEntry) -> float:
        if entry.is_fallback(self.config.fallback_marker):
            return self.config.fallback_max_age
        return self.config.max_age

    def _expired(self, entry: LogoEntry, now: float) -> bool:
        return now - entry.timestamp >= self.effective_max_age(entry)

    def set_cached(self, key: str, url: str, source: str, verified: bool = False) -> LogoEntry:
        entry = LogoEntry(key=key, url=url, timestamp=self.clock(), source=source, verified=verified)
        with self._lock:
            self._entries[key] = entry
            if len(self._entries) > self.config.max_size:
                self.cleanup()
        return entry

    def get_cached(
        self, key: str, retry_fallback_within: Optional[float] = None
    ) -> Optional[LogoEntry]:
        """Return the live entry for ``key`` or None.

        With ``retry_fallback_within`` set, a fallback entry older than that
        window is reported as a miss (and kept) while its retry budget lasts,
        so the caller re-validates the real source.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            now = self.clock()
            if self._expired(entry, now):
                del self._entries[key]
                return None
            if (
                retry_fallback_within is not None
                and entry.is_fallback(self.config.fallback_marker)
                and entry.retry_count < self.config.max_retries
                and now - entry.timestamp >= retry_fallback_within
            ):
                return None
            return entry

    def peek(self, key: str) -> Optional[LogoEntry]:
        with self._lock:
            return self._entries.get(key)

    def mark_as_verified(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.verified = True
            entry.timestamp = self.clock()
            return True

    def touch(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.timestamp = self.clock()
            return True

    def increment_retry(self, key: str) -> bool:
        """Count a failed validation; True while more attempts are allowed."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.retry_count += 1
            return entry.retry_count < self.config.max_retries

    def cleanup(self) -> int:
        """Drop expired entries, then oldest entries down to the target occupancy."""
        with self._lock:
            now = self.clock()
            expired = [k for k, e in self._entries.items() if self._expired(e, now)]
            for key in expired:
                del self._entries[key]

            evicted = 0
            target = math.floor(self.config.max_size * self.config.target_fraction)
            overflow = len(self._entries) - target
            if overflow > 0:
                oldest = sorted(self._entries.values(), key=lambda e: e.timestamp)[:overflow]
                for entry in oldest:
                    del self._entries[entry.key]
                evicted = len(oldest)

            logger.debug(
                "Logo cache %s cleanup: %d expired, %d evicted, %d remaining",
                self.name,
                len(expired),
                evicted,
                len(self._entries),
            )
            return len(expired) + evicted

    # ---- background cleanup ----

    def start(self) -> None:
        """Schedule periodic cleanup on a daemon timer."""
        with self._lock:
            if self._closed or self._timer is not None:
                return
            self._schedule()

    def _schedule(self) -> None:
        timer = threading.Timer(self.config.cleanup_interval, self._run_cleanup)
        timer.daemon = True
        timer.name = f"logo-cache-{self.name}"
        self._timer = timer
        timer.start()

    def _run_cleanup(self) -> None:
        try:
            self.cleanup()
        except Exception:  # pragma: no cover - keep the timer alive
            logger.exception("Logo cache %s cleanup failed", self.name)
        with self._lock:
            if not self._closed:
                self._schedule()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._entries.clear()

    def get_stats(self) -> dict:
        with self._lock:
            entries = list(self._entries.values())
        return {
            "name": self.name,
            "size": len(entries),
            "maxSize": self.config.max_size,
            "maxAge": self.config.max_age,
            "fallbackMaxAge": self.config.fallback_max_age,
            "verified": sum(1 for e in entries if e.verified),
            "fallbacks": sum(1 for e in entries if e.is_fallback(self.config.fallback_marker)),
        }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def _slug(value: Optional[str]) -> str:
    if not value:
        return "unknown"
    return "_".join(value.lower().split())


def team_logo_cache_key(team_id, team_name: Optional[str] = None) -> str:
    return f"team_{team_id}_{_slug(team_name)}"


def league_logo_cache_key(league_id, league_name: Optional[str] = None) -> str:
    return f"league_{league_id}_{_slug(league_name)}"


def flag_cache_key(country: str) -> str:
    return f"flag_{_slug(country)}"
