"""Generic key -> image URL cache with a 24h TTL and type tagging."""
from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import requests

from .config import IMAGE_TIMEOUT, setup_logger
from .constants import (
    IMAGE_CACHE_FRESH_WINDOW,
    IMAGE_CACHE_MAX_AGE,
    IMAGE_CACHE_MAX_SIZE,
    IMAGE_CACHE_TARGET_FRACTION,
    LOCAL_ASSET_PREFIX,
)

logger = setup_logger(__name__)

IMAGE_TYPES = ("team", "league", "flag", "generic")


@dataclass
class CachedImage:
    key: str
    url: str
    timestamp: float
    type: str
    source: str
    verified: bool = True


def is_trusted_local(url: str) -> bool:
    """Local assets and data URIs never need a network check."""
    return url.startswith(LOCAL_ASSET_PREFIX) or url.startswith("data:")


class ImageCache:
    def __init__(
        self,
        max_age: float = IMAGE_CACHE_MAX_AGE,
        max_size: int = IMAGE_CACHE_MAX_SIZE,
        validation_timeout: float = IMAGE_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_age = max_age
        self.max_size = max_size
        self.validation_timeout = validation_timeout
        self._clock = clock
        self._entries: Dict[str, CachedImage] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: CachedImage, now: float) -> bool:
        return now - entry.timestamp >= self.max_age

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry, self._clock()):
                del self._entries[key]
                return None
            return entry.url

    def set(self, key: str, url: str, type: str = "generic", source: str = "unknown") -> None:
        if type not in IMAGE_TYPES:
            type = "generic"
        with self._lock:
            if len(self._entries) >= self.max_size:
                self.cleanup()
            self._entries[key] = CachedImage(
                key=key,
                url=url,
                timestamp=self._clock(),
                type=type,
                source=source,
            )

    def validate_and_cache(self, key: str, url: str, type: str = "generic") -> bool:
        """HEAD-check a remote URL and cache it on success; failures return False."""
        if not url:
            return False
        if is_trusted_local(url):
            self.set(key, url, type, "local")
            return True

        try:
            response = requests.head(url, allow_redirects=True, timeout=self.validation_timeout)
        except requests.RequestException as exc:
            logger.debug("Image validation failed for %s: %s", url, exc)
            return False

        if 200 <= response.status_code < 300:
            self.set(key, url, type, "validated")
            return True
        logger.debug("Image validation rejected %s: HTTP %s", url, response.status_code)
        return False

    def cleanup(self) -> int:
        """Drop expired entries, then oldest entries down to the target occupancy."""
        with self._lock:
            now = self._clock()
            before = len(self._entries)
            for key in [k for k, e in self._entries.items() if self._expired(e, now)]:
                del self._entries[key]

            target = math.floor(self.max_size * IMAGE_CACHE_TARGET_FRACTION)
            if len(self._entries) > target:
                oldest = sorted(self._entries.values(), key=lambda e: e.timestamp)
                for entry in oldest[: len(self._entries) - target]:
                    del self._entries[entry.key]

            removed = before - len(self._entries)
            if removed:
                logger.debug("Image cache cleanup removed %d entries (%d left)", removed, len(self._entries))
            return removed

    def get_stats(self) -> dict:
        with self._lock:
            now = self._clock()
            entries = list(self._entries.values())
        return {
            "total": len(entries),
            "fresh": sum(1 for e in entries if now - e.timestamp < IMAGE_CACHE_FRESH_WINDOW),
            "byType": {t: sum(1 for e in entries if e.type == t) for t in IMAGE_TYPES},
        }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # ---- keyed helpers for the common lookups ----

    def get_team_logo_from_cache(self, team_id, team_name: Optional[str] = None) -> Optional[str]:
        return self.get(f"team_{team_id}_{team_name or 'unknown'}")

    def cache_team_logo(self, team_id, url: str, team_name: Optional[str] = None) -> None:
        self.set(f"team_{team_id}_{team_name or 'unknown'}", url, "team")

    def get_flag_from_cache(self, country: str) -> Optional[str]:
        return self.get(f"flag_{country.lower()}")

    def cache_flag(self, country: str, url: str) -> None:
        self.set(f"flag_{country.lower()}", url, "flag")

    def get_league_logo_from_cache(self, league_id) -> Optional[str]:
        return self.get(f"league_{league_id}")

    def cache_league_logo(self, league_id, url: str) -> None:
        self.set(f"league_{league_id}", url, "league")
