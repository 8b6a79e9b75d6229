"""JSON fetch helper with a TTL cache and stale-on-error fallback."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .config import API_BACKOFF_FACTOR, API_MAX_RETRIES, API_TIMEOUT, setup_logger
from .constants import (
    API_DEFAULT_CACHE_DURATION,
    API_LEAGUE_CACHE_DURATION,
    API_LIVE_FIXTURES_CACHE_DURATION,
    API_POPULAR_LEAGUES_CACHE_DURATION,
)
from .debug_cache import DebugCache
from .errors import APIError
from .net_retry import fetch_json

logger = setup_logger(__name__)

SOURCE = "cssport-api"


@dataclass(frozen=True)
class ApiWrapperOptions:
    component_name: str
    cache_key: Optional[str] = None
    enable_debug: bool = True


@dataclass
class _CachedPayload:
    data: Any
    stored_at: float
    expires: float


class EnhancedApiWrapper:
    def __init__(
        self,
        base_url: str,
        debug: Optional[DebugCache] = None,
        timeout: float = API_TIMEOUT,
        retries: int = API_MAX_RETRIES,
        backoff_factor: float = API_BACKOFF_FACTOR,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.debug = debug if debug is not None else DebugCache()
        self.timeout = timeout
        self.retries = retries
        self.backoff_factor = backoff_factor
        self._clock = clock
        self._cache: Dict[str, _CachedPayload] = {}
        self._lock = threading.RLock()

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def fetch_with_debug(
        self,
        endpoint: str,
        options: ApiWrapperOptions,
        cache_duration: float = API_DEFAULT_CACHE_DURATION,
    ) -> Any:
        """GET ``endpoint`` through the cache.

        A failed request serves the last cached payload (even expired) when
        there is one; otherwise the failure is raised as :class:`APIError`.
        """
        component = options.component_name
        key = options.cache_key or f"{component}-{endpoint}"
        started = self._clock()

        with self._lock:
            cached = self._cache.get(key)
        if cached is not None and started < cached.expires:
            if options.enable_debug:
                self.debug.log_api_call(component, endpoint, "cached", cache_key=key)
            return cached.data

        if options.enable_debug:
            self.debug.log_cache_operation(component, "miss", key)

        try:
            data = fetch_json(
                self._url(endpoint),
                source=SOURCE,
                retries=self.retries,
                backoff_factor=self.backoff_factor,
                timeout=self.timeout,
                relay_status=True,
                logger=logger,
            )
        except APIError as exc:
            duration = self._clock() - started
            status = "stale" if cached is not None else "error"
            if options.enable_debug:
                self.debug.log_api_call(
                    component, endpoint, status, duration=duration, cache_key=key, error=f"{exc.code}: {exc}"
                )
            if cached is not None:
                logger.warning(
                    "Serving stale data for %s after fetch failure: %s", key, exc.code
                )
                return cached.data
            raise

        now = self._clock()
        with self._lock:
            self._cache[key] = _CachedPayload(data=data, stored_at=now, expires=now + cache_duration)
            size = len(self._cache)
        if options.enable_debug:
            self.debug.log_api_call(
                component, endpoint, "success", duration=now - started, cache_key=key
            )
            self.debug.log_cache_operation(component, "set", key, cache_size=size)
        return data

    # ---- specialised fetchers ----

    def fetch_fixtures(self, component: str, date: str, all: bool = False) -> Any:
        endpoint = f"/api/fixtures/date/{date}" + ("?all=true" if all else "")
        key = f"fixtures-{date}-{'all' if all else 'filtered'}"
        return self.fetch_with_debug(
            endpoint, ApiWrapperOptions(component, key), API_DEFAULT_CACHE_DURATION
        )

    def fetch_live_fixtures(self, component: str) -> Any:
        return self.fetch_with_debug(
            "/api/fixtures/live",
            ApiWrapperOptions(component, "live-fixtures"),
            API_LIVE_FIXTURES_CACHE_DURATION,
        )

    def fetch_league_data(self, component: str, league_id) -> Any:
        return self.fetch_with_debug(
            f"/api/leagues/{league_id}",
            ApiWrapperOptions(component, f"league-{league_id}"),
            API_LEAGUE_CACHE_DURATION,
        )

    def fetch_popular_leagues(self, component: str) -> Any:
        return self.fetch_with_debug(
            "/api/leagues/popular",
            ApiWrapperOptions(component, "popular-leagues"),
            API_POPULAR_LEAGUES_CACHE_DURATION,
        )

    # ---- maintenance ----

    def clear_cache(self, component: Optional[str] = None) -> int:
        with self._lock:
            if component is None:
                removed = len(self._cache)
                self._cache.clear()
            else:
                keys = [k for k in self._cache if k.startswith(component)]
                for key in keys:
                    del self._cache[key]
                removed = len(keys)
        logger.info("API cache cleared for %s (%d entries)", component or "all", removed)
        return removed

    def get_cache_stats(self) -> dict:
        now = self._clock()
        with self._lock:
            items = list(self._cache.items())
        return {
            "size": len(items),
            "entries": [
                {
                    "key": key,
                    "age": round(now - payload.stored_at, 3),
                    "expiresIn": round(payload.expires - now, 3),
                    "expired": now >= payload.expires,
                    "size": len(repr(payload.data)),
                }
                for key, payload in items
            ],
        }
