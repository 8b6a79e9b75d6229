"""Process-wide observability sink for cache hits, API calls and logo loads.

Nothing here feeds back into resolution logic; the whole state can be
cleared at any time.
"""
from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Deque, Dict, Generic, Iterator, List, Optional, TypeVar

from .config import setup_logger
from .constants import DEBUG_LOG_CAPACITY

logger = setup_logger(__name__)

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Fixed-capacity buffer; iteration yields newest first."""

    def __init__(self, capacity: int = DEBUG_LOG_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)

    def push(self, item: T) -> None:
        self._items.appendleft(item)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def latest(self, limit: Optional[int] = None) -> List[T]:
        items = list(self._items)
        return items if limit is None else items[:limit]

    def clear(self) -> None:
        self._items.clear()


@dataclass
class ComponentCacheStats:
    component: str
    hits: int = 0
    misses: int = 0
    api_calls: int = 0
    errors: int = 0
    cache_size: int = 0
    last_updated: float = 0.0

    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return (self.hits / total) * 100 if total else 0.0


@dataclass
class ApiDebugInfo:
    component: str
    endpoint: str
    status: str  # success | cached | error | stale
    timestamp: float
    duration: float = 0.0
    cache_key: Optional[str] = None
    error: Optional[str] = None


@dataclass
class LogoDebugInfo:
    component: str
    kind: str  # team | flag | league
    identifier: str
    url: str
    fallback_used: bool
    cached: bool
    load_time: float
    timestamp: float
    source: Optional[str] = None
    error: Optional[str] = None


@dataclass
class DebugCache:
    capacity: int = DEBUG_LOG_CAPACITY
    clock: Callable[[], float] = time.time
    _stats: Dict[str, ComponentCacheStats] = field(default_factory=dict, init=False)

    def __post_init__(self) -> None:
        self._api_logs: RingBuffer[ApiDebugInfo] = RingBuffer(self.capacity)
        self._logo_logs: RingBuffer[LogoDebugInfo] = RingBuffer(self.capacity)
        self._lock = threading.Lock()

    def _component(self, name: str) -> ComponentCacheStats:
        stats = self._stats.get(name)
        if stats is None:
            stats = ComponentCacheStats(component=name)
            self._stats[name] = stats
        stats.last_updated = self.clock()
        return stats

    def log_api_call(
        self,
        component: str,
        endpoint: str,
        status: str,
        duration: float = 0.0,
        cache_key: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        with self._lock:
            stats = self._component(component)
            if status == "cached":
                stats.hits += 1
            else:
                stats.api_calls += 1
            if status in ("error", "stale"):
                stats.errors += 1
            self._api_logs.push(
                ApiDebugInfo(
                    component=component,
                    endpoint=endpoint,
                    status=status,
                    timestamp=self.clock(),
                    duration=duration,
                    cache_key=cache_key,
                    error=error,
                )
            )

    def log_logo(
        self,
        component: str,
        kind: str,
        identifier: Any,
        url: str,
        fallback_used: bool,
        cached: bool,
        load_time: float,
        source: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        with self._lock:
            stats = self._component(component)
            if cached:
                stats.hits += 1
            else:
                stats.misses += 1
            if error:
                stats.errors += 1
            self._logo_logs.push(
                LogoDebugInfo(
                    component=component,
                    kind=kind,
                    identifier=str(identifier),
                    url=url,
                    fallback_used=fallback_used,
                    cached=cached,
                    load_time=load_time,
                    timestamp=self.clock(),
                    source=source,
                    error=error,
                )
            )

    def log_cache_operation(
        self, component: str, operation: str, key: str = "", cache_size: Optional[int] = None
    ) -> None:
        with self._lock:
            stats = self._component(component)
            if operation == "hit":
                stats.hits += 1
            elif operation == "miss":
                stats.misses += 1
            elif operation != "set":
                logger.debug("Unknown cache operation %r for %s", operation, component)
            if cache_size is not None:
                stats.cache_size = cache_size
        logger.debug("cache %s %s %s", component, operation, key)

    def get_cache_hit_rate(self, component: str) -> float:
        with self._lock:
            stats = self._stats.get(component)
            return stats.hit_rate() if stats else 0.0

    def get_component_stats(self, component: str) -> Optional[ComponentCacheStats]:
        return self._stats.get(component)

    def get_all_component_stats(self) -> Dict[str, dict]:
        with self._lock:
            return {
                name: {**asdict(stats), "hit_rate": round(stats.hit_rate(), 2)}
                for name, stats in self._stats.items()
            }

    def get_recent_api_logs(self, limit: int = 50) -> List[ApiDebugInfo]:
        with self._lock:
            return self._api_logs.latest(limit)

    def get_recent_logo_logs(self, limit: int = 50) -> List[LogoDebugInfo]:
        with self._lock:
            return self._logo_logs.latest(limit)

    def get_component_api_logs(self, component: str) -> List[ApiDebugInfo]:
        with self._lock:
            return [e for e in self._api_logs if e.component == component]

    def get_component_logo_logs(self, component: str) -> List[LogoDebugInfo]:
        with self._lock:
            return [e for e in self._logo_logs if e.component == component]

    def _summary(self) -> dict:
        with self._lock:
            stats = list(self._stats.values())
            logo_logs = list(self._logo_logs)
            api_count = len(self._api_logs)
        hits = sum(s.hits for s in stats)
        misses = sum(s.misses for s in stats)
        total = hits + misses
        return {
            "components": len(stats),
            "totalHits": hits,
            "totalMisses": misses,
            "overallHitRate": round((hits / total) * 100, 2) if total else 0.0,
            "totalApiCalls": sum(s.api_calls for s in stats),
            "totalErrors": sum(s.errors for s in stats),
            "apiLogCount": api_count,
            "logoLogCount": len(logo_logs),
            "fallbackLogos": sum(1 for e in logo_logs if e.fallback_used),
        }

    def export_debug_data(self) -> dict:
        return {
            "timestamp": self.clock(),
            "summary": self._summary(),
            "componentStats": self.get_all_component_stats(),
            "apiLogs": [asdict(e) for e in self.get_recent_api_logs(self.capacity)],
            "logoLogs": [asdict(e) for e in self.get_recent_logo_logs(self.capacity)],
        }

    def summary(self) -> dict:
        """Log a one-line report per component and return the totals."""
        report = self._summary()
        logger.info(
            "Debug cache: %d components, hit rate %.1f%%, %d API calls, %d errors",
            report["components"],
            report["overallHitRate"],
            report["totalApiCalls"],
            report["totalErrors"],
        )
        for name, stats in self.get_all_component_stats().items():
            logger.info(
                "  %s: hits=%d misses=%d api_calls=%d errors=%d hit_rate=%.1f%%",
                name,
                stats["hits"],
                stats["misses"],
                stats["api_calls"],
                stats["errors"],
                stats["hit_rate"],
            )
        return report

    def clear_all(self) -> None:
        with self._lock:
            self._stats.clear()
            self._api_logs.clear()
            self._logo_logs.clear()
        logger.info("Debug cache cleared")
