"""Logging helpers: rate-limited warnings and failure classification."""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, Iterable, Tuple

import requests

TIMEOUT = "timeout"
NETWORK = "network"
UNKNOWN = "unknown"


def classify_failure(exc: BaseException) -> str:
    """Bucket an exception as timeout, network or unknown for log lines."""

    if isinstance(exc, (requests.exceptions.Timeout, FuturesTimeoutError, TimeoutError)):
        return TIMEOUT
    if isinstance(exc, (requests.exceptions.RequestException, ConnectionError)):
        return NETWORK
    return UNKNOWN


class RateLimitedLogger:
    """Emit at most one message per key within ``window_seconds``.

    Logo fallbacks repeat on every render of a broken asset; this keeps the
    log readable without hiding the first occurrence.
    """

    def __init__(
        self,
        logger: logging.Logger,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._logger = logger
        self._window = float(max(window_seconds, 0))
        self._clock = clock
        self._last_logged: Dict[Tuple[Any, ...], float] = {}
        self._lock = threading.Lock()

    def _should_emit(self, key: Tuple[Any, ...]) -> bool:
        now = self._clock()
        with self._lock:
            last = self._last_logged.get(key)
            if last is not None and (now - last) < self._window:
                return False
            self._last_logged[key] = now
            return True

    def log(self, level: int, key: Iterable[Any], msg: str, *args: Any, **kwargs: Any) -> bool:
        if not self._should_emit(tuple(key)):
            return False
        self._logger.log(level, msg, *args, **kwargs)
        return True

    def info(self, key: Iterable[Any], msg: str, *args: Any, **kwargs: Any) -> bool:
        return self.log(logging.INFO, key, msg, *args, **kwargs)

    def warning(self, key: Iterable[Any], msg: str, *args: Any, **kwargs: Any) -> bool:
        return self.log(logging.WARNING, key, msg, *args, **kwargs)

    def reset(self) -> None:
        with self._lock:
            self._last_logged.clear()
