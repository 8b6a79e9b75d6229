# cssport/net_retry.py
"""JSON GET with retry/backoff shared by the upstream adapter and ApiWrapper.

Every failure leaves this module as :class:`APIError`; callers only decide
what to do with it (serve stale data, or let the route render it).
"""
from __future__ import annotations

import time
from functools import lru_cache
from typing import Any, Optional
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import API_BACKOFF_FACTOR, API_MAX_RETRIES, API_TIMEOUT, setup_logger
from .errors import APIError
from .logging_utils import TIMEOUT, classify_failure

_logger = setup_logger(__name__)

RETRYABLE_STATUSES: tuple[int, ...] = (429, 500, 502, 503, 504)
_ALLOWED_METHODS = frozenset(["HEAD", "GET", "OPTIONS"])


@lru_cache(maxsize=1)
def _session() -> requests.Session:
    # Transport-level retries are off; fetch_json owns the retry loop.
    adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _label(url: str) -> str:
    # Query strings can carry keys; keep them out of log lines.
    parts = urlsplit(url)
    return f"{parts.netloc}{parts.path}"


def _failure(source: str, label: str, exc: requests.RequestException, relay_status: bool) -> APIError:
    upstream_status = getattr(getattr(exc, "response", None), "status_code", None)
    kind = classify_failure(exc)
    if upstream_status is not None:
        code = "HTTP_ERROR"
        details = f"status={upstream_status}"
    else:
        code = "TIMEOUT" if kind == TIMEOUT else "NETWORK_ERROR"
        details = type(exc).__name__
    status = upstream_status if relay_status and upstream_status else 502
    return APIError(source, code, f"Request failed: {label}", details=details, status=status)


def fetch_json(
    url: str,
    *,
    source: str,
    retries: int = API_MAX_RETRIES,
    backoff_factor: float = API_BACKOFF_FACTOR,
    timeout: float = API_TIMEOUT,
    relay_status: bool = False,
    logger=None,
    session: Optional[requests.Session] = None,
    **kwargs: Any,
) -> Any:
    """GET ``url`` and decode its JSON body.

    ``retries`` is the total number of attempts and is clamped to at least
    one. Timeouts, connection errors and :data:`RETRYABLE_STATUSES` are
    retried with urllib3's exponential backoff. Failures raise
    :class:`APIError` tagged with ``source``; its status is 502 unless
    ``relay_status`` asks for the upstream HTTP status.
    """
    log = logger or _logger
    http = session or _session()
    label = _label(url)
    attempts = max(1, int(retries))
    retry_state = Retry(
        total=attempts,
        backoff_factor=backoff_factor,
        status_forcelist=RETRYABLE_STATUSES,
        allowed_methods=_ALLOWED_METHODS,
        raise_on_status=False,
    )

    response: Optional[requests.Response] = None
    for attempt in range(1, attempts + 1):
        try:
            response = http.get(url, timeout=timeout, **kwargs)
            response.raise_for_status()
            break
        except requests.RequestException as exc:
            status = getattr(getattr(exc, "response", None), "status_code", None)
            retryable = (
                isinstance(exc, (requests.exceptions.Timeout, requests.exceptions.ConnectionError))
                or status in RETRYABLE_STATUSES
            )
            if not retryable or attempt == attempts:
                log.error(
                    "%s %s failed after %d attempt(s) [%s]: %s",
                    source, label, attempt, classify_failure(exc), type(exc).__name__,
                )
                raise _failure(source, label, exc, relay_status) from exc

            retry_state = retry_state.increment(method="GET", url=url, error=exc)
            backoff = retry_state.get_backoff_time()
            log.warning(
                "Retrying %s %s (%d/%d) [%s]",
                source, label, attempt, attempts, classify_failure(exc),
            )
            if backoff > 0:
                time.sleep(backoff)

    try:
        return response.json()
    except ValueError as exc:
        raise APIError(source, "BAD_JSON", f"Invalid JSON from {label}", status=502) from exc


__all__ = ["RETRYABLE_STATUSES", "fetch_json"]
