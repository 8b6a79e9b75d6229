"""Team, flag and league logo resolution over the logo caches.

Every public lookup returns a :class:`LogoResponse` with a usable URL. The
order for a miss is: cached entry, candidate URLs in priority order (local
paths trusted, remote ones HEAD-checked), then the fallback asset.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import asdict, dataclass
from typing import Callable, Iterable, List, Optional, Tuple

import requests

from .config import IMAGE_TIMEOUT, LEAGUE_FALLBACK_RETRY_SECONDS, LEAGUE_LOGO_TIMEOUT, setup_logger
from .constants import (
    API_SPORTS_MEDIA_BASE,
    BAD_URL_MARKERS,
    CIRCLE_FLAGS_BASE,
    COUNTRY_CODES,
    DEFAULT_WELL_KNOWN_LEAGUE_IDS,
    FALLBACK_LOGO_PATH,
    FLAG_CDN_BASE,
    LOGO_VALIDATION_WORKERS,
    SPECIAL_FLAGS,
)
from .debug_cache import DebugCache
from .image_cache import ImageCache
from .logging_utils import TIMEOUT, RateLimitedLogger, classify_failure
from .logo_cache import LogoCache, LogoEntry
from .team_classifier import NationalTeam, classify_team

logger = setup_logger(__name__)
_fallback_log = RateLimitedLogger(logger, window_seconds=300)

CIRCULAR = "circular"
NORMAL = "normal"


@dataclass(frozen=True)
class TeamLogoRequest:
    team_id: int
    team_name: Optional[str] = None
    shape: str = NORMAL
    sport: str = "football"
    league_name: Optional[str] = None
    country: Optional[str] = None


@dataclass(frozen=True)
class FlagRequest:
    country: str
    shape: str = NORMAL


@dataclass(frozen=True)
class LeagueLogoRequest:
    league_id: int
    league_name: Optional[str] = None


@dataclass(frozen=True)
class LogoResponse:
    url: str
    fallback_used: bool
    load_time: float  # milliseconds
    cached: bool
    source: str

    def to_dict(self) -> dict:
        return asdict(self)


class ValidationFailed(Exception):
    """A candidate URL answered with a non-2xx status."""


def is_bad_url(url: Optional[str]) -> bool:
    if not url:
        return True
    lowered = url.lower()
    return any(marker in lowered for marker in BAD_URL_MARKERS)


def is_local_url(url: str) -> bool:
    return url.startswith("/") or url.startswith("data:")


def team_logo_path(team_id, shape: str, sport: str, national: bool) -> str:
    if national and shape == CIRCULAR:
        return f"/api/team-logo/circular/{team_id}?size=32&sport={sport}"
    size = 32 if shape == CIRCULAR else 64
    return f"/api/team-logo/square/{team_id}?size={size}&sport={sport}"


def flag_url(country: str, shape: str) -> Optional[str]:
    if country in SPECIAL_FLAGS:
        return SPECIAL_FLAGS[country]
    code = COUNTRY_CODES.get(country)
    if not code:
        return None
    if shape == CIRCULAR:
        return f"{CIRCLE_FLAGS_BASE}/{code}.svg"
    return f"{FLAG_CDN_BASE}/{code}.png"


def league_logo_url(league_id) -> str:
    return f"{API_SPORTS_MEDIA_BASE}/football/leagues/{league_id}.png"


class EnhancedLogoManager:
    def __init__(
        self,
        team_cache: LogoCache,
        league_cache: LogoCache,
        flag_cache: LogoCache,
        image_cache: Optional[ImageCache] = None,
        debug: Optional[DebugCache] = None,
        well_known_league_ids: Iterable[int] = DEFAULT_WELL_KNOWN_LEAGUE_IDS,
        fallback_url: str = FALLBACK_LOGO_PATH,
        image_timeout: float = IMAGE_TIMEOUT,
        league_timeout: float = LEAGUE_LOGO_TIMEOUT,
        retry_fallback_within: Optional[float] = LEAGUE_FALLBACK_RETRY_SECONDS,
        max_workers: int = LOGO_VALIDATION_WORKERS,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.team_cache = team_cache
        self.league_cache = league_cache
        self.flag_cache = flag_cache
        self.image_cache = image_cache if image_cache is not None else ImageCache()
        self.debug = debug if debug is not None else DebugCache()
        self.well_known_league_ids = frozenset(int(i) for i in well_known_league_ids)
        self.fallback_url = fallback_url
        self.image_timeout = image_timeout
        self.league_timeout = league_timeout
        self.retry_fallback_within = retry_fallback_within
        self._timer = timer
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="logo-validate"
        )

    # ---- validation ----

    def _head(self, url: str, timeout: float) -> None:
        response = requests.head(url, allow_redirects=True, timeout=timeout)
        if not 200 <= response.status_code < 300:
            raise ValidationFailed(f"HTTP {response.status_code} for {url}")

    def validate_url(self, url: str, timeout: float) -> None:
        """HEAD-check ``url``; raises on timeout, network error or non-2xx."""
        self._head(url, timeout)

    def validate_url_with_deadline(self, url: str, timeout: float) -> None:
        """HEAD-check with both a socket timeout and a hard wall-clock deadline.

        A worker still running at the deadline is abandoned; whatever it
        raises later goes through :func:`report_late_failure`.
        """
        future = self._executor.submit(self._head, url, timeout)
        try:
            future.result(timeout=timeout)
        except FuturesTimeoutError:
            if not future.cancel():
                future.add_done_callback(report_late_failure)
            raise

    def _try_candidates(
        self,
        kind: str,
        candidates: List[Tuple[str, str]],
        validate: Callable[[str], None],
    ) -> Optional[Tuple[str, str, bool]]:
        for url, source in candidates:
            if is_bad_url(url):
                logger.debug("Rejected %s logo candidate %s", kind, url)
                continue
            if is_local_url(url):
                return url, source, False
            try:
                validate(url)
            except Exception as exc:  # validation failures fall through to the next candidate
                logger.info(
                    "%s logo validation failed (%s) for %s: %s",
                    kind,
                    classify_failure(exc),
                    url,
                    exc,
                )
                continue
            return url, source, True
        return None

    # ---- shared plumbing ----

    def _elapsed(self, started: float) -> float:
        return round((self._timer() - started) * 1000, 2)

    def _respond(
        self,
        component: str,
        kind: str,
        identifier,
        url: str,
        fallback_used: bool,
        cached: bool,
        source: str,
        started: float,
        error: Optional[str] = None,
    ) -> LogoResponse:
        response = LogoResponse(
            url=url or self.fallback_url,
            fallback_used=fallback_used,
            load_time=self._elapsed(started),
            cached=cached,
            source=source,
        )
        self.debug.log_logo(
            component,
            kind,
            identifier,
            response.url,
            response.fallback_used,
            response.cached,
            response.load_time,
            source=source,
            error=error,
        )
        return response

    def _from_entry(
        self, component: str, kind: str, identifier, entry: LogoEntry, started: float
    ) -> LogoResponse:
        return self._respond(
            component,
            kind,
            identifier,
            entry.url,
            entry.url == self.fallback_url,
            True,
            entry.source,
            started,
        )

    def _failure(
        self, component: str, kind: str, identifier, exc: Exception, started: float
    ) -> LogoResponse:
        category = classify_failure(exc)
        if category == TIMEOUT:
            logger.warning("%s logo lookup for %s timed out", kind, identifier)
        else:
            logger.error(
                "%s logo lookup for %s failed (%s): %s", kind, identifier, category, exc
            )
        return self._respond(
            component,
            kind,
            identifier,
            self.fallback_url,
            True,
            False,
            "fallback",
            started,
            error=category,
        )

    # ---- team logos ----

    def get_team_logo(self, component: str, request: TeamLogoRequest) -> LogoResponse:
        started = self._timer()
        try:
            return self._resolve_team_logo(component, request, started)
        except Exception as exc:
            return self._failure(component, "team", request.team_id, exc, started)

    def _resolve_team_logo(
        self, component: str, request: TeamLogoRequest, started: float
    ) -> LogoResponse:
        key = f"team-{request.sport}-{request.team_id}-{request.shape}"
        entry = self.team_cache.get_cached(key)
        if entry is not None:
            return self._from_entry(component, "team", request.team_id, entry, started)

        classification = classify_team(
            request.team_name or "", request.league_name, request.country
        )
        national = isinstance(classification, NationalTeam)

        candidates: List[Tuple[str, str]] = []
        override = self.image_cache.get_team_logo_from_cache(request.team_id, request.team_name)
        if override:
            candidates.append((override, "image-cache"))
        candidates.append(
            (team_logo_path(request.team_id, request.shape, request.sport, national), "proxy")
        )

        resolved = self._try_candidates(
            "team", candidates, lambda url: self.validate_url(url, self.image_timeout)
        )
        if resolved is None:
            _fallback_log.warning(
                ("team", request.team_id), "No usable logo for team %s", request.team_id
            )
            self.team_cache.set_cached(key, self.fallback_url, "fallback")
            return self._respond(
                component, "team", request.team_id, self.fallback_url, True, False, "fallback", started
            )

        url, source, verified = resolved
        self.team_cache.set_cached(key, url, source, verified=verified)
        return self._respond(component, "team", request.team_id, url, False, False, source, started)

    # ---- flags ----

    def get_country_flag(self, component: str, request: FlagRequest) -> LogoResponse:
        started = self._timer()
        try:
            return self._resolve_flag(component, request, started)
        except Exception as exc:
            return self._failure(component, "flag", request.country, exc, started)

    def _resolve_flag(self, component: str, request: FlagRequest, started: float) -> LogoResponse:
        key = f"flag-{request.country}-{request.shape}"
        entry = self.flag_cache.get_cached(key)
        if entry is not None:
            return self._from_entry(component, "flag", request.country, entry, started)

        override = self.image_cache.get_flag_from_cache(request.country) if request.country else None
        if override and not is_bad_url(override):
            url, source = override, "image-cache"
        else:
            url = flag_url(request.country, request.shape) if request.country else None
            source = "special" if request.country in SPECIAL_FLAGS else "flag-table"

        if not url:
            _fallback_log.warning(
                ("flag", request.country), "No flag mapping for country %r", request.country
            )
            self.flag_cache.set_cached(key, self.fallback_url, "fallback")
            return self._respond(
                component, "flag", request.country, self.fallback_url, True, False, "fallback", started
            )

        self.flag_cache.set_cached(key, url, source)
        return self._respond(component, "flag", request.country, url, False, False, source, started)

    # ---- league logos ----

    def get_league_logo(self, component: str, request: LeagueLogoRequest) -> LogoResponse:
        started = self._timer()
        try:
            return self._resolve_league_logo(component, request, started)
        except Exception as exc:
            return self._failure(component, "league", request.league_id, exc, started)

    def _resolve_league_logo(
        self, component: str, request: LeagueLogoRequest, started: float
    ) -> LogoResponse:
        key = f"league-{request.league_id}"
        entry = self.league_cache.get_cached(key, retry_fallback_within=self.retry_fallback_within)
        if entry is not None:
            return self._from_entry(component, "league", request.league_id, entry, started)

        if int(request.league_id) in self.well_known_league_ids:
            url = league_logo_url(request.league_id)
            self.league_cache.set_cached(key, url, "well-known")
            return self._respond(
                component, "league", request.league_id, url, False, False, "well-known", started
            )

        candidates: List[Tuple[str, str]] = []
        override = self.image_cache.get_league_logo_from_cache(request.league_id)
        if override:
            candidates.append((override, "image-cache"))
        candidates.append((league_logo_url(request.league_id), "api-sports"))

        resolved = self._try_candidates(
            "league",
            candidates,
            lambda url: self.validate_url_with_deadline(url, self.league_timeout),
        )
        if resolved is None:
            self._record_league_fallback(key, request.league_id)
            return self._respond(
                component, "league", request.league_id, self.fallback_url, True, False, "fallback", started
            )

        url, source, verified = resolved
        self.league_cache.set_cached(key, url, source, verified=verified)
        return self._respond(component, "league", request.league_id, url, False, False, source, started)

    def _record_league_fallback(self, key: str, league_id) -> None:
        existing = self.league_cache.peek(key)
        if existing is not None and existing.url == self.fallback_url:
            more = self.league_cache.increment_retry(key)
            self.league_cache.touch(key)
            if not more:
                logger.info("League %s logo retries exhausted; keeping fallback", league_id)
            return
        _fallback_log.warning(("league", league_id), "Falling back for league %s logo", league_id)
        self.league_cache.set_cached(key, self.fallback_url, "fallback")

    # ---- maintenance ----

    def _caches(self, component: Optional[str] = None) -> List[LogoCache]:
        caches = {"team": self.team_cache, "league": self.league_cache, "flag": self.flag_cache}
        if component is None:
            return list(caches.values())
        return [caches[component]] if component in caches else []

    def clear_cache(self, component: Optional[str] = None) -> None:
        for cache in self._caches(component):
            cache.clear()
        logger.info("Logo cache cleared (%s)", component or "all")

    def get_cache_stats(self) -> dict:
        per_kind = {name: cache.get_stats() for name, cache in (
            ("team", self.team_cache),
            ("league", self.league_cache),
            ("flag", self.flag_cache),
        )}
        return {
            "total": sum(s["size"] for s in per_kind.values()),
            "fallbacks": sum(s["fallbacks"] for s in per_kind.values()),
            "byKind": per_kind,
        }

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


def install_timeout_noise_filter():
    """Drop uncaught timeout errors from abandoned validation threads.

    Other exceptions are passed to the previously installed hook. Returns the
    active hook; installing twice is a no-op.
    """
    previous = threading.excepthook
    if getattr(previous, "_swallows_timeouts", False):
        return previous

    def hook(args):
        exc_type = args.exc_type
        if exc_type is not None and issubclass(
            exc_type, (requests.exceptions.Timeout, FuturesTimeoutError, TimeoutError)
        ):
            logger.debug("Ignored stray timeout in thread %s", getattr(args.thread, "name", "?"))
            return
        previous(args)

    hook._swallows_timeouts = True
    threading.excepthook = hook
    return hook


def report_late_failure(future) -> None:
    """Done-callback for abandoned validation futures.

    A late non-2xx answer is an ordinary outcome and only logged. Other
    late exceptions are handed to ``threading.excepthook``, where
    :func:`install_timeout_noise_filter` drops the timeouts.
    """
    if future.cancelled():
        return
    exc = future.exception()
    if exc is None:
        return
    if isinstance(exc, ValidationFailed):
        logger.debug("Late validation result after deadline: %s", exc)
        return
    threading.excepthook(
        threading.ExceptHookArgs([type(exc), exc, exc.__traceback__, threading.current_thread()])
    )
