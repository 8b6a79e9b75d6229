"""Date-aware fixture cache in front of the upstream sports API.

Per (bucket, date): a miss fetches and persists; a fresh hit is served from
the database; a stale hit re-fetches and overwrites. If the upstream call
fails, stale records are served when present.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Sequence

import requests
from sqlalchemy.exc import SQLAlchemyError

from ..constants import (
    DEFAULT_ESPORTS_TERMS,
    FUTURE_DATE_MAX_AGE,
    INTERNATIONAL_COMPETITION_MARKERS,
    INTERNATIONAL_COUNTRIES,
    LEAGUE_RECORD_MAX_AGE,
    LIVE_BUCKET,
    LIVE_OUTAGE_MAX_AGE,
    LIVE_STATUS_CODES,
    PAST_DATE_MAX_AGE,
    TODAY_MAX_AGE,
)
from ..errors import APIError
from ..storage import CachedFixture, FixtureCacheStore, utcnow
from ..utils import fixture_date, fixture_id

log = logging.getLogger(__name__)

Fetch = Callable[[], List[dict]]


def max_cache_age(date: str, today: str) -> int:
    """Seconds a bucket for ``date`` stays fresh, relative to ``today``."""
    if date < today:
        return PAST_DATE_MAX_AGE
    if date == today:
        return TODAY_MAX_AGE
    return FUTURE_DATE_MAX_AGE


def is_fresh(records: Sequence[CachedFixture], date: str, now: datetime) -> bool:
    if not records:
        return False
    newest = max(r.timestamp for r in records)
    age = (now - newest).total_seconds()
    return age < max_cache_age(date, now.date().isoformat())


def _lower(value: Any) -> str:
    return value.lower() if isinstance(value, str) else ""


def _has_required_fields(fixture: Any) -> bool:
    if not isinstance(fixture, dict):
        return False
    league = fixture.get("league")
    teams = fixture.get("teams")
    if not isinstance(league, dict) or not isinstance(teams, dict):
        return False
    home = teams.get("home") or {}
    away = teams.get("away") or {}
    return bool(home.get("name")) and bool(away.get("name"))


def _is_international_tournament(league: dict) -> bool:
    country = _lower(league.get("country"))
    name = _lower(league.get("name"))
    return country in INTERNATIONAL_COUNTRIES and any(
        marker in name for marker in INTERNATIONAL_COMPETITION_MARKERS
    )


def is_esports_fixture(fixture: dict, terms: Iterable[str] = DEFAULT_ESPORTS_TERMS) -> bool:
    league = fixture.get("league") or {}
    if _is_international_tournament(league):
        return False
    teams = fixture.get("teams") or {}
    haystacks = (
        _lower(league.get("name")),
        _lower((teams.get("home") or {}).get("name")),
        _lower((teams.get("away") or {}).get("name")),
    )
    return any(term in text for term in terms for text in haystacks)


def has_invalid_country(fixture: dict) -> bool:
    country = (fixture.get("league") or {}).get("country")
    if not isinstance(country, str) or not country.strip():
        return True
    return "unknown" in country.lower()


def filter_fixtures(
    fixtures: Iterable[Any],
    include_esports: bool = False,
    include_invalid: bool = False,
    esports_terms: Iterable[str] = DEFAULT_ESPORTS_TERMS,
) -> List[dict]:
    terms = tuple(t.lower() for t in esports_terms)
    kept = []
    for fixture in fixtures or []:
        if not _has_required_fields(fixture):
            continue
        if not include_esports and is_esports_fixture(fixture, terms):
            continue
        if not include_invalid and has_invalid_country(fixture):
            continue
        kept.append(fixture)
    return kept


def is_live(fixture: dict) -> bool:
    status = ((fixture.get("fixture") or {}).get("status") or {}).get("short")
    return status in LIVE_STATUS_CODES


class FixtureCacheService:
    def __init__(
        self,
        store: FixtureCacheStore,
        esports_terms: Iterable[str] = DEFAULT_ESPORTS_TERMS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.esports_terms = tuple(esports_terms)
        self._clock = clock

    def today(self) -> str:
        return self._clock().date().isoformat()

    def get_bucket(
        self,
        bucket: str,
        date: str,
        fetch: Fetch,
        transform: Optional[Callable[[List[dict]], List[dict]]] = None,
    ) -> List[dict]:
        records = self.store.get_cached_fixtures_by_league(bucket, date)
        if is_fresh(records, date, self._clock()):
            log.info("fixture_cache hit bucket=%s date=%s n=%d", bucket, date, len(records))
            return [r.data for r in records]

        state = "stale" if records else "miss"
        log.info("fixture_cache %s bucket=%s date=%s", state, bucket, date)
        try:
            fixtures = fetch()
        except (APIError, requests.RequestException) as exc:
            if records:
                log.warning(
                    "Upstream failed for %s/%s, serving %d stale fixtures: %s",
                    bucket,
                    date,
                    len(records),
                    exc,
                )
                return [r.data for r in records]
            if isinstance(exc, APIError):
                raise
            raise APIError(
                "cssport", "UPSTREAM_ERROR", "Failed to fetch fixtures", details=str(exc), status=502
            ) from exc

        if transform is not None:
            fixtures = transform(fixtures)
        self.persist(bucket, date, fixtures)
        return fixtures

    def persist(self, bucket: str, date: str, fixtures: Iterable[dict]) -> int:
        """Make ``fixtures`` the whole content of ``(bucket, date)``.

        Each fixture is stored under ``{bucket}:{id}``; a failed write skips
        that fixture. Rows upstream no longer returns are then deleted so a
        refetch replaces the bucket instead of merging into it.
        """
        stored = 0
        keep = []
        for fixture in fixtures:
            upstream_id = fixture_id(fixture)
            if upstream_id is None:
                continue
            key = f"{bucket}:{upstream_id}"
            keep.append(key)
            try:
                self.store.upsert_cached_fixture(key, bucket, date, fixture)
                stored += 1
            except SQLAlchemyError as exc:
                log.error("Error caching fixture %s in %s: %s", upstream_id, bucket, exc)
        try:
            removed = self.store.delete_bucket_except(bucket, date, keep)
        except SQLAlchemyError as exc:
            log.error("Error pruning bucket %s/%s: %s", bucket, date, exc)
        else:
            if removed:
                log.info("fixture_cache pruned bucket=%s date=%s n=%d", bucket, date, removed)
        return stored

    def get_live(self, fetch: Fetch) -> List[dict]:
        """Live data is always fetched; the cache only covers upstream outages.

        The outage fallback is today's live snapshot, limited to records
        younger than ``LIVE_OUTAGE_MAX_AGE``.
        """
        today = self.today()
        try:
            fixtures = filter_fixtures(fetch(), esports_terms=self.esports_terms)
        except (APIError, requests.RequestException) as exc:
            now = self._clock()
            cached = [
                r.data
                for r in self.store.get_cached_fixtures_by_league(LIVE_BUCKET, today)
                if is_live(r.data) and (now - r.timestamp).total_seconds() < LIVE_OUTAGE_MAX_AGE
            ]
            if cached:
                log.warning("Live fetch failed, serving %d cached live fixtures: %s", len(cached), exc)
                return cached
            if isinstance(exc, APIError):
                raise
            raise APIError(
                "cssport", "UPSTREAM_ERROR", "Failed to fetch live fixtures", details=str(exc), status=502
            ) from exc
        self.persist(LIVE_BUCKET, today, fixtures)
        return fixtures

    def get_league(self, league_id: int, fetch: Callable[[], Optional[dict]]) -> Optional[dict]:
        record = self.store.get_cached_league(league_id)
        now = self._clock()
        if record is not None and (now - record.timestamp).total_seconds() < LEAGUE_RECORD_MAX_AGE:
            return record.data
        try:
            data = fetch()
        except (APIError, requests.RequestException) as exc:
            if record is not None:
                log.warning("League %s fetch failed, serving stale record: %s", league_id, exc)
                return record.data
            raise
        if data is None:
            return record.data if record is not None else None
        try:
            self.store.upsert_cached_league(league_id, data)
        except SQLAlchemyError as exc:
            log.error("Error caching league %s: %s", league_id, exc)
        return data


def on_date(fixtures: Iterable[dict], date: str) -> List[dict]:
    """Keep fixtures whose kickoff date string is ``date``."""
    return [f for f in fixtures if fixture_date(f) == date]
