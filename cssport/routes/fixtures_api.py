from __future__ import annotations

import logging

from flask import Blueprint, request

from ..app_utils import get_services, json_errors, make_error, make_ok
from ..constants import ALL_COUNTRIES_BUCKET, POPULAR_FIXTURE_LEAGUE_IDS, POPULAR_LEAGUE_PRIORITIES
from ..errors import APIError
from ..services.fixture_cache import filter_fixtures, on_date
from ..validators import parse_bool, validate_date, validate_int_id

bp = Blueprint("fixtures_api", __name__, url_prefix="/api")
log = logging.getLogger(__name__)


def _league_id(fixture: dict):
    return (fixture.get("league") or {}).get("id")


@bp.get("/fixtures/date/<date>")
@json_errors("Failed to fetch fixtures")
def fixtures_by_date(date: str):
    date = validate_date(date)
    show_all = parse_bool(request.args.get("all"))
    services = get_services()
    terms = services.fixtures.esports_terms

    def transform(fixtures):
        kept = filter_fixtures(on_date(fixtures, date), esports_terms=terms)
        if not show_all:
            kept = [f for f in kept if _league_id(f) in POPULAR_FIXTURE_LEAGUE_IDS]
        return kept

    bucket = "date-all" if show_all else "date-popular"
    fixtures = services.fixtures.get_bucket(
        bucket, date, lambda: services.upstream.get_fixtures_by_date(date), transform
    )
    log.info("fixtures_by_date date=%s all=%s n=%d", date, show_all, len(fixtures))
    return make_ok(fixtures)


@bp.get("/all-countries/date/<date>")
@json_errors("Failed to fetch all countries fixtures")
def all_countries_by_date(date: str):
    date = validate_date(date)
    include_esports = parse_bool(request.args.get("includeEsports"))
    include_invalid = parse_bool(request.args.get("includeInvalid"))
    services = get_services()

    # Filter flags change the result set, so each combination gets its own bucket.
    bucket = ALL_COUNTRIES_BUCKET
    if include_esports:
        bucket += "+esports"
    if include_invalid:
        bucket += "+invalid"

    def transform(fixtures):
        return filter_fixtures(
            on_date(fixtures, date),
            include_esports=include_esports,
            include_invalid=include_invalid,
            esports_terms=services.fixtures.esports_terms,
        )

    fixtures = services.fixtures.get_bucket(
        bucket, date, lambda: services.upstream.get_fixtures_by_date(date), transform
    )
    log.info("all_countries date=%s n=%d", date, len(fixtures))
    return make_ok(fixtures)


@bp.get("/fixtures/live")
@json_errors("Failed to fetch live fixtures")
def live_fixtures():
    services = get_services()
    fixtures = services.fixtures.get_live(services.upstream.get_live_fixtures)
    return make_ok(fixtures)


@bp.get("/leagues/<league_id>/fixtures")
@json_errors("Failed to fetch league fixtures")
def league_fixtures(league_id: str):
    lid = validate_int_id(league_id, "league id")
    services = get_services()
    raw_date = request.args.get("date")
    date = validate_date(raw_date) if raw_date is not None else services.fixtures.today()

    fixtures = services.fixtures.get_bucket(
        str(lid),
        date,
        lambda: services.upstream.get_fixtures_by_league(lid, date),
        lambda items: filter_fixtures(items, include_esports=True, include_invalid=True),
    )
    return make_ok(fixtures)


@bp.get("/leagues/popular")
@json_errors("Failed to fetch popular leagues")
def popular_leagues():
    services = get_services()
    leagues = []
    for league_id, priority in POPULAR_LEAGUE_PRIORITIES:
        try:
            data = services.fixtures.get_league(
                league_id, lambda lid=league_id: services.upstream.get_league(lid)
            )
        except APIError as exc:
            log.warning("popular league %s unavailable: %s", league_id, exc.message)
            continue
        if data:
            leagues.append({**data, "priority": priority})
    if not leagues:
        return make_error(None, "Failed to fetch popular leagues", 502)
    return make_ok(leagues)


@bp.get("/leagues/<league_id>")
@json_errors("Failed to fetch league")
def league_detail(league_id: str):
    lid = validate_int_id(league_id, "league id")
    services = get_services()
    data = services.fixtures.get_league(lid, lambda: services.upstream.get_league(lid))
    if data is None:
        return make_error(None, "League not found", 404)
    return make_ok(data)
