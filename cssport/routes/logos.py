from __future__ import annotations

import logging

import requests
from flask import Blueprint, Response, redirect, request

from ..app_utils import get_services, json_errors, make_error, make_ok
from ..config import PROXY_TIMEOUT
from ..constants import API_SPORTS_MEDIA_BASE, FALLBACK_LOGO_PATH
from ..logging_utils import RateLimitedLogger, classify_failure
from ..logo_manager import CIRCULAR, NORMAL, FlagRequest, LeagueLogoRequest, TeamLogoRequest
from ..validators import validate_int_id

bp = Blueprint("logos", __name__, url_prefix="/api")
log = logging.getLogger(__name__)
_proxy_log = RateLimitedLogger(log, window_seconds=300)

SPORTS = ("football", "basketball")
IMAGE_MAX_AGE = 24 * 60 * 60


def _shape(raw) -> str:
    return CIRCULAR if (raw or "").lower() == CIRCULAR else NORMAL


def _proxy_image(url: str, key):
    """Stream an upstream image, or redirect to the fallback asset."""
    try:
        upstream = requests.get(url, timeout=PROXY_TIMEOUT)
    except requests.RequestException as exc:
        _proxy_log.warning(key, "logo proxy %s failed (%s): %s", url, classify_failure(exc), exc)
        return redirect(FALLBACK_LOGO_PATH, code=302)

    content_type = upstream.headers.get("Content-Type", "")
    if upstream.status_code != 200 or not content_type.startswith("image/"):
        _proxy_log.warning(key, "logo proxy %s returned %s (%s)", url, upstream.status_code, content_type)
        return redirect(FALLBACK_LOGO_PATH, code=302)

    return Response(
        upstream.content,
        mimetype=content_type,
        headers={"Cache-Control": f"public, max-age={IMAGE_MAX_AGE}"},
    )


@bp.get("/team-logo/<shape>/<team_id>")
def team_logo_image(shape: str, team_id: str):
    if shape not in ("square", "circular") or not team_id.isdigit():
        return redirect(FALLBACK_LOGO_PATH, code=302)
    sport = request.args.get("sport", "football")
    if sport not in SPORTS:
        sport = "football"
    return _proxy_image(f"{API_SPORTS_MEDIA_BASE}/{sport}/teams/{team_id}.png", ("team", team_id))


@bp.get("/league-logo/<league_id>")
def league_logo_image(league_id: str):
    if not league_id.isdigit():
        return redirect(FALLBACK_LOGO_PATH, code=302)
    return _proxy_image(
        f"{API_SPORTS_MEDIA_BASE}/football/leagues/{league_id}.png", ("league", league_id)
    )


# ---- resolver endpoints ----


@bp.get("/logos/team/<team_id>")
@json_errors("Failed to resolve team logo")
def resolve_team_logo(team_id: str):
    tid = validate_int_id(team_id, "team id")
    args = request.args
    response = get_services().logo_manager.get_team_logo(
        args.get("component", "api"),
        TeamLogoRequest(
            team_id=tid,
            team_name=args.get("name"),
            shape=_shape(args.get("shape")),
            sport=args.get("sport", "football") if args.get("sport") in SPORTS else "football",
            league_name=args.get("league"),
            country=args.get("country"),
        ),
    )
    return make_ok(response.to_dict())


@bp.get("/logos/flag/<country>")
@json_errors("Failed to resolve flag")
def resolve_flag(country: str):
    country = country.strip()
    if not country:
        return make_error(None, "Country is required", 400)
    response = get_services().logo_manager.get_country_flag(
        request.args.get("component", "api"),
        FlagRequest(country=country, shape=_shape(request.args.get("shape"))),
    )
    return make_ok(response.to_dict())


@bp.get("/logos/league/<league_id>")
@json_errors("Failed to resolve league logo")
def resolve_league_logo(league_id: str):
    lid = validate_int_id(league_id, "league id")
    response = get_services().logo_manager.get_league_logo(
        request.args.get("component", "api"),
        LeagueLogoRequest(league_id=lid, league_name=request.args.get("name")),
    )
    return make_ok(response.to_dict())
