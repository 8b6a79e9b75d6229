from __future__ import annotations

import logging
from dataclasses import asdict

from flask import Blueprint, request

from ..app_utils import get_services, make_error, make_ok

bp = Blueprint("debug_api", __name__, url_prefix="/api/debug")
log = logging.getLogger(__name__)

CLEAR_TARGETS = ("all", "debug", "logos", "images", "api")


def _limit(default: int = 50) -> int:
    raw = request.args.get("limit")
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        value = default
    return max(1, min(value, 1000))


@bp.get("/cache")
def export_cache():
    return make_ok(get_services().debug.export_debug_data())


@bp.get("/cache/summary")
def cache_summary():
    return make_ok(get_services().debug.summary())


@bp.get("/cache/hit-rate/<component>")
def hit_rate(component: str):
    debug = get_services().debug
    return make_ok({"component": component, "hitRate": round(debug.get_cache_hit_rate(component), 2)})


@bp.get("/logos")
def logos():
    services = get_services()
    component = request.args.get("component")
    debug = services.debug
    logs = (
        debug.get_component_logo_logs(component)
        if component
        else debug.get_recent_logo_logs(_limit())
    )
    return make_ok(
        {
            "stats": services.logo_manager.get_cache_stats(),
            "images": services.image_cache.get_stats(),
            "logs": [asdict(e) for e in logs],
        }
    )


@bp.get("/api-wrapper")
def api_wrapper():
    services = get_services()
    component = request.args.get("component")
    debug = services.debug
    logs = (
        debug.get_component_api_logs(component)
        if component
        else debug.get_recent_api_logs(_limit())
    )
    return make_ok(
        {"cache": services.api_wrapper.get_cache_stats(), "logs": [asdict(e) for e in logs]}
    )


@bp.post("/cache/clear")
def clear():
    body = request.get_json(silent=True) or {}
    target = body.get("target") or request.args.get("target") or "all"
    component = body.get("component") or request.args.get("component")
    if target not in CLEAR_TARGETS:
        return make_error(None, f"Unknown target {target!r}", 400)

    services = get_services()
    if target in ("all", "debug"):
        services.debug.clear_all()
    if target in ("all", "logos"):
        services.logo_manager.clear_cache(component)
    if target in ("all", "images"):
        services.image_cache.clear()
    if target in ("all", "api"):
        services.api_wrapper.clear_cache(component)
    log.info("debug cache clear target=%s component=%s", target, component)
    return make_ok({"cleared": target, "component": component})
