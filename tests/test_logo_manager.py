import threading
from concurrent.futures import Future

import pytest
import requests

from cssport.constants import FALLBACK_LOGO_PATH
from cssport.debug_cache import DebugCache
from cssport.image_cache import ImageCache
from cssport.logo_cache import LogoCache, LogoCacheConfig
from cssport.logo_manager import (
    CIRCULAR,
    EnhancedLogoManager,
    FlagRequest,
    LeagueLogoRequest,
    TeamLogoRequest,
    ValidationFailed,
    install_timeout_noise_filter,
    report_late_failure,
)


class _Clock:
    def __init__(self, now=9_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class _FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code


def _patch_head(monkeypatch, status_code=200, exc=None):
    def fake_head(url, allow_redirects=True, timeout=5.0):
        fake_head.calls.append(url)
        if exc is not None:
            raise exc
        return _FakeResponse(status_code)

    fake_head.calls = []
    monkeypatch.setattr("cssport.logo_manager.requests.head", fake_head)
    return fake_head


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def manager(clock):
    mgr = EnhancedLogoManager(
        team_cache=LogoCache(LogoCacheConfig(max_size=50), name="team", clock=clock),
        league_cache=LogoCache(LogoCacheConfig(max_size=50), name="league", clock=clock),
        flag_cache=LogoCache(LogoCacheConfig(max_size=50), name="flag", clock=clock),
        image_cache=ImageCache(clock=clock),
        debug=DebugCache(clock=clock),
        well_known_league_ids=(39, 140),
        league_timeout=0.2,
    )
    yield mgr
    mgr.close()


# ---- leagues ----


def test_well_known_league_skips_validation(monkeypatch, manager):
    fake_head = _patch_head(monkeypatch)

    response = manager.get_league_logo("Header", LeagueLogoRequest(39))

    assert response.url == "https://media.api-sports.io/football/leagues/39.png"
    assert response.fallback_used is False
    assert response.cached is False
    assert fake_head.calls == []


def test_unknown_league_validated_then_cached(monkeypatch, manager):
    fake_head = _patch_head(monkeypatch, 200)

    first = manager.get_league_logo("Header", LeagueLogoRequest(4242))
    second = manager.get_league_logo("Header", LeagueLogoRequest(4242))

    assert first.url == second.url == "https://media.api-sports.io/football/leagues/4242.png"
    assert first.cached is False
    assert second.cached is True
    assert len(fake_head.calls) == 1
    assert manager.league_cache.peek("league-4242").verified is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"status_code": 404},
        {"exc": requests.exceptions.Timeout("slow")},
        {"exc": requests.exceptions.ConnectionError("refused")},
    ],
)
def test_league_failure_falls_back_and_caches(monkeypatch, manager, kwargs):
    _patch_head(monkeypatch, **kwargs)

    response = manager.get_league_logo("Header", LeagueLogoRequest(999999))

    assert response.url == FALLBACK_LOGO_PATH
    assert response.fallback_used is True
    entry = manager.league_cache.peek("league-999999")
    assert entry.source == "fallback"
    assert entry.verified is False


def test_league_fallback_retried_after_window(monkeypatch, manager, clock):
    fake_head = _patch_head(monkeypatch, exc=requests.exceptions.ConnectionError("down"))
    manager.get_league_logo("Header", LeagueLogoRequest(777))
    assert len(fake_head.calls) == 1

    clock.now += 10 * 60
    cached = manager.get_league_logo("Header", LeagueLogoRequest(777))
    assert cached.cached is True
    assert len(fake_head.calls) == 1

    clock.now += 25 * 60
    manager.get_league_logo("Header", LeagueLogoRequest(777))
    assert len(fake_head.calls) == 2
    assert manager.league_cache.peek("league-777").retry_count == 1

    _patch_head(monkeypatch, 200)
    clock.now += 31 * 60
    recovered = manager.get_league_logo("Header", LeagueLogoRequest(777))
    assert recovered.fallback_used is False
    assert manager.league_cache.peek("league-777").retry_count == 0


def test_league_fallback_trusted_after_retries_exhausted(monkeypatch, manager, clock):
    fake_head = _patch_head(monkeypatch, exc=requests.exceptions.ConnectionError("down"))
    manager.get_league_logo("Header", LeagueLogoRequest(778))
    for _ in range(3):
        clock.now += 31 * 60
        manager.get_league_logo("Header", LeagueLogoRequest(778))
    calls = len(fake_head.calls)

    clock.now += 31 * 60
    response = manager.get_league_logo("Header", LeagueLogoRequest(778))

    assert response.cached is True
    assert response.fallback_used is True
    assert len(fake_head.calls) == calls


def test_league_hard_deadline(monkeypatch, manager):
    release = threading.Event()

    def hung_head(url, allow_redirects=True, timeout=5.0):
        release.wait(2)
        return _FakeResponse(200)

    monkeypatch.setattr("cssport.logo_manager.requests.head", hung_head)
    try:
        response = manager.get_league_logo("Header", LeagueLogoRequest(31337))
    finally:
        release.set()

    assert response.fallback_used is True
    assert response.url == FALLBACK_LOGO_PATH


# ---- teams ----


def test_team_logo_uses_local_proxy_without_network(monkeypatch, manager):
    fake_head = _patch_head(monkeypatch)

    first = manager.get_team_logo("Card", TeamLogoRequest(33, "Manchester United"))
    second = manager.get_team_logo("Card", TeamLogoRequest(33, "Manchester United"))

    assert first.url == "/api/team-logo/square/33?size=64&sport=football"
    assert second.url == first.url
    assert second.cached is True
    assert fake_head.calls == []


def test_national_team_circular_path(monkeypatch, manager):
    _patch_head(monkeypatch)
    response = manager.get_team_logo("Card", TeamLogoRequest(10, "Brazil", shape=CIRCULAR))
    assert response.url == "/api/team-logo/circular/10?size=32&sport=football"


def test_club_circular_uses_square_endpoint(monkeypatch, manager):
    _patch_head(monkeypatch)
    response = manager.get_team_logo(
        "Card", TeamLogoRequest(42, "Arsenal", shape=CIRCULAR, sport="basketball")
    )
    assert response.url == "/api/team-logo/square/42?size=32&sport=basketball"


def test_team_override_validated_by_head(monkeypatch, manager):
    fake_head = _patch_head(monkeypatch, 200)
    manager.image_cache.cache_team_logo(7, "https://cdn.example/7.png", "Atletico")

    response = manager.get_team_logo("Card", TeamLogoRequest(7, "Atletico"))

    assert response.url == "https://cdn.example/7.png"
    assert response.source == "image-cache"
    assert fake_head.calls == ["https://cdn.example/7.png"]


def test_bad_override_is_skipped(monkeypatch, manager):
    fake_head = _patch_head(monkeypatch)
    manager.image_cache.cache_team_logo(8, "https://via.placeholder.com/64", "Nobody")

    response = manager.get_team_logo("Card", TeamLogoRequest(8, "Nobody"))

    assert "placeholder" not in response.url
    assert fake_head.calls == []


# ---- flags ----


def test_special_flags(manager):
    world = manager.get_country_flag("Flags", FlagRequest("World", CIRCULAR))
    europe = manager.get_country_flag("Flags", FlagRequest("Europe"))
    assert world.url.endswith("/un.svg")
    assert europe.url.endswith("/eu.svg")


def test_flag_shapes(manager):
    circular = manager.get_country_flag("Flags", FlagRequest("England", CIRCULAR))
    normal = manager.get_country_flag("Flags", FlagRequest("England"))
    assert circular.url == "https://hatscripts.github.io/circle-flags/flags/gb-eng.svg"
    assert normal.url == "https://flagcdn.com/w40/gb-eng.png"


def test_unknown_country_falls_back(manager):
    response = manager.get_country_flag("Flags", FlagRequest("Atlantis"))
    assert response.url == FALLBACK_LOGO_PATH
    assert response.fallback_used is True
    again = manager.get_country_flag("Flags", FlagRequest("Atlantis"))
    assert again.cached is True
    assert again.fallback_used is True


# ---- guarantees ----


def test_never_raises_on_unexpected_errors(monkeypatch, manager, caplog):
    def boom(*args, **kwargs):
        raise RuntimeError("cache exploded")

    monkeypatch.setattr(manager.team_cache, "get_cached", boom)
    monkeypatch.setattr(manager.flag_cache, "get_cached", boom)
    monkeypatch.setattr(manager.league_cache, "get_cached", boom)

    with caplog.at_level("ERROR"):
        responses = [
            manager.get_team_logo("Card", TeamLogoRequest(1)),
            manager.get_country_flag("Card", FlagRequest("Spain")),
            manager.get_league_logo("Card", LeagueLogoRequest(1)),
        ]

    for response in responses:
        assert response.url == FALLBACK_LOGO_PATH
        assert response.fallback_used is True
    assert any("unknown" in m for m in caplog.messages)


def test_outcomes_reported_to_debug(monkeypatch, manager):
    _patch_head(monkeypatch, 404)
    manager.get_league_logo("Header", LeagueLogoRequest(5000))
    manager.get_league_logo("Header", LeagueLogoRequest(39))

    logs = manager.debug.get_component_logo_logs("Header")
    assert [log.fallback_used for log in logs] == [False, True]
    assert all(log.kind == "league" for log in logs)


def test_clear_cache_and_stats(monkeypatch, manager):
    _patch_head(monkeypatch)
    manager.get_league_logo("Header", LeagueLogoRequest(39))
    manager.get_country_flag("Flags", FlagRequest("Atlantis"))

    stats = manager.get_cache_stats()
    assert stats["total"] == 2
    assert stats["fallbacks"] == 1

    manager.clear_cache("flag")
    assert manager.get_cache_stats()["byKind"]["flag"]["size"] == 0
    assert manager.get_cache_stats()["byKind"]["league"]["size"] == 1

    manager.clear_cache()
    assert manager.get_cache_stats()["total"] == 0


def test_timeout_noise_filter(monkeypatch):
    forwarded = []
    monkeypatch.setattr(threading, "excepthook", lambda args: forwarded.append(args.exc_type))

    hook = install_timeout_noise_filter()
    assert install_timeout_noise_filter() is hook

    class _Args:
        def __init__(self, exc_type):
            self.exc_type = exc_type
            self.exc_value = None
            self.exc_traceback = None
            self.thread = None

    hook(_Args(requests.exceptions.ReadTimeout))
    hook(_Args(TimeoutError))
    hook(_Args(ValueError))

    assert forwarded == [ValueError]


def test_late_worker_failures_reach_the_noise_filter(monkeypatch, manager):
    forwarded = []
    delivered = threading.Event()

    def recorder(args):
        forwarded.append(args.exc_type)
        delivered.set()

    monkeypatch.setattr(threading, "excepthook", recorder)
    install_timeout_noise_filter()
    release = threading.Event()

    def hung_head(url, allow_redirects=True, timeout=5.0):
        release.wait(2)
        raise requests.exceptions.ConnectionError("reset")

    monkeypatch.setattr("cssport.logo_manager.requests.head", hung_head)
    response = manager.get_league_logo("Header", LeagueLogoRequest(31338))
    release.set()

    assert response.fallback_used is True
    assert delivered.wait(2)
    assert forwarded == [requests.exceptions.ConnectionError]


def test_late_timeouts_and_rejections_are_dropped(monkeypatch):
    forwarded = []
    monkeypatch.setattr(threading, "excepthook", lambda args: forwarded.append(args.exc_type))
    install_timeout_noise_filter()

    for exc in (requests.exceptions.ReadTimeout("slow"), ValidationFailed("HTTP 404")):
        future = Future()
        future.set_exception(exc)
        report_late_failure(future)

    cancelled = Future()
    cancelled.cancel()
    report_late_failure(cancelled)

    assert forwarded == []
