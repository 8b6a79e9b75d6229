from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from conftest import make_fixture
from cssport.errors import APIError
from cssport.services.fixture_cache import (
    FixtureCacheService,
    filter_fixtures,
    is_esports_fixture,
    max_cache_age,
    on_date,
)
from cssport.storage import FixtureCacheStore

NOW = datetime(2024, 5, 1, 12, 0, 0)
TODAY = "2024-05-01"
YESTERDAY = "2024-04-30"
TOMORROW = "2024-05-02"


class _Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def store(clock):
    s = FixtureCacheStore.from_url("sqlite:///:memory:", clock=clock)
    yield s
    s.close()


@pytest.fixture
def service(store, clock):
    return FixtureCacheService(store, clock=clock)


class _Fetch:
    def __init__(self, fixtures=None, exc=None):
        self.fixtures = fixtures or []
        self.exc = exc
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return list(self.fixtures)


def test_max_cache_age_is_date_relative():
    assert max_cache_age(YESTERDAY, TODAY) == 7 * 24 * 3600
    assert max_cache_age(TODAY, TODAY) == 2 * 3600
    assert max_cache_age(TOMORROW, TODAY) == 12 * 3600


def test_miss_fetches_and_persists(service, store):
    fetch = _Fetch([make_fixture(1, TODAY), make_fixture(2, TODAY)])

    result = service.get_bucket("39", TODAY, fetch)

    assert [f["fixture"]["id"] for f in result] == [1, 2]
    assert store.get_cached_fixture("39:1").league == "39"
    assert len(store.get_cached_fixtures_by_league("39", TODAY)) == 2


def test_today_bucket_refetched_after_two_hours(service, clock):
    fetch = _Fetch([make_fixture(1, TODAY)])
    service.get_bucket("39", TODAY, fetch)

    clock.now = NOW + timedelta(hours=1)
    service.get_bucket("39", TODAY, fetch)
    assert fetch.calls == 1

    clock.now = NOW + timedelta(hours=3)
    service.get_bucket("39", TODAY, fetch)
    assert fetch.calls == 2


def test_past_bucket_not_refetched_after_three_hours(service, clock):
    fetch = _Fetch([make_fixture(1, YESTERDAY)])
    service.get_bucket("39", YESTERDAY, fetch)

    clock.now = NOW + timedelta(hours=3)
    result = service.get_bucket("39", YESTERDAY, fetch)

    assert fetch.calls == 1
    assert result[0]["fixture"]["id"] == 1


def test_stale_refetch_overwrites_records(service, store, clock):
    service.get_bucket("39", TODAY, _Fetch([make_fixture(1, TODAY, status="NS")]))
    clock.now = NOW + timedelta(hours=3)

    service.get_bucket("39", TODAY, _Fetch([make_fixture(1, TODAY, status="FT")]))

    record = store.get_cached_fixture("39:1")
    assert record.data["fixture"]["status"]["short"] == "FT"
    assert record.timestamp == NOW + timedelta(hours=3)


def test_refetch_replaces_bucket_contents(service, store, clock):
    service.get_bucket("39", TODAY, _Fetch([make_fixture(1, TODAY), make_fixture(2, TODAY)]))
    clock.now = NOW + timedelta(hours=3)

    refreshed = service.get_bucket("39", TODAY, _Fetch([make_fixture(1, TODAY)]))
    clock.now = NOW + timedelta(hours=3, minutes=5)
    next_hit = service.get_bucket("39", TODAY, _Fetch(exc=AssertionError("should be a hit")))

    assert [f["fixture"]["id"] for f in refreshed] == [1]
    assert [f["fixture"]["id"] for f in next_hit] == [1]
    assert store.get_cached_fixture("39:2") is None


def test_replacing_a_bucket_leaves_other_dates_alone(service, store, clock):
    service.get_bucket("39", TOMORROW, _Fetch([make_fixture(7, TOMORROW)]))
    service.get_bucket("39", TODAY, _Fetch([make_fixture(1, TODAY)]))
    clock.now = NOW + timedelta(hours=3)

    service.get_bucket("39", TODAY, _Fetch([]))

    assert store.get_cached_fixtures_by_league("39", TODAY) == []
    assert store.get_cached_fixture("39:7") is not None


def test_upstream_failure_serves_stale(service, clock):
    service.get_bucket("39", TODAY, _Fetch([make_fixture(1, TODAY)]))
    clock.now = NOW + timedelta(hours=3)

    result = service.get_bucket("39", TODAY, _Fetch(exc=APIError("api-football", "X", "down")))

    assert [f["fixture"]["id"] for f in result] == [1]


def test_upstream_failure_without_cache_raises(service):
    with pytest.raises(APIError):
        service.get_bucket("39", TODAY, _Fetch(exc=APIError("api-football", "X", "down")))


def test_persistence_errors_are_skipped(service, store, monkeypatch, caplog):
    real_upsert = store.upsert_cached_fixture

    def flaky_upsert(fixture_id, league, date, data):
        if fixture_id.endswith(":2"):
            raise OperationalError("INSERT", {}, Exception("disk full"))
        return real_upsert(fixture_id, league, date, data)

    monkeypatch.setattr(store, "upsert_cached_fixture", flaky_upsert)
    fixtures = [make_fixture(1, TODAY), make_fixture(2, TODAY), make_fixture(3, TODAY)]

    with caplog.at_level("ERROR"):
        result = service.get_bucket("39", TODAY, _Fetch(fixtures))

    assert len(result) == 3
    assert store.get_cached_fixture("39:2") is None
    assert store.get_cached_fixture("39:3") is not None
    assert any("Error caching fixture 2" in m for m in caplog.messages)


def test_transform_applied_before_persist(service, store):
    fetch = _Fetch([make_fixture(1, TODAY), make_fixture(2, TOMORROW)])
    result = service.get_bucket("all", TODAY, fetch, lambda items: on_date(items, TODAY))
    assert [f["fixture"]["id"] for f in result] == [1]
    assert store.get_cached_fixture("all:2") is None


def test_live_fetch_and_outage_fallback(service):
    live = make_fixture(5, TODAY, status="2H")
    finished = make_fixture(6, TODAY, status="FT")
    assert service.get_live(_Fetch([live, finished])) == [live, finished]

    result = service.get_live(_Fetch(exc=APIError("api-football", "X", "down")))
    assert result == [live]


def test_finished_matches_leave_the_live_snapshot(service, clock):
    service.get_live(_Fetch([make_fixture(1, TODAY, status="2H")]))
    clock.now = NOW + timedelta(minutes=5)
    second_match = make_fixture(2, TODAY, status="1H")
    service.get_live(_Fetch([second_match]))

    clock.now = NOW + timedelta(minutes=6)
    result = service.get_live(_Fetch(exc=APIError("api-football", "X", "down")))

    assert result == [second_match]


def test_old_live_snapshot_is_not_served(service, clock):
    service.get_live(_Fetch([make_fixture(1, TODAY, status="2H")]))
    clock.now = NOW + timedelta(minutes=20)

    with pytest.raises(APIError):
        service.get_live(_Fetch(exc=APIError("api-football", "X", "down")))


def test_league_records_cached_for_a_day(service, clock):
    calls = []

    def fetch_league():
        calls.append(39)
        return {"league": {"id": 39, "name": "Premier League"}}

    assert service.get_league(39, fetch_league)["league"]["id"] == 39
    clock.now = NOW + timedelta(hours=23)
    service.get_league(39, fetch_league)
    assert len(calls) == 1

    clock.now = NOW + timedelta(hours=25)
    service.get_league(39, fetch_league)
    assert len(calls) == 2


# ---- filtering ----


def test_filter_drops_exactly_the_bad_entries():
    good = make_fixture(1)
    no_country = make_fixture(2, country=None)
    no_home = make_fixture(3)
    no_home["teams"]["home"]["name"] = None
    esports = make_fixture(4, league_name="Esoccer Battle - 8 mins play")

    result = filter_fixtures([good, no_country, no_home, esports])

    assert result == [good]


def test_filter_inclusion_flags_keep_entries():
    good = make_fixture(1)
    no_country = make_fixture(2, country="")
    esports = make_fixture(4, home="Arsenal (cyber)")
    no_home = make_fixture(3)
    del no_home["teams"]["home"]["name"]

    result = filter_fixtures(
        [good, no_country, esports, no_home], include_esports=True, include_invalid=True
    )

    assert result == [good, no_country, esports]


def test_international_tournaments_not_flagged_as_esports():
    world_cup = make_fixture(1, league_name="FIFA World Cup", country="World", home="Brazil", away="France")
    assert is_esports_fixture(world_cup) is False
    assert filter_fixtures([world_cup]) == [world_cup]


def test_custom_esports_terms():
    fixture = make_fixture(1, league_name="Simulated League")
    assert filter_fixtures([fixture], esports_terms=("simulated",)) == []
    assert filter_fixtures([fixture], esports_terms=("esoccer",)) == [fixture]
