import pytest

from cssport.app import create_app
from cssport.composition.providers import build_services
from cssport.storage import FixtureCacheStore


class FakeUpstream:
    """Stand-in for ApiFootballAdapter with canned payloads and call counts."""

    def __init__(self):
        self.by_date = {}
        self.by_league = {}
        self.leagues = {}
        self.live = []
        self.error = None
        self.calls = []

    def _maybe_fail(self, name, *args):
        self.calls.append((name, *args))
        if self.error is not None:
            raise self.error

    def get_fixtures_by_date(self, date):
        self._maybe_fail("date", date)
        return list(self.by_date.get(date, []))

    def get_live_fixtures(self):
        self._maybe_fail("live")
        return list(self.live)

    def get_fixtures_by_league(self, league_id, date):
        self._maybe_fail("league_fixtures", league_id, date)
        return list(self.by_league.get((league_id, date), []))

    def get_league(self, league_id):
        self._maybe_fail("league", league_id)
        return self.leagues.get(league_id)


def make_fixture(fid, date="2024-05-01", league_id=39, league_name="Premier League",
                 country="England", home="Arsenal", away="Chelsea", status="NS"):
    return {
        "fixture": {"id": fid, "date": f"{date}T15:00:00+00:00", "status": {"short": status}},
        "league": {"id": league_id, "name": league_name, "country": country},
        "teams": {"home": {"id": fid * 10, "name": home}, "away": {"id": fid * 10 + 1, "name": away}},
    }


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def services(upstream):
    store = FixtureCacheStore.from_url("sqlite:///:memory:")
    built = build_services(
        api_base="http://testserver",
        upstream=upstream,
        background_cleanup=False,
        store=store,
    )
    yield built
    built.close()


@pytest.fixture
def client(services):
    app = create_app(services=services)
    app.testing = True
    with app.test_client() as client:
        yield client
