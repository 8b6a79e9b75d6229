import pytest

from cssport.team_classifier import ClubTeam, NationalTeam, classify_team, is_national_team


@pytest.mark.parametrize(
    "name, league, country, reason",
    [
        ("England", None, None, "roster"),
        ("uruguay", None, None, "roster"),
        ("Brazil U20", None, None, "name-pattern"),
        ("Spain W", None, None, "name-pattern"),
        ("Some Select XI", None, "World", "international-country"),
        ("Kosovo", "UEFA Nations League", "Europe", "international-country"),
        ("Gibraltar", "World Cup - Qualification Europe", "Gibraltar", "international-competition"),
    ],
)
def test_national_teams(name, league, country, reason):
    result = classify_team(name, league, country)
    assert isinstance(result, NationalTeam)
    assert result.kind == "national"
    assert result.reason == reason


def test_club_team():
    result = classify_team("Arsenal", "Premier League", "England")
    assert isinstance(result, ClubTeam)
    assert result.kind == "club"
    assert is_national_team("Arsenal", "Premier League", "England") is False


def test_club_in_continental_club_competition():
    result = classify_team("Real Madrid", "UEFA Champions League", "World")
    assert isinstance(result, ClubTeam)


def test_empty_name_is_club():
    assert isinstance(classify_team(""), ClubTeam)
