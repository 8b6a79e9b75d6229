"""National-team vs club classification from a static roster and name patterns."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .constants import (
    CLUB_COMPETITION_MARKERS,
    COUNTRY_CODES,
    EXTRA_NATIONAL_TEAMS,
    INTERNATIONAL_COMPETITION_MARKERS,
    INTERNATIONAL_COUNTRIES,
    NATIONAL_NAME_MARKERS,
)

_NATIONAL_ROSTER = frozenset(
    name.lower() for name in (*COUNTRY_CODES.keys(), *EXTRA_NATIONAL_TEAMS)
)


@dataclass(frozen=True)
class NationalTeam:
    name: str
    reason: str
    kind: str = "national"


@dataclass(frozen=True)
class ClubTeam:
    name: str
    kind: str = "club"


TeamKind = Union[NationalTeam, ClubTeam]


def _national_reason(
    name: str, league_name: Optional[str], country: Optional[str]
) -> Optional[str]:
    lowered = (name or "").strip().lower()
    if lowered in _NATIONAL_ROSTER:
        return "roster"
    if any(marker in lowered for marker in NATIONAL_NAME_MARKERS) or lowered.endswith(" w"):
        return "name-pattern"
    league = (league_name or "").lower()
    if any(marker in league for marker in CLUB_COMPETITION_MARKERS):
        return None
    if country and country.strip().lower() in INTERNATIONAL_COUNTRIES:
        return "international-country"
    if league and any(marker in league for marker in INTERNATIONAL_COMPETITION_MARKERS):
        return "international-competition"
    return None


def classify_team(
    name: str, league_name: Optional[str] = None, country: Optional[str] = None
) -> TeamKind:
    reason = _national_reason(name, league_name, country)
    if reason:
        return NationalTeam(name=name, reason=reason)
    return ClubTeam(name=name)


def is_national_team(
    name: str, league_name: Optional[str] = None, country: Optional[str] = None
) -> bool:
    return isinstance(classify_team(name, league_name, country), NationalTeam)
