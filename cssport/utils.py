"""
Utility functions for cssport
Date and fixture-field helpers shared by the server and the caches
"""

from datetime import date, datetime, timezone
from typing import Any, Optional


def today_iso(now: Optional[datetime] = None) -> str:
    """Return today's UTC date as YYYY-MM-DD."""
    current = now or datetime.now(timezone.utc)
    return current.astimezone(timezone.utc).strftime("%Y-%m-%d")


def season_for_date(value: str) -> int:
    """
    Return the API-Football season START YEAR for a YYYY-MM-DD date.

    European seasons start in July: Jan-Jun belong to the previous year's season.
    """
    parsed = date.fromisoformat(value)
    return parsed.year if parsed.month >= 7 else parsed.year - 1


def fixture_date(fixture: Any) -> Optional[str]:
    """Extract YYYY-MM-DD from an upstream fixture without timezone conversion."""
    raw = ((fixture or {}).get("fixture") or {}).get("date")
    if not isinstance(raw, str) or not raw:
        return None
    if "T" in raw:
        return raw.split("T")[0]
    return raw.split(" ")[0]


def fixture_id(fixture: Any) -> Optional[str]:
    value = ((fixture or {}).get("fixture") or {}).get("id")
    if value is None:
        return None
    return str(value)
