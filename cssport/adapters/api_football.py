from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .. import settings
from ..config import API_BACKOFF_FACTOR, API_MAX_RETRIES, API_TIMEOUT
from ..errors import APIError
from ..net_retry import fetch_json
from ..utils import season_for_date

log = logging.getLogger(__name__)

SOURCE = "api-football"


class ApiFootballAdapter:
    """Thin client for the API-Football v3 endpoints the fixture cache needs.

    Every method returns the ``response`` array (or item) of the upstream
    envelope and raises :class:`APIError` on any failure.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        host: Optional[str] = None,
        timeout: float = API_TIMEOUT,
        retries: int = API_MAX_RETRIES,
        backoff_factor: float = API_BACKOFF_FACTOR,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.RAPID_API_KEY
        self.base_url = (base_url or settings.API_FOOTBALL_BASE).rstrip("/")
        self.host = host or settings.API_FOOTBALL_HOST
        self.timeout = timeout
        self.retries = retries
        self.backoff_factor = backoff_factor

    def _headers(self) -> Dict[str, str]:
        return {
            "X-RapidAPI-Key": self.api_key or "",
            "X-RapidAPI-Host": self.host,
            "Accept": "application/json",
        }

    def _get(self, path: str, params: Dict[str, Any]) -> List[Any]:
        if not self.api_key:
            raise APIError(SOURCE, "MISSING_API_KEY", "RAPID_API_KEY is not configured", status=503)

        payload = fetch_json(
            f"{self.base_url}/{path.lstrip('/')}",
            source=SOURCE,
            retries=self.retries,
            backoff_factor=self.backoff_factor,
            timeout=self.timeout,
            logger=log,
            headers=self._headers(),
            params=params,
        )

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            raise APIError(SOURCE, "UPSTREAM_ERROR", f"Upstream rejected {path}", details=str(errors), status=502)

        items = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            log.warning("%s %s returned no response array", SOURCE, path)
            return []
        return items

    def get_fixtures_by_date(self, date: str) -> List[dict]:
        return self._get("fixtures", {"date": date})

    def get_live_fixtures(self) -> List[dict]:
        return self._get("fixtures", {"live": "all"})

    def get_fixtures_by_league(self, league_id: int, date: str) -> List[dict]:
        return self._get(
            "fixtures",
            {"league": league_id, "season": season_for_date(date), "date": date},
        )

    def get_league(self, league_id: int) -> Optional[dict]:
        items = self._get("leagues", {"id": league_id})
        return items[0] if items else None
