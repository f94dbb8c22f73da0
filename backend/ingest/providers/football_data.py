"""
Football-Data.org (football-data.org) data source.
Uses the v4 API with X-Auth-Token. Free tier allows a handful of calls per minute,
which the shared call budget enforces upstream.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from shared.config import Settings, get_settings
from shared.models.domain import MatchQuery
from shared.models.enums import DataSourceKind
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.providers.base import BaseDataSource

logger = get_logger(__name__)

LIVE_STATUSES = ("LIVE", "IN_PLAY")
UPCOMING_STATUSES = ("SCHEDULED", "TIMED")

# Competitions covered by the free tier.
SUPPORTED_COMPETITIONS = ("PL", "BL1", "SA", "PD", "CL", "EL")


def build_match_params(query: MatchQuery) -> dict[str, str]:
    """Query-string parameters for GET /matches."""
    params: dict[str, str] = {}
    if query.statuses:
        params["status"] = ",".join(query.statuses)
    if query.competition:
        params["competitions"] = query.competition
    if query.date_from and query.date_to:
        params["dateFrom"] = query.date_from
        params["dateTo"] = query.date_to
    return params


class FootballDataSource(BaseDataSource):
    """Football-Data.org v4 API."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(DataSourceKind.FOOTBALL_DATA)
        settings = settings or get_settings()
        headers: dict[str, str] = {"Accept": "application/json"}
        if settings.football_data_api_key:
            headers["X-Auth-Token"] = settings.football_data_api_key
        else:
            logger.warning("football_data_api_key_missing")
        self._http = ProviderHTTPClient(
            provider_name=self.name,
            base_url=settings.football_data_base_url,
            headers=headers,
            timeout_s=settings.request_timeout_s,
            transport=transport,
        )

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def _fetch_matches_raw(self, query: MatchQuery) -> Any:
        return await self._http.get_json("/matches", params=build_match_params(query), endpoint="matches")

    async def _fetch_match_raw(self, match_id: str) -> Any:
        return await self._http.get_json(
            f"/matches/{match_id}",
            extra_headers={"X-Unfold-Lineups": "true"},
            endpoint="match",
        )

    async def _fetch_team_raw(self, team_id: str) -> Any:
        return await self._http.get_json(f"/teams/{team_id}", endpoint="team")

    async def _fetch_competitions_raw(self) -> Any:
        return await self._http.get_json("/competitions", endpoint="competitions")
