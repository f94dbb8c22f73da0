"""
Abstract base class for match data sources.
Defines the contract that every data source must implement.
"""
from __future__ import annotations

import abc
import time
from typing import Any

from shared.errors import FetchError, InvalidRequestError
from shared.models.domain import CompetitionRef, MatchDetail, Match, MatchQuery, TeamSquad
from shared.models.enums import DataSourceKind
from shared.utils.logging import get_logger

from ingest.normalization.normalizer import (
    normalize_competitions,
    normalize_match_detail,
    normalize_match_list,
    normalize_team_squad,
)

logger = get_logger(__name__)


class BaseDataSource(abc.ABC):
    """
    Abstract base class for match data sources.

    Subclasses return raw football-data.org shaped payloads; the base class
    validates inputs, normalizes responses and logs timing. Errors surface as
    FetchError subclasses and are never swallowed here.
    """

    def __init__(self, kind: DataSourceKind) -> None:
        self._kind = kind

    @property
    def kind(self) -> DataSourceKind:
        return self._kind

    @property
    def name(self) -> str:
        return self._kind.value

    async def start(self) -> None:
        """Acquire resources (HTTP clients). No-op by default."""

    async def close(self) -> None:
        """Release resources. No-op by default."""

    async def _timed(self, operation: str, coro: Any, **context: Any) -> Any:
        start = time.perf_counter()
        try:
            result = await coro
        except FetchError as exc:
            logger.warning(
                "data_source_fetch_failed",
                source=self.name,
                operation=operation,
                error_kind=exc.kind.value,
                error=str(exc),
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
                **context,
            )
            raise
        logger.debug(
            "data_source_fetch_ok",
            source=self.name,
            operation=operation,
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
            **context,
        )
        return result

    async def fetch_matches(self, query: MatchQuery) -> list[Match]:
        """Fetch a list of matches for the query (live, upcoming or a date range)."""
        if (query.date_from is None) != (query.date_to is None):
            raise InvalidRequestError("date_from and date_to must be given together")
        body = await self._timed("fetch_matches", self._fetch_matches_raw(query), query=query.cache_key)
        return normalize_match_list(body)

    async def fetch_match_detail(self, match_id: str) -> MatchDetail:
        """Fetch one match with its events and lineups."""
        if not match_id:
            raise InvalidRequestError("match_id is required")
        body = await self._timed("fetch_match_detail", self._fetch_match_raw(match_id), match_id=match_id)
        return normalize_match_detail(body)

    async def fetch_team_roster(self, team_id: str) -> TeamSquad:
        """Fetch a team's squad."""
        if not team_id:
            raise InvalidRequestError("team_id is required")
        body = await self._timed("fetch_team_roster", self._fetch_team_raw(team_id), team_id=team_id)
        return normalize_team_squad(body)

    async def fetch_competitions(self) -> list[CompetitionRef]:
        """Fetch every competition the source knows about."""
        body = await self._timed("fetch_competitions", self._fetch_competitions_raw())
        return normalize_competitions(body)

    # ── Abstract methods (each data source implements these) ───────────
    @abc.abstractmethod
    async def _fetch_matches_raw(self, query: MatchQuery) -> Any:
        """Return a ``{"matches": [...]}`` payload."""
        ...

    @abc.abstractmethod
    async def _fetch_match_raw(self, match_id: str) -> Any:
        """Return a single match payload, lineups unfolded."""
        ...

    @abc.abstractmethod
    async def _fetch_team_raw(self, team_id: str) -> Any:
        """Return a team payload with its squad."""
        ...

    @abc.abstractmethod
    async def _fetch_competitions_raw(self) -> Any:
        """Return a ``{"competitions": [...]}`` payload."""
        ...
