"""
Fetch coordinator.
Every read of remote match data goes through here: cache first, then the
shared call budget, then the data source, then back into the cache.
Transient failures are retried with an escalating delay; each attempt
consumes a budget slot.
"""
from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar

from shared.config import Settings, get_settings
from shared.errors import FetchError, RateLimitedError
from shared.models.domain import (
    CompetitionRef,
    Lineup,
    Match,
    MatchDetail,
    MatchQuery,
    PlayerRef,
    TeamSquad,
    utcnow,
)
from shared.models.enums import CacheKind
from shared.utils.cache import ResultCache
from shared.utils.logging import get_logger
from shared.utils.metrics import FALLBACK_STRATEGIES, FETCH_RETRIES
from shared.utils.rate_limiter import CallBudgetTracker

from ingest.providers.base import BaseDataSource
from ingest.providers.football_data import LIVE_STATUSES, SUPPORTED_COMPETITIONS, UPCOMING_STATUSES

logger = get_logger(__name__)

T = TypeVar("T")


class FetchCoordinator:
    """
    One operation per query shape, all sharing one cache and one call budget.

    Operations raise a FetchError subclass once retries are exhausted, except
    ``find_relevant_matches`` which always returns a list.
    """

    def __init__(
        self,
        source: BaseDataSource,
        cache: ResultCache,
        budget: CallBudgetTracker,
        settings: Settings | None = None,
    ) -> None:
        self._source = source
        self._cache = cache
        self._budget = budget
        self._settings = settings or get_settings()

    @property
    def budget(self) -> CallBudgetTracker:
        return self._budget

    @property
    def cache(self) -> ResultCache:
        return self._cache

    # ── Request pipeline ────────────────────────────────────────────────

    def _retry_delay(self, attempt: int) -> float:
        return self._settings.fetch_retry_base_delay_s * attempt

    async def _acquire_budget(self, operation: str) -> None:
        ceiling = self._settings.budget_max_wait_s
        if not await self._budget.wait_for_slot(ceiling):
            wait = self._budget.time_until_next_slot()
            logger.warning("call_budget_exhausted", operation=operation, retry_after=round(wait, 2))
            raise RateLimitedError(retry_after=wait)

    async def _call(self, operation: str, request: Callable[[], Awaitable[T]]) -> T:
        """Run ``request`` under the call budget, retrying transient failures."""
        max_attempts = self._settings.fetch_max_attempts
        ceiling = self._settings.budget_max_wait_s
        attempt = 1
        while True:
            await self._acquire_budget(operation)
            try:
                return await request()
            except RateLimitedError as exc:
                delay = exc.retry_after if exc.retry_after is not None else self._retry_delay(attempt)
                if not exc.remote or attempt >= max_attempts or delay > ceiling:
                    raise
                FETCH_RETRIES.labels(operation=operation, kind=exc.kind.value).inc()
                logger.warning("fetch_rate_limited_retry", operation=operation, attempt=attempt, delay_s=delay)
            except FetchError as exc:
                if not exc.retryable or attempt >= max_attempts:
                    logger.error(
                        "fetch_failed",
                        operation=operation,
                        attempt=attempt,
                        error_kind=exc.kind.value,
                        error=str(exc),
                    )
                    raise
                delay = self._retry_delay(attempt)
                FETCH_RETRIES.labels(operation=operation, kind=exc.kind.value).inc()
                logger.warning(
                    "fetch_retry",
                    operation=operation,
                    attempt=attempt,
                    error_kind=exc.kind.value,
                    delay_s=delay,
                )
            await asyncio.sleep(delay)
            attempt += 1

    # ── Match lists ─────────────────────────────────────────────────────

    async def _fetch_list(self, operation: str, query: MatchQuery) -> list[Match]:
        cached = self._cache.get(CacheKind.MATCH_LIST, query.cache_key)
        if cached is not None:
            return cached
        matches = await self._call(operation, lambda: self._source.fetch_matches(query))
        self._cache.put(CacheKind.MATCH_LIST, query.cache_key, matches)
        for match in matches:
            self._cache.put(CacheKind.MATCH, match.id, match, status=match.status)
        logger.info("matches_fetched", operation=operation, count=len(matches))
        return matches

    async def fetch_live(self, competition: Optional[str] = None) -> list[Match]:
        return await self._fetch_list("fetch_live", MatchQuery(statuses=LIVE_STATUSES, competition=competition))

    async def fetch_upcoming(self, competition: Optional[str] = None) -> list[Match]:
        return await self._fetch_list(
            "fetch_upcoming", MatchQuery(statuses=UPCOMING_STATUSES, competition=competition)
        )

    async def fetch_today(self) -> list[Match]:
        today = utcnow().date().isoformat()
        return await self._fetch_list("fetch_today", MatchQuery(date_from=today, date_to=today))

    async def fetch_date_range(self, days: Optional[int] = None) -> list[Match]:
        """Matches from today through ``days`` days ahead (UTC dates)."""
        span = self._settings.date_range_days if days is None else days
        today = utcnow().date()
        query = MatchQuery(
            date_from=today.isoformat(),
            date_to=(today + timedelta(days=span)).isoformat(),
        )
        return await self._fetch_list("fetch_date_range", query)

    # ── Single matches ──────────────────────────────────────────────────

    async def fetch_match_detail(self, match_id: str, max_age: Optional[float] = None) -> MatchDetail:
        """
        Match snapshot with events and lineups.

        ``max_age`` bounds how old a cached detail may be; live monitors pass
        their polling interval so they never re-read their own last poll.
        """
        cached = self._cache.get(CacheKind.MATCH_DETAIL, match_id, max_age=max_age)
        if cached is not None:
            return cached
        detail = await self._call(
            "fetch_match_detail", lambda: self._source.fetch_match_detail(match_id)
        )
        self._cache.put(CacheKind.MATCH_DETAIL, match_id, detail, status=detail.match.status)
        self._cache.put(CacheKind.MATCH, match_id, detail.match, status=detail.match.status)
        return detail

    async def fetch_events(self, match_id: str, max_age: Optional[float] = None) -> MatchDetail:
        """Current snapshot plus every event recorded so far."""
        return await self.fetch_match_detail(match_id, max_age=max_age)

    async def fetch_match(self, match_id: str) -> Match:
        cached = self._cache.get(CacheKind.MATCH, match_id)
        if cached is not None:
            return cached
        detail = await self.fetch_match_detail(match_id)
        return detail.match

    # ── Rosters and lineups ─────────────────────────────────────────────

    async def fetch_roster(self, team_id: str) -> TeamSquad:
        key = f"team:{team_id}"
        cached = self._cache.get(CacheKind.ROSTER, key)
        if cached is not None:
            return cached
        squad = await self._call("fetch_roster", lambda: self._source.fetch_team_roster(team_id))
        self._cache.put(CacheKind.ROSTER, key, squad)
        return squad

    async def fetch_lineup(self, match_id: str) -> Optional[Lineup]:
        """Both teams' lineups, or None while they have not been published."""
        cached = self._cache.get(CacheKind.LINEUP, match_id)
        if cached is not None:
            return cached
        detail = await self.fetch_match_detail(match_id)
        lineup = detail.lineup
        if lineup is None:
            logger.info("lineup_not_available", match_id=match_id)
            return None
        self._cache.put(CacheKind.LINEUP, match_id, lineup)
        return lineup

    async def fetch_match_players(self, match_id: str) -> list[PlayerRef]:
        """
        Every player who may appear in the match.

        Uses the published lineups when both are present, otherwise the two
        team squads.
        """
        key = f"match:{match_id}"
        cached = self._cache.get(CacheKind.ROSTER, key)
        if cached is not None:
            return cached

        lineup = await self.fetch_lineup(match_id)
        if lineup is not None:
            players = [*lineup.home.players, *lineup.away.players]
        else:
            match = await self.fetch_match(match_id)
            home = await self.fetch_roster(match.home_team.id)
            away = await self.fetch_roster(match.away_team.id)
            players = [*home.players, *away.players]

        self._cache.put(CacheKind.ROSTER, key, players)
        logger.info("match_players_fetched", match_id=match_id, count=len(players), from_lineup=lineup is not None)
        return players

    # ── Competitions ────────────────────────────────────────────────────

    async def fetch_competitions(self) -> list[CompetitionRef]:
        """Supported competitions, in the order the source lists them."""
        cached = self._cache.get(CacheKind.COMPETITIONS, "all")
        if cached is not None:
            return cached
        competitions = await self._call("fetch_competitions", self._source.fetch_competitions)
        supported = [c for c in competitions if c.code in SUPPORTED_COMPETITIONS]
        self._cache.put(CacheKind.COMPETITIONS, "all", supported)
        logger.info("competitions_fetched", total=len(competitions), supported=len(supported))
        return supported

    # ── Fallback chain ──────────────────────────────────────────────────

    async def find_relevant_matches(self, competition: Optional[str] = None) -> list[Match]:
        """
        Live matches, else upcoming ones, else anything in the date range.

        A failing strategy counts as empty. Never raises.
        """
        strategies: list[tuple[str, Callable[[], Awaitable[list[Match]]]]] = [
            ("live", lambda: self.fetch_live(competition)),
            ("upcoming", lambda: self.fetch_upcoming(competition)),
            ("date_range", lambda: self.fetch_date_range()),
        ]
        for name, strategy in strategies:
            try:
                matches = await strategy()
            except Exception as exc:
                FALLBACK_STRATEGIES.labels(strategy=name, outcome="error").inc()
                logger.warning(
                    "fallback_strategy_failed",
                    strategy=name,
                    error_kind=exc.kind.value if isinstance(exc, FetchError) else type(exc).__name__,
                    error=str(exc),
                )
                continue
            if matches:
                FALLBACK_STRATEGIES.labels(strategy=name, outcome="hit").inc()
                logger.info("fallback_strategy_hit", strategy=name, count=len(matches))
                return matches
            FALLBACK_STRATEGIES.labels(strategy=name, outcome="empty").inc()

        logger.info("no_relevant_matches", competition=competition)
        return []

    def describe(self) -> dict[str, Any]:
        usage = self._budget.usage()
        return {
            "source": self._source.name,
            "budget": usage.model_dump(),
            "cache": self._cache.stats().model_dump(),
        }
