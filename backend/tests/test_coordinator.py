"""
Unit tests for the fetch coordinator: caching, call budget, retries and
the relevant-matches fallback chain.

Run: pytest backend/tests/test_coordinator.py -v
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.errors import DecodingError, NetworkError, RateLimitedError, ServerError
from shared.models.domain import (
    CompetitionRef,
    MatchDetail,
    PlayerRef,
    TeamLineup,
    TeamRef,
    TeamSquad,
)
from shared.models.enums import CacheKind, MatchStatus
from shared.utils.cache import ResultCache
from shared.utils.rate_limiter import CallBudgetTracker
from ingest.service import FetchCoordinator


@pytest.fixture
def source() -> MagicMock:
    s = MagicMock()
    s.name = "fake"
    s.fetch_matches = AsyncMock(return_value=[])
    s.fetch_match_detail = AsyncMock()
    s.fetch_team_roster = AsyncMock()
    s.fetch_competitions = AsyncMock(return_value=[])
    return s


@pytest.fixture
def budget(clock) -> CallBudgetTracker:
    return CallBudgetTracker(max_calls=25, window_s=60.0, clock=clock)


@pytest.fixture
def coordinator(source, budget, clock, settings) -> FetchCoordinator:
    return FetchCoordinator(source, ResultCache(clock=clock), budget, settings)


# ── Caching ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_live_list_is_cached_and_matches_cached_individually(coordinator, source, budget, make_match) -> None:
    live = make_match(match_id="1")
    source.fetch_matches.return_value = [live]

    assert await coordinator.fetch_live() == [live]
    assert await coordinator.fetch_live() == [live]

    assert source.fetch_matches.await_count == 1
    assert budget.usage().current == 1
    assert coordinator.cache.get(CacheKind.MATCH, "1") == live
    assert await coordinator.fetch_match("1") == live
    source.fetch_match_detail.assert_not_awaited()


@pytest.mark.asyncio
async def test_live_and_upcoming_use_distinct_queries(coordinator, source) -> None:
    await coordinator.fetch_live("PL")
    await coordinator.fetch_upcoming("PL")
    queries = [call.args[0] for call in source.fetch_matches.await_args_list]
    assert queries[0].statuses == ("LIVE", "IN_PLAY")
    assert queries[1].statuses == ("SCHEDULED", "TIMED")
    assert all(q.competition == "PL" for q in queries)


@pytest.mark.asyncio
async def test_date_range_spans_configured_days(coordinator, source) -> None:
    await coordinator.fetch_date_range(days=7)
    query = source.fetch_matches.await_args.args[0]
    assert query.date_from is not None and query.date_to is not None
    assert query.date_from < query.date_to


@pytest.mark.asyncio
async def test_detail_respects_max_age(coordinator, source, clock, make_match) -> None:
    detail = MatchDetail(match=make_match(status=MatchStatus.UPCOMING))
    source.fetch_match_detail.return_value = detail

    await coordinator.fetch_match_detail("1001")
    clock.advance(30)
    await coordinator.fetch_match_detail("1001", max_age=60)
    assert source.fetch_match_detail.await_count == 1

    clock.advance(40)
    await coordinator.fetch_match_detail("1001", max_age=60)
    assert source.fetch_match_detail.await_count == 2


# ── Budget ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_exhausted_budget_raises_rate_limited(source, clock, settings) -> None:
    budget = CallBudgetTracker(max_calls=1, window_s=60.0, clock=clock)
    coordinator = FetchCoordinator(source, ResultCache(clock=clock), budget, settings)
    await coordinator.fetch_live()
    with pytest.raises(RateLimitedError) as exc_info:
        await coordinator.fetch_upcoming()
    assert exc_info.value.remote is False
    assert exc_info.value.retry_after == pytest.approx(60.0)
    assert source.fetch_matches.await_count == 1


# ── Retries ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_transient_errors_are_retried(coordinator, source, budget, make_match) -> None:
    detail = MatchDetail(match=make_match())
    source.fetch_match_detail.side_effect = [NetworkError("reset"), ServerError(502, "bad gateway"), detail]

    assert await coordinator.fetch_match_detail("1001") == detail
    assert source.fetch_match_detail.await_count == 3
    assert budget.usage().current == 3


@pytest.mark.asyncio
async def test_retries_stop_after_max_attempts(coordinator, source) -> None:
    source.fetch_match_detail.side_effect = NetworkError("down")
    with pytest.raises(NetworkError):
        await coordinator.fetch_match_detail("1001")
    assert source.fetch_match_detail.await_count == 3


@pytest.mark.asyncio
async def test_non_retryable_errors_fail_fast(coordinator, source) -> None:
    source.fetch_match_detail.side_effect = ServerError(404, "not found")
    with pytest.raises(ServerError):
        await coordinator.fetch_match_detail("1001")
    assert source.fetch_match_detail.await_count == 1

    source.fetch_match_detail.side_effect = DecodingError("garbage")
    with pytest.raises(DecodingError):
        await coordinator.fetch_match_detail("1002")
    assert source.fetch_match_detail.await_count == 2


@pytest.mark.asyncio
async def test_remote_429_waits_retry_after_then_retries(coordinator, source, make_match, settings) -> None:
    settings.budget_max_wait_s = 5.0
    detail = MatchDetail(match=make_match())
    source.fetch_match_detail.side_effect = [RateLimitedError(retry_after=0.0, remote=True), detail]
    assert await coordinator.fetch_match_detail("1001") == detail


@pytest.mark.asyncio
async def test_remote_429_beyond_ceiling_is_raised(coordinator, source) -> None:
    source.fetch_match_detail.side_effect = RateLimitedError(retry_after=3600.0, remote=True)
    with pytest.raises(RateLimitedError):
        await coordinator.fetch_match_detail("1001")
    assert source.fetch_match_detail.await_count == 1


# ── Fallback chain ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fallback_prefers_live(coordinator, source, make_match) -> None:
    live = [make_match(match_id="1")]
    source.fetch_matches.side_effect = [live]
    assert await coordinator.find_relevant_matches() == live
    assert source.fetch_matches.await_count == 1


@pytest.mark.asyncio
async def test_fallback_skips_failing_and_empty_strategies(coordinator, source, make_match) -> None:
    upcoming = [make_match(match_id="2", status=MatchStatus.UPCOMING, kickoff_in_s=3600)]
    source.fetch_matches.side_effect = [NetworkError("down")] * 3 + [upcoming]
    assert await coordinator.find_relevant_matches() == upcoming


@pytest.mark.asyncio
async def test_fallback_reaches_date_range(coordinator, source, make_match) -> None:
    later = [make_match(match_id="3", status=MatchStatus.UPCOMING, kickoff_in_s=86400 * 3)]
    source.fetch_matches.side_effect = [[], [], later]
    assert await coordinator.find_relevant_matches() == later

    assert source.fetch_matches.await_count == 3
    live_q, upcoming_q, range_q = (c.args[0] for c in source.fetch_matches.await_args_list)
    assert live_q.statuses == ("LIVE", "IN_PLAY")
    assert upcoming_q.statuses == ("SCHEDULED", "TIMED")
    assert range_q.statuses == ()
    assert range_q.date_from is not None
    assert range_q.date_to is not None
    assert range_q.date_from <= range_q.date_to


@pytest.mark.asyncio
async def test_fallback_never_raises(coordinator, source) -> None:
    source.fetch_matches.side_effect = ServerError(500, "boom")
    assert await coordinator.find_relevant_matches() == []


# ── Rosters and lineups ─────────────────────────────────────────────────

def _players(team_id: str, *names: str) -> list[PlayerRef]:
    return [PlayerRef(id=f"{team_id}-{i}", name=n, team_id=team_id) for i, n in enumerate(names)]


@pytest.mark.asyncio
async def test_match_players_from_lineups(coordinator, source, make_match) -> None:
    match = make_match()
    detail = MatchDetail(
        match=match,
        home_lineup=TeamLineup(team=match.home_team, starting_xi=_players("57", "Saka")),
        away_lineup=TeamLineup(team=match.away_team, substitutes=_players("61", "Palmer")),
    )
    source.fetch_match_detail.return_value = detail

    players = await coordinator.fetch_match_players(match.id)
    assert [p.name for p in players] == ["Saka", "Palmer"]
    assert await coordinator.fetch_lineup(match.id) is not None
    source.fetch_team_roster.assert_not_awaited()
    assert source.fetch_match_detail.await_count == 1


@pytest.mark.asyncio
async def test_match_players_fall_back_to_squads(coordinator, source, make_match) -> None:
    match = make_match()
    source.fetch_match_detail.return_value = MatchDetail(match=match)
    source.fetch_team_roster.side_effect = _squad

    players = await coordinator.fetch_match_players(match.id)
    assert {p.team_id for p in players} == {"57", "61"}
    assert await coordinator.fetch_lineup(match.id) is None
    assert coordinator.cache.get(CacheKind.ROSTER, "team:57") is not None


async def _squad(team_id: str) -> TeamSquad:
    return TeamSquad(team=TeamRef(id=team_id, name=f"Team {team_id}"), players=_players(team_id, "A", "B"))


@pytest.mark.asyncio
async def test_roster_is_cached(coordinator, source) -> None:
    source.fetch_team_roster.side_effect = _squad
    first = await coordinator.fetch_roster("57")
    second = await coordinator.fetch_roster("57")
    assert first == second
    assert source.fetch_team_roster.await_count == 1


# ── Competitions ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_competitions_are_filtered_and_cached_for_a_day(coordinator, source, clock) -> None:
    source.fetch_competitions.return_value = [
        CompetitionRef(id="2021", name="Premier League", code="PL"),
        CompetitionRef(id="2013", name="Campeonato Brasileiro Serie A", code="BSA"),
        CompetitionRef(id="2001", name="UEFA Champions League", code="CL"),
    ]
    first = await coordinator.fetch_competitions()
    assert [c.code for c in first] == ["PL", "CL"]

    clock.advance(86399)
    assert await coordinator.fetch_competitions() == first
    assert source.fetch_competitions.await_count == 1

    clock.advance(1)
    await coordinator.fetch_competitions()
    assert source.fetch_competitions.await_count == 2
