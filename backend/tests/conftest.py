"""
Shared fixtures for the live sync tests.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import pytest

from shared.config import Settings
from shared.models.domain import CompetitionRef, Match, TeamRef
from shared.models.enums import DataSourceKind, MatchStatus


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        data_source=DataSourceKind.MOCK,
        football_data_api_key="test-key",
        fetch_retry_base_delay_s=0.0,
        budget_max_wait_s=0.0,
        monitor_backoff_base_s=30.0,
        monitor_backoff_ceiling_s=300.0,
        cache_sweep_interval_s=300.0,
    )


@pytest.fixture
def make_match() -> Callable[..., Match]:
    def _make(
        match_id: str = "1001",
        status: MatchStatus = MatchStatus.IN_PROGRESS,
        kickoff_in_s: float = -1200.0,
        now: Optional[datetime] = None,
        **overrides: Any,
    ) -> Match:
        now = now or datetime.now(timezone.utc)
        fields: dict[str, Any] = {
            "id": match_id,
            "home_team": TeamRef(id="57", name="Arsenal FC", short_name="ARS"),
            "away_team": TeamRef(id="61", name="Chelsea FC", short_name="CHE"),
            "competition": CompetitionRef(id="2021", name="Premier League", code="PL"),
            "start_time": now + timedelta(seconds=kickoff_in_s),
            "status": status,
        }
        fields.update(overrides)
        return Match(**fields)

    return _make


def wire_match(
    match_id: int = 1001,
    status: str = "IN_PLAY",
    utc_date: str = "2026-10-19T15:00:00Z",
    **extra: Any,
) -> dict[str, Any]:
    """A football-data.org shaped match payload."""
    payload: dict[str, Any] = {
        "id": match_id,
        "utcDate": utc_date,
        "status": status,
        "competition": {"id": 2021, "name": "Premier League", "code": "PL"},
        "homeTeam": {"id": 57, "name": "Arsenal FC", "shortName": "Arsenal", "tla": "ARS"},
        "awayTeam": {"id": 61, "name": "Chelsea FC", "shortName": "Chelsea", "tla": "CHE"},
        "score": {"fullTime": {"home": 1, "away": 0}, "halfTime": {"home": 0, "away": 0}},
    }
    payload.update(extra)
    return payload


@pytest.fixture
def wire_match_factory() -> Callable[..., dict[str, Any]]:
    return wire_match
