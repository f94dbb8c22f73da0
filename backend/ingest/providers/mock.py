"""
Mock data source for demos and offline development.

Serves football-data.org shaped payloads for a small set of fixtures. Every
detail fetch of a live fixture advances its simulated clock, occasionally
adding a goal or booking, so live monitors have something to report.
Output is deterministic for a given seed.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.errors import ServerError
from shared.models.domain import MatchQuery
from shared.models.enums import DataSourceKind
from shared.utils.logging import get_logger

from ingest.providers.base import BaseDataSource

logger = get_logger(__name__)

COMPETITION = {"id": 2021, "name": "Premier League", "code": "PL"}

COMPETITIONS: list[dict[str, Any]] = [
    COMPETITION,
    {"id": 2002, "name": "Bundesliga", "code": "BL1"},
    {"id": 2001, "name": "UEFA Champions League", "code": "CL"},
    {"id": 2013, "name": "Campeonato Brasileiro Serie A", "code": "BSA"},
]

TEAMS: list[dict[str, Any]] = [
    {"id": 57, "name": "Arsenal FC", "shortName": "Arsenal", "tla": "ARS"},
    {"id": 61, "name": "Chelsea FC", "shortName": "Chelsea", "tla": "CHE"},
    {"id": 64, "name": "Liverpool FC", "shortName": "Liverpool", "tla": "LIV"},
    {"id": 65, "name": "Manchester City FC", "shortName": "Man City", "tla": "MCI"},
    {"id": 66, "name": "Manchester United FC", "shortName": "Man United", "tla": "MUN"},
    {"id": 73, "name": "Tottenham Hotspur FC", "shortName": "Tottenham", "tla": "TOT"},
]

POSITIONS = ["Goalkeeper"] + ["Defence"] * 6 + ["Midfield"] * 6 + ["Offence"] * 5

MINUTES_PER_FETCH = 5
GOAL_CHANCE = 0.18
BOOKING_CHANCE = 0.15


@dataclass
class _Fixture:
    id: int
    home: dict[str, Any]
    away: dict[str, Any]
    kickoff: datetime
    status: str
    minute: int = 0
    goals: list[dict[str, Any]] = field(default_factory=list)
    bookings: list[dict[str, Any]] = field(default_factory=list)

    def score(self) -> dict[str, Optional[int]]:
        if self.status in ("SCHEDULED", "TIMED"):
            return {"home": None, "away": None}
        home = sum(1 for g in self.goals if g["team"]["id"] == self.home["id"])
        return {"home": home, "away": len(self.goals) - home}


class MockDataSource(BaseDataSource):
    """Seeded, in-memory stand-in for the football-data.org API."""

    def __init__(self, settings: Settings | None = None, now: Optional[datetime] = None) -> None:
        super().__init__(DataSourceKind.MOCK)
        settings = settings or get_settings()
        self._rng = random.Random(settings.mock_seed)
        self._squads = {team["id"]: self._make_squad(team) for team in TEAMS}
        self._fixtures = self._make_fixtures(now or datetime.now(timezone.utc))
        logger.info("mock_data_source_ready", fixtures=len(self._fixtures), seed=settings.mock_seed)

    # ── Setup ───────────────────────────────────────────────────────────
    def _make_squad(self, team: dict[str, Any]) -> list[dict[str, Any]]:
        return [
            {
                "id": team["id"] * 100 + number,
                "name": f"{team['shortName']} Player {number}",
                "position": position,
                "shirtNumber": number,
            }
            for number, position in enumerate(POSITIONS, start=1)
        ]

    def _make_fixtures(self, now: datetime) -> dict[int, _Fixture]:
        specs = [
            (TEAMS[0], TEAMS[1], now - timedelta(minutes=20), "IN_PLAY", 20),
            (TEAMS[2], TEAMS[3], now + timedelta(minutes=3), "TIMED", 0),
            (TEAMS[4], TEAMS[5], now + timedelta(days=2), "SCHEDULED", 0),
        ]
        fixtures: dict[int, _Fixture] = {}
        for offset, (home, away, kickoff, status, minute) in enumerate(specs, start=1):
            fixture = _Fixture(
                id=900000 + offset,
                home=home,
                away=away,
                kickoff=kickoff.replace(second=0, microsecond=0),
                status=status,
                minute=minute,
            )
            fixtures[fixture.id] = fixture
        return fixtures

    # ── Simulation ──────────────────────────────────────────────────────
    def _advance(self, fixture: _Fixture) -> None:
        if fixture.status in ("SCHEDULED", "TIMED"):
            if datetime.now(timezone.utc) >= fixture.kickoff:
                fixture.status = "IN_PLAY"
            return
        if fixture.status not in ("IN_PLAY", "PAUSED"):
            return
        fixture.minute = min(90, fixture.minute + MINUTES_PER_FETCH)
        fixture.status = "PAUSED" if fixture.minute == 45 else "IN_PLAY"
        if self._rng.random() < GOAL_CHANCE:
            fixture.goals.append(self._random_goal(fixture))
        if self._rng.random() < BOOKING_CHANCE:
            fixture.bookings.append(self._random_booking(fixture))
        if fixture.minute >= 90:
            fixture.status = "FINISHED"

    def _pick(self, fixture: _Fixture) -> tuple[dict[str, Any], dict[str, Any]]:
        team = fixture.home if self._rng.random() < 0.5 else fixture.away
        return team, self._rng.choice(self._squads[team["id"]][1:11])

    def _random_goal(self, fixture: _Fixture) -> dict[str, Any]:
        team, scorer = self._pick(fixture)
        assist = self._rng.choice(self._squads[team["id"]][1:11])
        goal: dict[str, Any] = {
            "minute": fixture.minute,
            "type": "PENALTY" if self._rng.random() < 0.1 else "REGULAR",
            "team": {"id": team["id"], "name": team["name"]},
            "scorer": {"id": scorer["id"], "name": scorer["name"]},
            "assist": None,
        }
        if assist["id"] != scorer["id"] and goal["type"] == "REGULAR":
            goal["assist"] = {"id": assist["id"], "name": assist["name"]}
        return goal

    def _random_booking(self, fixture: _Fixture) -> dict[str, Any]:
        team, player = self._pick(fixture)
        return {
            "minute": fixture.minute,
            "team": {"id": team["id"], "name": team["name"]},
            "player": {"id": player["id"], "name": player["name"]},
            "card": "RED" if self._rng.random() < 0.1 else "YELLOW",
        }

    # ── Payloads ────────────────────────────────────────────────────────
    def _team_payload(self, team: dict[str, Any], lineup: bool) -> dict[str, Any]:
        payload = dict(team)
        if lineup:
            squad = self._squads[team["id"]]
            payload["formation"] = "4-3-3"
            payload["lineup"] = squad[:11]
            payload["bench"] = squad[11:]
            payload["coach"] = {"id": team["id"] * 10, "name": f"{team['shortName']} Coach"}
        return payload

    def _match_payload(self, fixture: _Fixture, detail: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": fixture.id,
            "utcDate": fixture.kickoff.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "status": fixture.status,
            "minute": fixture.minute or None,
            "competition": COMPETITION,
            "homeTeam": self._team_payload(fixture.home, lineup=detail),
            "awayTeam": self._team_payload(fixture.away, lineup=detail),
            "score": {"fullTime": fixture.score()},
        }
        if detail:
            payload.update({
                "venue": "Mock Stadium",
                "attendance": 50000,
                "referees": [{"id": 1, "name": "Test Referee", "type": "REFEREE"}],
                "goals": list(fixture.goals),
                "bookings": list(fixture.bookings),
                "substitutions": [],
            })
        return payload

    def _matches(self, query: MatchQuery) -> list[_Fixture]:
        selected = list(self._fixtures.values())
        if query.statuses:
            selected = [f for f in selected if f.status in query.statuses]
        if query.competition and query.competition != COMPETITION["code"]:
            return []
        if query.date_from and query.date_to:
            selected = [
                f for f in selected
                if query.date_from <= f.kickoff.date().isoformat() <= query.date_to
            ]
        return selected

    async def _fetch_matches_raw(self, query: MatchQuery) -> Any:
        matches = [self._match_payload(f) for f in self._matches(query)]
        return {"count": len(matches), "matches": matches}

    async def _fetch_match_raw(self, match_id: str) -> Any:
        fixture = self._fixtures.get(int(match_id)) if match_id.isdigit() else None
        if fixture is None:
            raise ServerError(404, f"Match {match_id} not found")
        self._advance(fixture)
        return self._match_payload(fixture, detail=True)

    async def _fetch_team_raw(self, team_id: str) -> Any:
        team = next((t for t in TEAMS if str(t["id"]) == team_id), None)
        if team is None:
            raise ServerError(404, f"Team {team_id} not found")
        payload = dict(team)
        payload["squad"] = self._squads[team["id"]]
        payload["coach"] = {"id": team["id"] * 10, "name": f"{team['shortName']} Coach"}
        return payload

    async def _fetch_competitions_raw(self) -> Any:
        return {"count": len(COMPETITIONS), "competitions": COMPETITIONS}
