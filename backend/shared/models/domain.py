"""
Pydantic v2 domain models shared across live match sync.
These are the canonical internal representations, NOT wire schemas.
Every model is frozen: a newer fetch supersedes a snapshot, it never mutates it.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import EventType, MatchStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)


# ── Reference entities ──────────────────────────────────────────────────
class CompetitionRef(DomainModel):
    id: str
    name: str
    code: str = ""


class TeamRef(DomainModel):
    id: str
    name: str
    short_name: str = ""
    crest: Optional[str] = None

    @property
    def label(self) -> str:
        return self.short_name or self.name[:3].upper()


class PlayerRef(DomainModel):
    id: str
    name: str
    position: Optional[str] = None
    shirt_number: Optional[int] = None
    team_id: Optional[str] = None


class Coach(DomainModel):
    id: Optional[str] = None
    name: str = "Unknown Coach"
    nationality: Optional[str] = None


# ── Match ───────────────────────────────────────────────────────────────
class Match(DomainModel):
    """Snapshot of a fixture at fetch time."""
    id: str
    home_team: TeamRef
    away_team: TeamRef
    competition: CompetitionRef
    start_time: datetime
    status: MatchStatus = MatchStatus.UNKNOWN
    score_home: Optional[int] = None
    score_away: Optional[int] = None

    @property
    def label(self) -> str:
        return f"{self.home_team.label} vs {self.away_team.label}"

    def time_to_kickoff(self, now: Optional[datetime] = None) -> float:
        """Seconds until the scheduled start; negative once it has passed."""
        now = now or utcnow()
        start = self.start_time
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        return (start - now).total_seconds()


# ── Live events ─────────────────────────────────────────────────────────
class LiveEvent(DomainModel):
    """A single occurrence in a match. Two events are the same iff their ids match."""
    id: str
    event_type: EventType
    minute: Optional[int] = None
    player: Optional[PlayerRef] = None
    secondary_player: Optional[PlayerRef] = None
    team_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


# ── Lineups and rosters ─────────────────────────────────────────────────
class TeamLineup(DomainModel):
    team: TeamRef
    formation: Optional[str] = None
    starting_xi: list[PlayerRef] = Field(default_factory=list)
    substitutes: list[PlayerRef] = Field(default_factory=list)
    coach: Optional[Coach] = None

    @property
    def players(self) -> list[PlayerRef]:
        return [*self.starting_xi, *self.substitutes]


class Lineup(DomainModel):
    home: TeamLineup
    away: TeamLineup


class TeamSquad(DomainModel):
    team: TeamRef
    players: list[PlayerRef] = Field(default_factory=list)
    coach: Optional[Coach] = None


class MatchDetail(DomainModel):
    """Match snapshot plus everything the detail endpoint may carry."""
    match: Match
    venue: Optional[str] = None
    referee: Optional[str] = None
    attendance: Optional[int] = None
    events: list[LiveEvent] = Field(default_factory=list)
    home_lineup: Optional[TeamLineup] = None
    away_lineup: Optional[TeamLineup] = None

    @property
    def lineup(self) -> Optional[Lineup]:
        if self.home_lineup is None or self.away_lineup is None:
            return None
        return Lineup(home=self.home_lineup, away=self.away_lineup)


# ── Queries ─────────────────────────────────────────────────────────────
class MatchQuery(DomainModel):
    """Parameters for a match-list request."""
    statuses: tuple[str, ...] = ()
    competition: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None

    @property
    def cache_key(self) -> str:
        parts = [
            ",".join(self.statuses) or "any",
            self.competition or "all",
            self.date_from or "",
            self.date_to or "",
        ]
        return "|".join(parts)


# ── Updates delivered by monitors ───────────────────────────────────────
class MatchUpdate(DomainModel):
    match: Match
    new_events: list[LiveEvent] = Field(default_factory=list)
    status_changed: bool = False
    timestamp: datetime = Field(default_factory=utcnow)


# ── Introspection ───────────────────────────────────────────────────────
class BudgetUsage(DomainModel):
    current: int
    maximum: int
    reset_in: Optional[float] = None


class CacheStats(DomainModel):
    entries: int = 0
    by_kind: dict[str, int] = Field(default_factory=dict)
