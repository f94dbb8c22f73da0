"""
Wire schemas for football-data.org v4 responses.

Keys are accepted in camelCase (as served) or snake_case. Every field the API
may omit is optional. Nested event arrays stay raw here so the normalizer can
validate and skip malformed records one at a time.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WireId = Union[int, str]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class WireRef(WireModel):
    id: WireId
    name: Optional[str] = None


class WireCompetition(WireModel):
    id: WireId
    name: str = ""
    code: Optional[str] = None


class WirePlayer(WireModel):
    id: WireId
    name: str
    position: Optional[str] = None
    shirt_number: Optional[int] = None
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None


class WireCoach(WireModel):
    id: Optional[WireId] = None
    name: Optional[str] = None
    nationality: Optional[str] = None


class WireTeam(WireModel):
    id: WireId
    name: str = ""
    short_name: Optional[str] = None
    tla: Optional[str] = None
    crest: Optional[str] = None
    formation: Optional[str] = None
    lineup: Optional[list[Any]] = None
    bench: Optional[list[Any]] = None
    squad: Optional[list[Any]] = None
    coach: Optional[WireCoach] = None


class WireScoreLine(WireModel):
    home: Optional[int] = None
    away: Optional[int] = None


class WireScore(WireModel):
    full_time: Optional[WireScoreLine] = None
    half_time: Optional[WireScoreLine] = None


class WireGoal(WireModel):
    minute: int
    injury_time: Optional[int] = None
    type: Optional[str] = None
    team: Optional[WireRef] = None
    scorer: WireRef
    assist: Optional[WireRef] = None


class WireBooking(WireModel):
    minute: int
    injury_time: Optional[int] = None
    team: Optional[WireRef] = None
    player: WireRef
    card: str


class WireSubstitution(WireModel):
    minute: int
    injury_time: Optional[int] = None
    team: Optional[WireRef] = None
    player_in: WireRef
    player_out: WireRef


class WireReferee(WireModel):
    id: Optional[WireId] = None
    name: Optional[str] = None
    type: Optional[str] = None


class WireMatch(WireModel):
    id: WireId
    utc_date: datetime
    status: str = ""
    minute: Optional[int] = None
    competition: WireCompetition
    home_team: WireTeam
    away_team: WireTeam
    score: Optional[WireScore] = None
    venue: Optional[str] = None
    attendance: Optional[int] = None
    referees: list[WireReferee] = Field(default_factory=list)
    goals: Optional[list[Any]] = None
    bookings: Optional[list[Any]] = None
    substitutions: Optional[list[Any]] = None
