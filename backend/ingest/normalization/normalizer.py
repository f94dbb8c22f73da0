"""
Normalization layer for the ingest service.
Turns football-data.org wire payloads into canonical domain models.

Top-level shape problems raise DecodingError. Malformed records inside an
otherwise valid response (a goal without a scorer, a match without teams in
a list) are skipped and logged one at a time.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from shared.errors import DecodingError
from shared.models.domain import (
    Coach,
    CompetitionRef,
    LiveEvent,
    Match,
    MatchDetail,
    PlayerRef,
    TeamLineup,
    TeamRef,
    TeamSquad,
)
from shared.models.enums import EventType, MatchStatus
from shared.utils.logging import get_logger
from shared.utils.metrics import DECODE_SKIPS

from ingest.normalization.schemas import (
    WireBooking,
    WireCoach,
    WireCompetition,
    WireGoal,
    WireMatch,
    WirePlayer,
    WireRef,
    WireSubstitution,
    WireTeam,
)

logger = get_logger(__name__)

W = TypeVar("W", bound=BaseModel)

_STATUS_MAP: dict[str, MatchStatus] = {
    "SCHEDULED": MatchStatus.UPCOMING,
    "TIMED": MatchStatus.UPCOMING,
    "LIVE": MatchStatus.IN_PROGRESS,
    "IN_PLAY": MatchStatus.IN_PROGRESS,
    "PAUSED": MatchStatus.HALFTIME,
    "FINISHED": MatchStatus.COMPLETED,
    "AWARDED": MatchStatus.COMPLETED,
    "POSTPONED": MatchStatus.POSTPONED,
    "CANCELLED": MatchStatus.CANCELLED,
    "SUSPENDED": MatchStatus.SUSPENDED,
}


def map_status(raw: Optional[str]) -> MatchStatus:
    """Map a football-data.org status string to MatchStatus."""
    status = _STATUS_MAP.get((raw or "").strip().upper())
    if status is None:
        logger.debug("unknown_match_status", raw_status=raw)
        return MatchStatus.UNKNOWN
    return status


# ── Helpers ─────────────────────────────────────────────────────────────

def _validate_records(schema: type[W], raw: Optional[list[Any]], record: str, context: str) -> list[W]:
    """Validate each raw record on its own; drop and log the ones that fail."""
    valid: list[W] = []
    for index, item in enumerate(raw or []):
        try:
            valid.append(schema.model_validate(item))
        except ValidationError as exc:
            DECODE_SKIPS.labels(record=record).inc()
            logger.warning(
                "malformed_record_skipped",
                record=record,
                context=context,
                index=index,
                errors=exc.error_count(),
            )
    return valid


def _minute_tag(minute: int, injury_time: Optional[int]) -> str:
    return f"{minute}+{injury_time}" if injury_time else str(minute)


def _team_ref(team: WireTeam) -> TeamRef:
    return TeamRef(
        id=str(team.id),
        name=team.name,
        short_name=team.tla or team.short_name or "",
        crest=team.crest,
    )


def _player_ref(ref: WireRef, team_id: Optional[str] = None) -> PlayerRef:
    return PlayerRef(id=str(ref.id), name=ref.name or "Unknown", team_id=team_id)


def _squad_player(player: WirePlayer, team_id: str) -> PlayerRef:
    return PlayerRef(
        id=str(player.id),
        name=player.name,
        position=player.position,
        shirt_number=player.shirt_number,
        team_id=team_id,
    )


def _coach(coach: Optional[WireCoach]) -> Optional[Coach]:
    if coach is None or (coach.id is None and not coach.name):
        return None
    return Coach(
        id=str(coach.id) if coach.id is not None else None,
        name=coach.name or "Unknown Coach",
        nationality=coach.nationality,
    )


# ── Matches ─────────────────────────────────────────────────────────────

def _to_match(wire: WireMatch) -> Match:
    start_time = wire.utc_date
    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)
    full_time = wire.score.full_time if wire.score else None
    return Match(
        id=str(wire.id),
        home_team=_team_ref(wire.home_team),
        away_team=_team_ref(wire.away_team),
        competition=CompetitionRef(
            id=str(wire.competition.id),
            name=wire.competition.name,
            code=wire.competition.code or "",
        ),
        start_time=start_time,
        status=map_status(wire.status),
        score_home=full_time.home if full_time else None,
        score_away=full_time.away if full_time else None,
    )


def _decode_match(body: Any) -> WireMatch:
    if not isinstance(body, dict):
        raise DecodingError(f"Expected a match object, got {type(body).__name__}")
    try:
        return WireMatch.model_validate(body)
    except ValidationError as exc:
        raise DecodingError(f"Malformed match payload: {exc.error_count()} error(s)") from exc


def normalize_match(body: Any) -> Match:
    return _to_match(_decode_match(body))


def normalize_match_list(body: Any) -> list[Match]:
    """Decode a ``{"matches": [...]}`` envelope. Malformed matches are skipped."""
    if not isinstance(body, dict) or not isinstance(body.get("matches"), list):
        raise DecodingError("Expected an object with a 'matches' array")
    return [_to_match(w) for w in _validate_records(WireMatch, body["matches"], "match", "match_list")]


# ── Events ──────────────────────────────────────────────────────────────

def _goal_type(raw: Optional[str]) -> EventType:
    kind = (raw or "").strip().upper()
    if kind in ("OWN", "OWN_GOAL"):
        return EventType.OWN_GOAL
    if kind == "PENALTY":
        return EventType.PENALTY
    return EventType.GOAL


def _card_type(raw: str) -> EventType:
    card = raw.strip().upper()
    return EventType.RED_CARD if "RED" in card else EventType.YELLOW_CARD


def build_events(wire: WireMatch, match: Match) -> list[LiveEvent]:
    """
    Flatten goals, bookings and substitutions into LiveEvents ordered by minute.

    Ids are derived from minute, kind and player so a re-fetch of the same
    match yields the same ids. Each goal with an assist also yields an
    assist event for the provider.
    """
    context = f"match:{match.id}"
    events: list[LiveEvent] = []

    def at(minute: int) -> datetime:
        return match.start_time + timedelta(minutes=minute)

    for goal in _validate_records(WireGoal, wire.goals, "goal", context):
        team_id = str(goal.team.id) if goal.team else None
        tag = _minute_tag(goal.minute, goal.injury_time)
        scorer = _player_ref(goal.scorer, team_id)
        assist = _player_ref(goal.assist, team_id) if goal.assist else None
        events.append(LiveEvent(
            id=f"{tag}_goal_{scorer.id}",
            event_type=_goal_type(goal.type),
            minute=goal.minute,
            player=scorer,
            secondary_player=assist,
            team_id=team_id,
            timestamp=at(goal.minute),
        ))
        if assist is not None:
            events.append(LiveEvent(
                id=f"{tag}_assist_{assist.id}",
                event_type=EventType.ASSIST,
                minute=goal.minute,
                player=assist,
                secondary_player=scorer,
                team_id=team_id,
                timestamp=at(goal.minute),
            ))

    for booking in _validate_records(WireBooking, wire.bookings, "booking", context):
        team_id = str(booking.team.id) if booking.team else None
        event_type = _card_type(booking.card)
        player = _player_ref(booking.player, team_id)
        events.append(LiveEvent(
            id=f"{_minute_tag(booking.minute, booking.injury_time)}_{event_type.value}_{player.id}",
            event_type=event_type,
            minute=booking.minute,
            player=player,
            team_id=team_id,
            timestamp=at(booking.minute),
        ))

    for sub in _validate_records(WireSubstitution, wire.substitutions, "substitution", context):
        team_id = str(sub.team.id) if sub.team else None
        player_out = _player_ref(sub.player_out, team_id)
        events.append(LiveEvent(
            id=f"{_minute_tag(sub.minute, sub.injury_time)}_sub_{player_out.id}",
            event_type=EventType.SUBSTITUTION,
            minute=sub.minute,
            player=player_out,
            secondary_player=_player_ref(sub.player_in, team_id),
            team_id=team_id,
            timestamp=at(sub.minute),
        ))

    events.sort(key=lambda e: e.minute or 0)
    return events


# ── Lineups and squads ──────────────────────────────────────────────────

def _team_lineup(team: WireTeam, context: str) -> Optional[TeamLineup]:
    if team.lineup is None:
        return None
    team_id = str(team.id)
    starters = _validate_records(WirePlayer, team.lineup, "lineup_player", context)
    bench = _validate_records(WirePlayer, team.bench, "lineup_player", context)
    return TeamLineup(
        team=_team_ref(team),
        formation=team.formation,
        starting_xi=[_squad_player(p, team_id) for p in starters],
        substitutes=[_squad_player(p, team_id) for p in bench],
        coach=_coach(team.coach),
    )


def normalize_match_detail(body: Any) -> MatchDetail:
    """Decode GET matches/{id}, including events and lineups when present."""
    wire = _decode_match(body)
    match = _to_match(wire)
    context = f"match:{match.id}"
    referee = next((r.name for r in wire.referees if (r.type or "REFEREE") == "REFEREE" and r.name), None)
    return MatchDetail(
        match=match,
        venue=wire.venue,
        referee=referee,
        attendance=wire.attendance,
        events=build_events(wire, match),
        home_lineup=_team_lineup(wire.home_team, context),
        away_lineup=_team_lineup(wire.away_team, context),
    )


def normalize_team_squad(body: Any) -> TeamSquad:
    """Decode GET teams/{id}. A missing squad is an empty squad."""
    if not isinstance(body, dict):
        raise DecodingError(f"Expected a team object, got {type(body).__name__}")
    try:
        team = WireTeam.model_validate(body)
    except ValidationError as exc:
        raise DecodingError(f"Malformed team payload: {exc.error_count()} error(s)") from exc
    team_id = str(team.id)
    players = _validate_records(WirePlayer, team.squad, "squad_player", f"team:{team_id}")
    return TeamSquad(
        team=_team_ref(team),
        players=[_squad_player(p, team_id) for p in players],
        coach=_coach(team.coach),
    )


# ── Competitions ────────────────────────────────────────────────────────

def normalize_competitions(body: Any) -> list[CompetitionRef]:
    """Decode GET competitions. Entries without an id are skipped."""
    if not isinstance(body, dict) or not isinstance(body.get("competitions"), list):
        raise DecodingError("Expected an object with a 'competitions' array")
    return [
        CompetitionRef(id=str(c.id), name=c.name, code=c.code or "")
        for c in _validate_records(WireCompetition, body["competitions"], "competition", "competitions")
    ]
