"""
Unit tests for football-data.org payload normalization.

Run: pytest backend/tests/test_normalizer.py -v
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from shared.errors import DecodingError
from shared.models.enums import EventType, MatchStatus
from ingest.normalization.normalizer import (
    map_status,
    normalize_competitions,
    normalize_match,
    normalize_match_detail,
    normalize_match_list,
    normalize_team_squad,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("SCHEDULED", MatchStatus.UPCOMING),
        ("TIMED", MatchStatus.UPCOMING),
        ("LIVE", MatchStatus.IN_PROGRESS),
        ("IN_PLAY", MatchStatus.IN_PROGRESS),
        ("PAUSED", MatchStatus.HALFTIME),
        ("FINISHED", MatchStatus.COMPLETED),
        ("POSTPONED", MatchStatus.POSTPONED),
        ("CANCELLED", MatchStatus.CANCELLED),
        ("SUSPENDED", MatchStatus.SUSPENDED),
        ("in_play", MatchStatus.IN_PROGRESS),
        ("SOMETHING_NEW", MatchStatus.UNKNOWN),
        (None, MatchStatus.UNKNOWN),
    ],
)
def test_map_status(raw, expected: MatchStatus) -> None:
    assert map_status(raw) == expected


def test_normalize_match_fields(wire_match_factory) -> None:
    match = normalize_match(wire_match_factory())
    assert match.id == "1001"
    assert match.home_team.id == "57"
    assert match.label == "ARS vs CHE"
    assert match.competition.code == "PL"
    assert match.status == MatchStatus.IN_PROGRESS
    assert (match.score_home, match.score_away) == (1, 0)
    assert match.start_time == datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def test_snake_case_keys_are_accepted(wire_match_factory) -> None:
    payload = wire_match_factory()
    payload["utc_date"] = payload.pop("utcDate")
    payload["home_team"] = payload.pop("homeTeam")
    payload["away_team"] = payload.pop("awayTeam")
    payload["score"] = {"full_time": {"home": 2, "away": 2}}
    match = normalize_match(payload)
    assert match.home_team.name == "Arsenal FC"
    assert match.score_home == 2


def test_match_missing_teams_is_a_decoding_error(wire_match_factory) -> None:
    payload = wire_match_factory()
    del payload["homeTeam"]
    with pytest.raises(DecodingError):
        normalize_match(payload)


def test_non_object_body_is_a_decoding_error() -> None:
    with pytest.raises(DecodingError):
        normalize_match_detail(["not", "a", "match"])
    with pytest.raises(DecodingError):
        normalize_match_list({"count": 0})


def test_match_list_skips_malformed_matches(wire_match_factory) -> None:
    broken = wire_match_factory(match_id=2)
    del broken["utcDate"]
    body = {"matches": [wire_match_factory(match_id=1), broken, wire_match_factory(match_id=3)]}
    matches = normalize_match_list(body)
    assert [m.id for m in matches] == ["1", "3"]


def test_detail_without_optional_sections(wire_match_factory) -> None:
    detail = normalize_match_detail(wire_match_factory())
    assert detail.events == []
    assert detail.home_lineup is None
    assert detail.lineup is None


def test_detail_builds_events_and_skips_bad_records(wire_match_factory) -> None:
    payload = wire_match_factory(
        goals=[
            {
                "minute": 12,
                "type": "REGULAR",
                "team": {"id": 57, "name": "Arsenal FC"},
                "scorer": {"id": 7001, "name": "Bukayo Saka"},
                "assist": {"id": 7002, "name": "Martin Odegaard"},
            },
            {"minute": 30, "type": "REGULAR", "team": {"id": 57}},
            {
                "minute": 80,
                "type": "OWN",
                "team": {"id": 61, "name": "Chelsea FC"},
                "scorer": {"id": 8001, "name": "Levi Colwill"},
                "assist": None,
            },
        ],
        bookings=[
            {"minute": 44, "team": {"id": 61}, "player": {"id": 8002, "name": "Moises Caicedo"}, "card": "YELLOW"},
            {"minute": 70, "team": {"id": 61}, "player": {"id": 8002, "name": "Moises Caicedo"}, "card": "YELLOW_RED"},
        ],
        substitutions=[
            {
                "minute": 60,
                "team": {"id": 57},
                "playerOut": {"id": 7001, "name": "Bukayo Saka"},
                "playerIn": {"id": 7010, "name": "Leandro Trossard"},
            },
        ],
    )
    detail = normalize_match_detail(payload)
    types = [(e.minute, e.event_type) for e in detail.events]
    assert types == [
        (12, EventType.GOAL),
        (12, EventType.ASSIST),
        (44, EventType.YELLOW_CARD),
        (60, EventType.SUBSTITUTION),
        (70, EventType.RED_CARD),
        (80, EventType.OWN_GOAL),
    ]
    goal = detail.events[0]
    assert goal.id == "12_goal_7001"
    assert goal.player.name == "Bukayo Saka"
    assert goal.secondary_player.id == "7002"
    assert goal.timestamp == detail.match.start_time + timedelta(minutes=12)
    assert detail.events[1].player.id == "7002"
    assert len({e.id for e in detail.events}) == len(detail.events)


def test_event_ids_are_stable_across_fetches(wire_match_factory) -> None:
    goals = [{"minute": 5, "team": {"id": 57}, "scorer": {"id": 1, "name": "A"}}]
    first = normalize_match_detail(wire_match_factory(goals=goals))
    second = normalize_match_detail(wire_match_factory(goals=goals))
    assert [e.id for e in first.events] == [e.id for e in second.events]


def test_detail_lineups(wire_match_factory) -> None:
    payload = wire_match_factory(venue="Emirates Stadium", referees=[{"name": "Michael Oliver", "type": "REFEREE"}])
    payload["homeTeam"]["formation"] = "4-3-3"
    payload["homeTeam"]["lineup"] = [{"id": 7001, "name": "Bukayo Saka", "position": "Offence", "shirtNumber": 7}]
    payload["homeTeam"]["bench"] = [{"id": 7010, "name": "Leandro Trossard"}, {"name": "no id"}]
    payload["homeTeam"]["coach"] = {"id": 11, "name": "Mikel Arteta", "nationality": "Spain"}
    payload["awayTeam"]["lineup"] = []
    detail = normalize_match_detail(payload)
    assert detail.venue == "Emirates Stadium"
    assert detail.referee == "Michael Oliver"
    assert detail.home_lineup.formation == "4-3-3"
    assert [p.id for p in detail.home_lineup.players] == ["7001", "7010"]
    assert detail.home_lineup.starting_xi[0].shirt_number == 7
    assert detail.home_lineup.coach.name == "Mikel Arteta"
    assert detail.lineup is not None
    assert detail.lineup.away.players == []


def test_team_squad() -> None:
    body = {
        "id": 57,
        "name": "Arsenal FC",
        "tla": "ARS",
        "squad": [
            {"id": 7001, "name": "Bukayo Saka", "position": "Offence"},
            {"id": 7002},
        ],
        "coach": {"id": 11, "name": "Mikel Arteta"},
    }
    squad = normalize_team_squad(body)
    assert squad.team.short_name == "ARS"
    assert [p.name for p in squad.players] == ["Bukayo Saka"]
    assert squad.players[0].team_id == "57"
    assert squad.coach.name == "Mikel Arteta"


def test_team_without_squad_is_empty() -> None:
    squad = normalize_team_squad({"id": 57, "name": "Arsenal FC"})
    assert squad.players == []
    assert squad.coach is None


def test_competitions_skip_entries_without_id() -> None:
    body = {
        "count": 3,
        "competitions": [
            {"id": 2021, "name": "Premier League", "code": "PL"},
            {"name": "No Id League"},
            {"id": 2018, "name": "European Championship", "code": None},
        ],
    }
    competitions = normalize_competitions(body)
    assert [(c.id, c.code) for c in competitions] == [("2021", "PL"), ("2018", "")]


def test_competitions_without_array_is_a_decoding_error() -> None:
    with pytest.raises(DecodingError):
        normalize_competitions({"count": 0})
