"""
Translation of live events into game events.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional

from shared.models.domain import PlayerRef
from shared.models.enums import EventType, GameEventType

_TOKEN = re.compile(r"\w+")

_GAME_EVENT_TYPES: dict[EventType, GameEventType] = {
    EventType.GOAL: GameEventType.GOAL,
    EventType.ASSIST: GameEventType.ASSIST,
    EventType.YELLOW_CARD: GameEventType.YELLOW_CARD,
    EventType.RED_CARD: GameEventType.RED_CARD,
    EventType.OWN_GOAL: GameEventType.OWN_GOAL,
    EventType.PENALTY: GameEventType.PENALTY,
    EventType.PENALTY_MISSED: GameEventType.PENALTY_MISSED,
}


def map_event_type(event_type: EventType) -> Optional[GameEventType]:
    """Game counterpart of a live event type, or None if the game ignores it."""
    return _GAME_EVENT_TYPES.get(event_type)


def _name_tokens(name: str) -> set[str]:
    return set(_TOKEN.findall(name.lower()))


def resolve_player(player: Optional[PlayerRef], selected: Iterable[PlayerRef]) -> Optional[PlayerRef]:
    """
    Find the session's player behind an event.

    Matches on provider id first. Failing that, every word of the event's
    player name must appear as a whole word in the selected player's name
    ("Saka" matches "Bukayo Saka"; "Emerson Royal" does not match "Son").
    """
    if player is None:
        return None
    candidates = list(selected)
    for candidate in candidates:
        if player.id and candidate.id == player.id:
            return candidate
    wanted = _name_tokens(player.name)
    if not wanted:
        return None
    for candidate in candidates:
        if wanted <= _name_tokens(candidate.name):
            return candidate
    return None
