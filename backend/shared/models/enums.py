"""Domain enumerations for live match sync."""
from __future__ import annotations

from enum import Enum


class MatchStatus(str, Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    HALFTIME = "halftime"
    PAUSED = "paused"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FINISHED = "completed"  # alias of COMPLETED
    POSTPONED = "postponed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (
            MatchStatus.COMPLETED,
            MatchStatus.POSTPONED,
            MatchStatus.CANCELLED,
        )


class EventType(str, Enum):
    """Event kinds reported by the sports data feed."""
    GOAL = "goal"
    ASSIST = "assist"
    YELLOW_CARD = "yellow_card"
    RED_CARD = "red_card"
    SUBSTITUTION = "substitution"
    PENALTY = "penalty"
    PENALTY_MISSED = "penalty_missed"
    OWN_GOAL = "own_goal"
    KICKOFF = "kickoff"
    HALFTIME = "halftime"
    FULLTIME = "fulltime"
    UNKNOWN = "unknown"


class GameEventType(str, Enum):
    """Event kinds the game engine can settle bets on."""
    GOAL = "goal"
    ASSIST = "assist"
    YELLOW_CARD = "yellow_card"
    RED_CARD = "red_card"
    OWN_GOAL = "own_goal"
    PENALTY = "penalty"
    PENALTY_MISSED = "penalty_missed"


class CacheKind(str, Enum):
    MATCH = "match"
    MATCH_DETAIL = "match_detail"
    MATCH_LIST = "match_list"
    ROSTER = "roster"
    LINEUP = "lineup"
    COMPETITIONS = "competitions"


class MonitorState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    BACKOFF = "backoff"
    STOPPED = "stopped"


class FetchErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    NETWORK = "network"
    DECODING = "decoding"
    SERVER = "server"
    RATE_LIMITED = "rate_limited"


class DataSourceKind(str, Enum):
    FOOTBALL_DATA = "football_data"
    MOCK = "mock"
