"""
Polling interval table for live monitors.
Maps a match's lifecycle state (and, before kickoff, the time left) to how
long a monitor waits before its next poll.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from shared.models.domain import Match
from shared.models.enums import MatchStatus

# ── Intervals (seconds) ─────────────────────────────────────────────────
STATUS_INTERVALS_S: dict[MatchStatus, float] = {
    MatchStatus.IN_PROGRESS: 60.0,
    MatchStatus.HALFTIME: 90.0,
    MatchStatus.COMPLETED: 300.0,
    MatchStatus.POSTPONED: 600.0,
    MatchStatus.CANCELLED: 600.0,
    MatchStatus.PAUSED: 300.0,
    MatchStatus.SUSPENDED: 300.0,
    MatchStatus.UNKNOWN: 180.0,
}

# Upcoming matches: (kickoff closer than, interval)
PRE_MATCH_STEPS_S: list[tuple[float, float]] = [
    (5 * 60.0, 30.0),
    (60 * 60.0, 120.0),
]
PRE_MATCH_DEFAULT_S = 600.0


def compute_poll_interval(match: Match, now: Optional[datetime] = None) -> float:
    """Seconds until the next poll of ``match``. Pure; always positive."""
    if match.status == MatchStatus.UPCOMING:
        to_kickoff = match.time_to_kickoff(now)
        for threshold, interval in PRE_MATCH_STEPS_S:
            if to_kickoff < threshold:
                return interval
        return PRE_MATCH_DEFAULT_S
    return STATUS_INTERVALS_S.get(match.status, STATUS_INTERVALS_S[MatchStatus.UNKNOWN])


def compute_backoff(failures: int, base_s: float = 30.0, ceiling_s: float = 300.0) -> float:
    """Delay after ``failures`` consecutive failed polls."""
    return min(ceiling_s, base_s * max(1, failures))
