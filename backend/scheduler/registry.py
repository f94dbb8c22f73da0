"""
Registry of live monitors, one per game session.
Translates monitor updates into game events for the session's listener.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Protocol, Sequence

from shared.config import Settings, get_settings
from shared.models.domain import Match, MatchUpdate, PlayerRef
from shared.models.enums import GameEventType
from shared.utils.logging import get_logger
from shared.utils.metrics import ACTIVE_MONITORS, EVENTS_DELIVERED, EVENTS_DROPPED

from ingest.service import FetchCoordinator
from scheduler.monitor import LiveMonitor
from scheduler.translation import map_event_type, resolve_player

logger = get_logger(__name__)


class GameStateListener(Protocol):
    """The game session a monitor reports to."""

    @property
    def selected_players(self) -> Sequence[PlayerRef]: ...

    @property
    def is_observing(self) -> bool: ...

    def record_event(self, player: PlayerRef, event_type: GameEventType) -> None: ...

    def on_match_update(self, update: MatchUpdate) -> None: ...


class UserNotifier(Protocol):
    def notify_user(self, match_label: str, event_type: GameEventType, player_name: str) -> None: ...


class MonitorRegistry:
    """
    Supervises active monitors keyed by session id.

    Starting a session that already has a monitor stops the old one first.
    Entries leave the map from the monitor task's done callback, so a monitor
    that gives up after repeated failures disappears on its own.
    """

    def __init__(
        self,
        coordinator: FetchCoordinator,
        notifier: Optional[UserNotifier] = None,
        settings: Settings | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._notifier = notifier
        self._settings = settings or get_settings()
        self._monitors: dict[str, LiveMonitor] = {}

    def start(self, session_id: str, match: Match, listener: GameStateListener) -> LiveMonitor:
        existing = self._monitors.get(session_id)
        if existing is not None:
            logger.info("monitor_replaced", session_id=session_id, old_match_id=existing.match_id)
            existing.stop()

        def deliver(update: MatchUpdate) -> None:
            self._deliver(session_id, listener, update)

        monitor = LiveMonitor(match, self._coordinator, deliver, settings=self._settings)
        try:
            task = monitor.start()
        except RuntimeError:
            if existing is not None:
                self._remove(session_id, existing)
            raise
        self._monitors[session_id] = monitor
        task.add_done_callback(lambda _t: self._on_monitor_done(session_id, monitor))
        ACTIVE_MONITORS.set(len(self._monitors))
        logger.info("monitor_registered", session_id=session_id, match_id=match.id, active=len(self._monitors))
        return monitor

    def stop(self, session_id: str) -> bool:
        """Stop the session's monitor. Returns False if there was none."""
        monitor = self._monitors.get(session_id)
        if monitor is None:
            return False
        monitor.stop()
        if monitor.task is None:
            self._remove(session_id, monitor)
        return True

    async def stop_all(self) -> None:
        monitors = list(self._monitors.values())
        for monitor in monitors:
            monitor.stop()
        await asyncio.gather(*(m.wait_stopped() for m in monitors))
        self._monitors.clear()
        ACTIVE_MONITORS.set(0)

    def get(self, session_id: str) -> Optional[LiveMonitor]:
        return self._monitors.get(session_id)

    def active_count(self) -> int:
        return len(self._monitors)

    def _on_monitor_done(self, session_id: str, monitor: LiveMonitor) -> None:
        self._remove(session_id, monitor)

    def _remove(self, session_id: str, monitor: LiveMonitor) -> None:
        # A replacement may already sit under the same session id.
        if self._monitors.get(session_id) is monitor:
            del self._monitors[session_id]
            ACTIVE_MONITORS.set(len(self._monitors))
            logger.info("monitor_unregistered", session_id=session_id, match_id=monitor.match_id)

    # ── Delivery ────────────────────────────────────────────────────────

    def _deliver(self, session_id: str, listener: GameStateListener, update: MatchUpdate) -> None:
        listener.on_match_update(update)
        for event in update.new_events:
            game_type = map_event_type(event.event_type)
            if game_type is None:
                EVENTS_DROPPED.labels(reason="unmapped_type").inc()
                continue
            player = resolve_player(event.player, listener.selected_players)
            if player is None:
                EVENTS_DROPPED.labels(reason="unknown_player").inc()
                logger.debug("event_player_not_selected", session_id=session_id, event_id=event.id)
                continue

            listener.record_event(player, game_type)
            EVENTS_DELIVERED.labels(event_type=game_type.value).inc()
            logger.info(
                "game_event_recorded",
                session_id=session_id,
                event_id=event.id,
                event_type=game_type.value,
                player=player.name,
            )
            if not listener.is_observing:
                self._notify(update.match.label, game_type, player.name)

    def _notify(self, match_label: str, event_type: GameEventType, player_name: str) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify_user(match_label, event_type, player_name)
        except Exception as exc:
            logger.warning("user_notification_failed", event_type=event_type.value, error=str(exc))
