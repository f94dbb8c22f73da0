"""
Live sync service.
Owns the single call budget, result cache, data source, fetch coordinator
and monitor registry for the process, and runs periodic cache maintenance.
"""
from __future__ import annotations

import asyncio
import signal
from typing import Any, Optional, Sequence

from shared.config import Settings, get_settings
from shared.models.domain import Match, MatchUpdate, PlayerRef
from shared.models.enums import GameEventType
from shared.utils.cache import ResultCache
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server
from shared.utils.rate_limiter import CallBudgetTracker

from ingest.providers.base import BaseDataSource
from ingest.providers.registry import build_data_source
from ingest.service import FetchCoordinator
from scheduler.monitor import LiveMonitor
from scheduler.registry import GameStateListener, MonitorRegistry, UserNotifier

logger = get_logger(__name__)


class LiveSyncService:
    """Composition root for live match sync."""

    def __init__(
        self,
        settings: Settings | None = None,
        source: Optional[BaseDataSource] = None,
        notifier: Optional[UserNotifier] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._source = source or build_data_source(self._settings)
        self._cache = ResultCache()
        self._budget = CallBudgetTracker(
            max_calls=self._settings.budget_max_calls,
            window_s=self._settings.budget_window_s,
        )
        self._coordinator = FetchCoordinator(self._source, self._cache, self._budget, self._settings)
        self._registry = MonitorRegistry(self._coordinator, notifier=notifier, settings=self._settings)
        self._shutdown = asyncio.Event()
        self._sweep_task: Optional[asyncio.Task[None]] = None

    @property
    def coordinator(self) -> FetchCoordinator:
        return self._coordinator

    @property
    def registry(self) -> MonitorRegistry:
        return self._registry

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def budget(self) -> CallBudgetTracker:
        return self._budget

    async def start(self) -> None:
        await self._source.start()
        self._shutdown.clear()
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="cache-sweep")
        logger.info("live_sync_started", source=self._source.name)

    async def close(self) -> None:
        self._shutdown.set()
        await self._registry.stop_all()
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            await asyncio.gather(self._sweep_task, return_exceptions=True)
            self._sweep_task = None
        await self._source.close()
        logger.info("live_sync_stopped")

    async def _sweep_loop(self) -> None:
        interval = self._settings.cache_sweep_interval_s
        while not self._shutdown.is_set():
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass
            removed = self._cache.sweep()
            logger.debug("cache_maintenance", removed=removed, remaining=len(self._cache))

    # ── Session-facing API ──────────────────────────────────────────────

    def start_live_tracking(self, session_id: str, match: Match, listener: GameStateListener) -> LiveMonitor:
        return self._registry.start(session_id, match, listener)

    def stop_live_tracking(self, session_id: str) -> bool:
        return self._registry.stop(session_id)

    def request_shutdown(self) -> None:
        self._shutdown.set()

    async def wait_for_shutdown(self) -> None:
        await self._shutdown.wait()

    def status(self) -> dict[str, Any]:
        return {**self._coordinator.describe(), "active_monitors": self._registry.active_count()}


# ── Demo entrypoint ─────────────────────────────────────────────────────

class _LoggingListener:
    """Session stand-in that logs what the game would record."""

    def __init__(self, players: Sequence[PlayerRef]) -> None:
        self._players = list(players)

    @property
    def selected_players(self) -> Sequence[PlayerRef]:
        return self._players

    @property
    def is_observing(self) -> bool:
        return False

    def record_event(self, player: PlayerRef, event_type: GameEventType) -> None:
        logger.info("demo_event_recorded", player=player.name, event_type=event_type.value)

    def on_match_update(self, update: MatchUpdate) -> None:
        logger.info(
            "demo_match_update",
            match=update.match.label,
            score=f"{update.match.score_home}-{update.match.score_away}",
            new_events=len(update.new_events),
        )


class _LoggingNotifier:
    def notify_user(self, match_label: str, event_type: GameEventType, player_name: str) -> None:
        logger.info("demo_notification", match=match_label, event_type=event_type.value, player=player_name)


async def main() -> None:
    """Track the most relevant match with every player selected, until interrupted."""
    settings = get_settings()
    setup_logging("live_sync")
    start_metrics_server(settings=settings)

    service = LiveSyncService(settings, notifier=_LoggingNotifier())
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, service.request_shutdown)

    await service.start()
    try:
        matches = await service.coordinator.find_relevant_matches()
        if not matches:
            logger.warning("demo_no_matches")
            return
        match = matches[0]
        players = await service.coordinator.fetch_match_players(match.id)
        service.start_live_tracking("demo", match, _LoggingListener(players))
        await service.wait_for_shutdown()
    finally:
        await service.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
