"""
Live monitor: one cooperative polling loop per tracked match.

The loop fetches the match with its events, forwards events it has not
delivered before, and sleeps for an interval chosen from the match state.
Failures move it into backoff; enough consecutive failures stop it.
"""
from __future__ import annotations

import asyncio
import inspect
from typing import Awaitable, Callable, Optional, Union

from shared.config import Settings, get_settings
from shared.errors import FetchError
from shared.models.domain import Match, MatchUpdate
from shared.models.enums import MonitorState
from shared.utils.logging import get_logger, match_log_context
from shared.utils.metrics import MONITOR_INTERVAL, MONITOR_POLLS

from ingest.service import FetchCoordinator
from scheduler.engine.polling import compute_backoff, compute_poll_interval

logger = get_logger(__name__)

# Timers can fire slightly early, so a poll demands data younger than the
# interval it just slept.
FRESHNESS_FACTOR = 0.9

UpdateCallback = Callable[[MatchUpdate], Union[None, Awaitable[None]]]


class LiveMonitor:
    """
    Polls one match until stopped.

    States: IDLE -> POLLING -> (POLLING | BACKOFF) -> STOPPED.
    An event id is delivered at most once per monitor instance.
    """

    def __init__(
        self,
        match: Match,
        coordinator: FetchCoordinator,
        on_update: UpdateCallback,
        settings: Settings | None = None,
    ) -> None:
        self._match = match
        self._coordinator = coordinator
        self._on_update = on_update
        self._settings = settings or get_settings()
        self._seen_ids: set[str] = set()
        self._consecutive_failures = 0
        self._max_age: Optional[float] = None
        self._state = MonitorState.IDLE
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def match(self) -> Match:
        return self._match

    @property
    def match_id(self) -> str:
        return self._match.id

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def seen_ids(self) -> frozenset[str]:
        return frozenset(self._seen_ids)

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def task(self) -> Optional[asyncio.Task[None]]:
        return self._task

    @property
    def is_stopped(self) -> bool:
        return self._state == MonitorState.STOPPED

    # ── Lifecycle ───────────────────────────────────────────────────────

    def start(self) -> asyncio.Task[None]:
        """Spawn the polling task. Must be called from a running event loop."""
        if self._task is not None:
            return self._task
        if self._stop_event.is_set():
            raise RuntimeError("LiveMonitor cannot be restarted after stop()")
        loop = asyncio.get_running_loop()
        self._state = MonitorState.POLLING
        self._task = loop.create_task(self._run(), name=f"live-monitor:{self._match.id}")
        return self._task

    def stop(self) -> None:
        """Request the loop to end. Cancels an in-flight fetch; never blocks."""
        if self._stop_event.is_set() and self._state == MonitorState.STOPPED:
            return
        self._stop_event.set()
        self._state = MonitorState.STOPPED
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.info("monitor_stop_requested", match_id=self._match.id)

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        # Each task runs in its own contextvars copy.
        with match_log_context(self._match.id):
            logger.info("monitor_started", match=self._match.label)
            try:
                while not self._stop_event.is_set():
                    delay = await self.poll_once()
                    if delay is None or await self._wait(delay):
                        break
            except asyncio.CancelledError:
                logger.debug("monitor_cancelled")
                raise
            finally:
                self._state = MonitorState.STOPPED
                logger.info(
                    "monitor_stopped",
                    delivered=len(self._seen_ids),
                    failures=self._consecutive_failures,
                )

    async def _wait(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds. Returns True if stop() was called meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    # ── One iteration ───────────────────────────────────────────────────

    async def poll_once(self) -> Optional[float]:
        """
        Run a single poll.

        Returns the delay before the next poll, or None once the monitor has
        stopped (by request or after too many failures).
        """
        if self._stop_event.is_set():
            return None

        budget = self._coordinator.budget
        if not budget.can_call():
            MONITOR_POLLS.labels(outcome="budget_wait").inc()
            wait = budget.time_until_next_slot()
            logger.debug("monitor_waiting_for_budget", match_id=self._match.id, wait_s=round(wait, 2))
            return wait

        try:
            detail = await self._coordinator.fetch_events(self._match.id, max_age=self._max_age)
        except Exception as exc:
            return self._record_failure(exc)

        if self._stop_event.is_set():
            return None

        previous_status = self._match.status
        self._match = detail.match
        new_events = []
        for event in detail.events:
            if event.id in self._seen_ids:
                continue
            self._seen_ids.add(event.id)
            new_events.append(event)

        if self._consecutive_failures:
            logger.info("monitor_recovered", match_id=self._match.id, after_failures=self._consecutive_failures)
        self._consecutive_failures = 0
        self._state = MonitorState.POLLING
        MONITOR_POLLS.labels(outcome="ok").inc()

        status_changed = previous_status != self._match.status
        if status_changed and self._match.status.is_terminal:
            logger.info("monitor_match_ended", match_id=self._match.id, status=self._match.status.value)
        if new_events or status_changed:
            await self._emit(MatchUpdate(match=self._match, new_events=new_events, status_changed=status_changed))

        interval = compute_poll_interval(self._match)
        self._max_age = interval * FRESHNESS_FACTOR
        MONITOR_INTERVAL.labels(status=self._match.status.value).observe(interval)
        return interval

    def _record_failure(self, exc: Exception) -> Optional[float]:
        self._consecutive_failures += 1
        MONITOR_POLLS.labels(outcome="error").inc()
        kind = exc.kind.value if isinstance(exc, FetchError) else type(exc).__name__
        if self._consecutive_failures >= self._settings.monitor_failure_threshold:
            logger.warning(
                "monitor_giving_up",
                match_id=self._match.id,
                failures=self._consecutive_failures,
                error_kind=kind,
                error=str(exc),
            )
            self._stop_event.set()
            self._state = MonitorState.STOPPED
            return None

        self._state = MonitorState.BACKOFF
        delay = compute_backoff(
            self._consecutive_failures,
            base_s=self._settings.monitor_backoff_base_s,
            ceiling_s=self._settings.monitor_backoff_ceiling_s,
        )
        logger.warning(
            "monitor_poll_failed",
            match_id=self._match.id,
            failures=self._consecutive_failures,
            error_kind=kind,
            error=str(exc),
            retry_in_s=delay,
        )
        return delay

    async def _emit(self, update: MatchUpdate) -> None:
        try:
            result = self._on_update(update)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error(
                "monitor_listener_error",
                match_id=self._match.id,
                error=str(exc),
                exc_info=True,
            )
