"""
Sliding-window call budget shared by every outbound request.

The tracker never fails; it only reports whether a call may be made now and
how long until the next slot frees up.
"""
from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from typing import Callable, Optional

from shared.models.domain import BudgetUsage
from shared.utils.logging import get_logger
from shared.utils.metrics import BUDGET_REJECTIONS, BUDGET_USAGE

logger = get_logger(__name__)

DEFAULT_MAX_CALLS = 25
DEFAULT_WINDOW_S = 60.0


class CallBudgetTracker:
    """
    At most ``max_calls`` outbound calls in any trailing ``window_s`` seconds.

    Timestamps are kept oldest-first. Every operation prunes the expired head
    of the deque under one lock, so checks and records never interleave.
    """

    def __init__(
        self,
        max_calls: int = DEFAULT_MAX_CALLS,
        window_s: float = DEFAULT_WINDOW_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_calls = max(1, max_calls)
        self._window_s = window_s
        self._clock = clock
        self._calls: deque[float] = deque()
        self._lock = threading.Lock()

    @property
    def max_calls(self) -> int:
        return self._max_calls

    @property
    def window_s(self) -> float:
        return self._window_s

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_s
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()

    def can_call(self) -> bool:
        with self._lock:
            self._prune(self._clock())
            return len(self._calls) < self._max_calls

    def record_call(self) -> None:
        with self._lock:
            now = self._clock()
            self._prune(now)
            self._calls.append(now)
            BUDGET_USAGE.set(len(self._calls))

    def try_acquire(self) -> bool:
        """Record a call if the budget allows it. Returns False when exhausted."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._calls) >= self._max_calls:
                BUDGET_REJECTIONS.inc()
                return False
            self._calls.append(now)
            BUDGET_USAGE.set(len(self._calls))
            return True

    def time_until_next_slot(self) -> float:
        """Seconds until a call is allowed again; 0 while under budget."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._calls) < self._max_calls:
                return 0.0
            return max(0.0, self._window_s - (now - self._calls[0]))

    def usage(self) -> BudgetUsage:
        with self._lock:
            now = self._clock()
            self._prune(now)
            reset_in: Optional[float] = None
            if self._calls:
                reset_in = max(0.0, self._window_s - (now - self._calls[0]))
            return BudgetUsage(current=len(self._calls), maximum=self._max_calls, reset_in=reset_in)

    async def wait_for_slot(self, timeout_s: float) -> bool:
        """
        Wait until a call can be made, then record it.

        Gives up without waiting when the next slot is further away than
        ``timeout_s``. Returns True if a slot was acquired.
        """
        if self.try_acquire():
            return True
        wait = self.time_until_next_slot()
        if wait > timeout_s:
            logger.warning("budget_wait_exceeds_ceiling", wait_s=round(wait, 2), ceiling_s=timeout_s)
            return False
        logger.info("budget_waiting_for_slot", wait_s=round(wait, 2))
        await asyncio.sleep(wait)
        return self.try_acquire()
