"""
pNode Refresh Scheduler

Drives periodic re-ingestion with a visible countdown.

States:
    IDLE      nothing fetched yet
    FETCHING  one refresh in flight; further triggers are dropped (coalesced)
    COOLDOWN  counting down to the next automatic refresh

Each tick (default 1s) decrements the countdown; a tick at 0 triggers a
refresh. Success or failure both end in COOLDOWN with the countdown reset to
the full window (default 59 ticks); failures are recorded, not retried early.

Runs in a background thread; manual triggers may come from API threads.
"""

import enum
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class SchedulerState(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    COOLDOWN = "cooldown"


class RefreshScheduler:
    """
    Countdown-driven refresh loop with at-most-one refresh in flight.
    """

    def __init__(
        self,
        refresh: Callable[[], Any],
        window_ticks: int = 59,
        tick_seconds: float = 1.0,
    ):
        """
        Initialize refresh scheduler.

        Args:
            refresh: Callable running one refresh cycle; raising marks the cycle failed
            window_ticks: Countdown length after each cycle (default 59)
            tick_seconds: Wall time per tick in the background loop (default 1s)
        """
        if window_ticks < 1:
            raise ValueError("window_ticks must be at least 1")

        self._refresh = refresh
        self.window_ticks = window_ticks
        self.tick_seconds = tick_seconds

        self._lock = threading.Lock()
        self._state = SchedulerState.IDLE
        self._countdown = window_ticks

        self.cycles_ok = 0
        self.cycles_failed = 0
        self.triggers_coalesced = 0
        self.last_error: Optional[str] = None
        self.last_success_at: Optional[datetime] = None
        self.last_failure_at: Optional[datetime] = None

        self.running = False
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def countdown(self) -> int:
        return self._countdown

    def tick(self) -> bool:
        """
        Advance the countdown by one tick.

        Returns:
            True if this tick started a refresh
        """
        with self._lock:
            if self._state is SchedulerState.FETCHING:
                return False
            if self._countdown > 0:
                self._countdown -= 1
                return False
        return self.trigger("timer")

    def trigger(self, reason: str = "manual") -> bool:
        """
        Run a refresh now unless one is already in flight.

        Returns:
            False when coalesced into the in-flight refresh, True otherwise
        """
        with self._lock:
            if self._state is SchedulerState.FETCHING:
                self.triggers_coalesced += 1
                logger.debug(f"Refresh trigger ({reason}) dropped: fetch already in flight")
                return False
            self._state = SchedulerState.FETCHING

        logger.debug(f"Refresh started ({reason})")
        error: Optional[str] = None
        try:
            self._refresh()
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.warning(f"Refresh ({reason}) failed: {error}")

        now = datetime.now(timezone.utc)
        with self._lock:
            if error is None:
                self.cycles_ok += 1
                self.last_error = None
                self.last_success_at = now
            else:
                self.cycles_failed += 1
                self.last_error = error
                self.last_failure_at = now
            self._state = SchedulerState.COOLDOWN
            self._countdown = self.window_ticks
        return True

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "countdown": self._countdown,
                "window": self.window_ticks,
                "tick_seconds": self.tick_seconds,
                "running": self.running,
                "cycles_ok": self.cycles_ok,
                "cycles_failed": self.cycles_failed,
                "triggers_coalesced": self.triggers_coalesced,
                "last_error": self.last_error,
                "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
                "last_failure_at": self.last_failure_at.isoformat() if self.last_failure_at else None,
            }

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    def start(self, initial_fetch: bool = True):
        """Start the tick loop in a background thread"""
        if self.running:
            logger.warning("Refresh scheduler already running")
            return

        self.running = True
        self._thread = threading.Thread(
            target=self._run, args=(initial_fetch,), name="pnode-refresh", daemon=True
        )
        self._thread.start()

        logger.info(f"Refresh scheduler started: window={self.window_ticks} ticks, tick={self.tick_seconds}s")

    def stop(self):
        """Stop the tick loop; an in-flight refresh is left to finish"""
        if not self.running:
            return

        self.running = False
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)

        logger.info("Refresh scheduler stopped")

    def _run(self, initial_fetch: bool):
        if initial_fetch:
            self.trigger("startup")

        while self.running:
            # Sleep in small increments for responsive shutdown
            deadline = time.monotonic() + self.tick_seconds
            while self.running and time.monotonic() < deadline:
                time.sleep(min(0.1, max(0.0, deadline - time.monotonic())))

            if not self.running:
                break

            try:
                self.tick()
            except Exception as e:
                logger.error(f"Refresh tick error: {e}", exc_info=True)
