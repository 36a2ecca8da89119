from __future__ import annotations

import threading
from typing import Callable, Optional


class PollScheduler:
    """Self re-arming poll timer.

    Each cycle is started by a one-shot timer, and the next timer is armed only
    after the cycle returns (or raises). A slow cycle therefore pushes the next
    one back instead of overlapping it. A non-blocking "cycle in progress" lock
    backs this up: a trigger that finds a cycle still running is dropped, and
    the running cycle re-arms the timer when it completes.
    """
    def __init__(
        self,
        cycle: Callable[[], None],
        interval_s: float,
        logger=None,
        first_delay_s: float = 0.0,
    ):
        self._cycle = cycle
        self.interval_s = float(interval_s)
        self.first_delay_s = float(first_delay_s)
        self.logger = logger

        self._lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def busy(self) -> bool:
        """True while a cycle is executing."""
        return self._cycle_lock.locked()

    def start(self) -> bool:
        """Begin polling. Returns False if already running (no second timer is armed)."""
        with self._lock:
            if self._running:
                return False
            self._running = True
            if self._timer is None:
                self._arm(self.first_delay_s)
        return True

    def stop(self):
        """Cancel the pending trigger, if any. Safe to call repeatedly.

        A cycle that is already executing is allowed to finish; it will not re-arm."""
        with self._lock:
            self._running = False
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _arm(self, delay_s: float):
        # Caller holds self._lock.
        t = threading.Timer(max(0.0, delay_s), self._fire)
        t.daemon = True
        self._timer = t
        t.start()

    def _fire(self):
        with self._lock:
            if not self._running:
                return
            self._timer = None

        if not self._cycle_lock.acquire(blocking=False):
            if self.logger is not None:
                self.logger.emit("poll_overlap_skipped")
            return

        try:
            self._cycle()
        except Exception as e:
            if self.logger is not None:
                self.logger.emit("poll_cycle_error", error=str(e), kind=type(e).__name__)
        finally:
            self._cycle_lock.release()
            with self._lock:
                if self._running and self._timer is None:
                    self._arm(self.interval_s)
