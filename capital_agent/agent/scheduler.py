"""Per-agent interval scheduler."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class AgentScheduler:
    """
    Fires ``callback`` every ``interval_seconds`` on a dedicated daemon thread.

    Ticks are sequential on that thread, so the scheduler never runs the
    callback concurrently with itself. Exceptions from the callback are
    logged and the schedule continues.

    Example:
        >>> scheduler = AgentScheduler("agent_1", 60.0, run_cycle)
        >>> scheduler.start()
        >>> scheduler.stop()
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], object],
        run_immediately: bool = True,
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.run_immediately = run_immediately
        self.ticks = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop.is_set()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                logger.warning(f"Scheduler {self.name} already running")
                return
            self._stop.clear()
            self._thread = threading.Thread(
                target=self._run, name=f"scheduler-{self.name}", daemon=True
            )
            self._thread.start()
        logger.debug(f"Scheduler {self.name} started (every {self.interval_seconds:g}s)")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the schedule. Waits for an in-flight tick unless called from within it."""
        self._stop.set()
        with self._lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Scheduler {self.name} did not stop within {timeout}s")
        logger.debug(f"Scheduler {self.name} stopped")

    def _tick(self) -> None:
        self.ticks += 1
        try:
            self.callback()
        except Exception as e:
            logger.error(f"Scheduled tick for {self.name} failed: {e}", exc_info=True)

    def _run(self) -> None:
        if self.run_immediately and not self._stop.is_set():
            self._tick()
        while not self._stop.wait(self.interval_seconds):
            self._tick()
