"""Progress tracking for paper simulation runs."""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Optional

from tqdm import tqdm

from capital_agent.agent.cycle import CycleReport

logger = logging.getLogger(__name__)


@dataclass
class CycleStats:
    """Statistics tracked during a run."""

    cycles_run: int = 0
    cycles_skipped: int = 0
    cycle_errors: int = 0
    decisions: int = 0
    executed: int = 0
    rejected: int = 0
    pending: int = 0
    failed: int = 0
    start_time: float = field(default_factory=time.time)

    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    def to_dict(self) -> dict:
        return {
            "cycles_run": self.cycles_run,
            "cycles_skipped": self.cycles_skipped,
            "cycle_errors": self.cycle_errors,
            "decisions": self.decisions,
            "executed": self.executed,
            "rejected": self.rejected,
            "pending": self.pending,
            "failed": self.failed,
            "elapsed_seconds": self.elapsed_seconds(),
        }


class CycleProgress:
    """
    Thread-safe progress tracker for agent cycles.

    Displays a tqdm bar over the expected number of cycles and logs a
    summary on completion.

    Example:
        >>> with CycleProgress(total_cycles=20, description="Paper run") as progress:
        ...     for _ in range(20):
        ...         progress.record(manager.run_cycle(agent_id))
    """

    def __init__(
        self,
        total_cycles: int,
        description: str = "Cycles",
        show_progress_bar: bool = True,
    ):
        self.total_cycles = total_cycles
        self.description = description
        self.show_progress_bar = show_progress_bar

        self.stats = CycleStats()
        self.pbar: Optional[tqdm] = None
        self.lock = threading.Lock()
        self.started = False
        self.finished = False

    def start(self) -> None:
        with self.lock:
            if self.started:
                logger.warning("Progress tracker already started")
                return

            self.started = True
            self.stats.start_time = time.time()

            if self.show_progress_bar:
                self.pbar = tqdm(
                    total=self.total_cycles,
                    desc=self.description,
                    unit="cycle",
                    ncols=100,
                    bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]",
                )

            logger.info(f"Progress tracker started: {self.description}")

    def record(self, report: CycleReport) -> None:
        """Fold one cycle report into the running totals."""
        with self.lock:
            if report.completed:
                self.stats.cycles_run += 1
            elif report.error:
                self.stats.cycle_errors += 1
            else:
                self.stats.cycles_skipped += 1
            self.stats.decisions += len(report.decisions)
            self.stats.executed += len(report.executed)
            self.stats.rejected += len(report.rejected)
            self.stats.pending += len(report.pending)
            self.stats.failed += len(report.failed)
            if self.pbar:
                self.pbar.update(1)
                self._update_postfix()

    def _update_postfix(self) -> None:
        if self.pbar:
            postfix = (
                f"decisions={self.stats.decisions} "
                f"executed={self.stats.executed} "
                f"rejected={self.stats.rejected}"
            )
            if self.stats.cycle_errors > 0:
                postfix += f" (errors={self.stats.cycle_errors})"
            self.pbar.set_postfix_str(postfix)

    def get_stats(self) -> CycleStats:
        """Copy of the current statistics."""
        with self.lock:
            return replace(self.stats)

    def finish(self) -> None:
        """Close the bar and log a summary."""
        with self.lock:
            if self.finished:
                logger.warning("Progress tracker already finished")
                return

            self.finished = True

            if self.pbar:
                self.pbar.close()

            elapsed = self.stats.elapsed_seconds()
            logger.info("=" * 80)
            logger.info(f"Run completed: {self.description}")
            logger.info(f"  Cycles run:        {self.stats.cycles_run:,}")
            if self.stats.cycles_skipped > 0:
                logger.info(f"  Cycles skipped:    {self.stats.cycles_skipped:,}")
            if self.stats.cycle_errors > 0:
                logger.info(f"  Cycle errors:      {self.stats.cycle_errors:,}")
            logger.info(f"  Decisions:         {self.stats.decisions:,}")
            logger.info(f"  Executed:          {self.stats.executed:,}")
            logger.info(f"  Rejected:          {self.stats.rejected:,}")
            logger.info(f"  Pending approval:  {self.stats.pending:,}")
            logger.info(f"  Failed:            {self.stats.failed:,}")
            logger.info(f"  Elapsed time:      {elapsed:.1f}s")
            logger.info("=" * 80)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
