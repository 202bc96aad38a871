"""
Recompute Scheduler
===================

Runs the popularity recompute on a fixed interval.

Ticks never overlap: a tick that fires while the previous pass is still
running is skipped and logged. Passes started elsewhere (CLI, admin endpoint)
are not serialized against these; the overwrite is idempotent.

Run with: python -m worker.cli schedule:run
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from worker.config import settings
from worker.jobs.recompute import run_popularity_recompute

logger = logging.getLogger(__name__)

RecomputeJob = Callable[..., Dict[str, Any]]


class RecomputeScheduler:
    """Interval runner around one recompute job."""

    def __init__(
        self,
        job: RecomputeJob = run_popularity_recompute,
        interval_minutes: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        self.job = job
        self.interval_seconds = (interval_minutes or settings.recompute_interval_minutes) * 60
        self.stop_event = stop_event or threading.Event()
        self._lock = threading.Lock()
        self.runs = 0
        self.skipped = 0
        self.failed = 0

    def tick(self) -> Optional[Dict[str, Any]]:
        """Run one pass unless one is in flight. Returns the pass stats."""
        if not self._lock.acquire(blocking=False):
            self.skipped += 1
            logger.warning("Recompute still running; skipping this tick")
            return None

        try:
            stats = self.job(as_of=datetime.utcnow(), cancel_event=self.stop_event)
            self.runs += 1
            return stats
        except Exception:
            self.failed += 1
            logger.exception("Scheduled recompute failed; retrying next tick")
            return None
        finally:
            self._lock.release()

    def run(self, max_ticks: Optional[int] = None) -> None:
        """Tick until stopped (or ``max_ticks`` ticks have fired)."""
        logger.info(f"Recompute scheduler started (every {self.interval_seconds / 60:g} min)")
        ticks = 0
        while not self.stop_event.is_set():
            self.tick()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            if self.stop_event.wait(self.interval_seconds):
                break
        logger.info(f"Recompute scheduler stopped after {self.runs} runs ({self.skipped} skipped)")

    def stop(self) -> None:
        self.stop_event.set()


def run_scheduler(
    interval_minutes: Optional[float] = None,
    stop_event: Optional[threading.Event] = None,
    job: RecomputeJob = run_popularity_recompute,
    max_ticks: Optional[int] = None,
) -> RecomputeScheduler:
    scheduler = RecomputeScheduler(job=job, interval_minutes=interval_minutes, stop_event=stop_event)
    scheduler.run(max_ticks=max_ticks)
    return scheduler
