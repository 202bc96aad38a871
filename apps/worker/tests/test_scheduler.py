"""
Recompute Scheduler Tests
=========================

The scheduler is exercised with stand-in jobs; no database is involved.
"""

import threading

from worker.scheduler import RecomputeScheduler, run_scheduler


class RecordingJob:
    """Records every call; optionally blocks until released."""

    def __init__(self, block: bool = False, fail: bool = False):
        self.calls = []
        self.started = threading.Event()
        self.release = threading.Event()
        self.block = block
        self.fail = fail

    def __call__(self, as_of=None, cancel_event=None):
        self.calls.append(as_of)
        self.started.set()
        if self.block:
            self.release.wait(timeout=5)
        if self.fail:
            raise RuntimeError("database unavailable")
        return {"items": 0, "updated": 0}


class TestTicks:

    def test_tick_runs_job_with_reference_time(self):
        job = RecordingJob()
        scheduler = RecomputeScheduler(job=job, interval_minutes=1)

        stats = scheduler.tick()

        assert stats == {"items": 0, "updated": 0}
        assert scheduler.runs == 1
        assert job.calls[0] is not None

    def test_overlapping_tick_is_skipped(self):
        job = RecordingJob(block=True)
        scheduler = RecomputeScheduler(job=job, interval_minutes=1)

        worker = threading.Thread(target=scheduler.tick)
        worker.start()
        assert job.started.wait(timeout=5)

        assert scheduler.tick() is None
        assert scheduler.skipped == 1

        job.release.set()
        worker.join(timeout=5)
        assert scheduler.runs == 1
        assert len(job.calls) == 1

    def test_failed_pass_is_counted_and_lock_released(self):
        job = RecordingJob(fail=True)
        scheduler = RecomputeScheduler(job=job, interval_minutes=1)

        assert scheduler.tick() is None
        assert scheduler.failed == 1

        job.fail = False
        assert scheduler.tick() is not None
        assert scheduler.runs == 1


class TestRunLoop:

    def test_max_ticks(self):
        job = RecordingJob()
        scheduler = run_scheduler(interval_minutes=0.0001, job=job, max_ticks=3)

        assert scheduler.runs == 3
        assert len(job.calls) == 3

    def test_preset_stop_event_runs_nothing(self):
        job = RecordingJob()
        stop = threading.Event()
        stop.set()

        scheduler = run_scheduler(interval_minutes=1, stop_event=stop, job=job)
        assert scheduler.runs == 0
        assert job.calls == []

    def test_stop_interrupts_the_wait(self):
        job = RecordingJob()
        scheduler = RecomputeScheduler(job=job, interval_minutes=60)

        runner = threading.Thread(target=scheduler.run)
        runner.start()
        assert job.started.wait(timeout=5)

        scheduler.stop()
        runner.join(timeout=5)
        assert not runner.is_alive()
        assert scheduler.runs == 1

    def test_stop_event_is_handed_to_the_job(self):
        seen = []

        def job(as_of=None, cancel_event=None):
            seen.append(cancel_event)
            return {}

        stop = threading.Event()
        RecomputeScheduler(job=job, stop_event=stop, interval_minutes=1).tick()
        assert seen == [stop]
