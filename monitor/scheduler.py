"""Background scheduler driving the tick loop and the predictive loop."""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import schedule

logger = logging.getLogger("perfwatch.scheduler")


class EngineScheduler:
    """Two independently cancellable jobs on a private schedule.Scheduler.

    Jobs run on a small worker pool so a slow predictive pass never delays
    a tick. A job whose previous run is still in flight is skipped, not
    queued.
    """

    def __init__(self, tick, predictive, tick_interval_ms=60_000, predictive_interval_ms=300_000,
                 poll_seconds=0.5):
        self._tasks = {"tick": tick, "predictive": predictive}
        self._intervals = {
            "tick": tick_interval_ms / 1000.0,
            "predictive": predictive_interval_ms / 1000.0,
        }
        self.poll_seconds = poll_seconds
        self._scheduler = schedule.Scheduler()
        self._jobs = {}
        self._in_flight = {}
        self._consecutive_failures = {"tick": 0, "predictive": 0}
        self._stop = threading.Event()
        self._thread = None
        self._executor = None

    @property
    def running(self):
        return self._thread is not None

    def start(self):
        """Start both loops. The first tick fires immediately."""
        if self._thread is not None:
            return
        self._stop.clear()
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="perfwatch-sched")
        for name, interval in self._intervals.items():
            self._jobs[name] = self._scheduler.every(interval).seconds.do(self._launch, name)

        self._thread = threading.Thread(target=self._run_loop, name="perfwatch-scheduler", daemon=True)
        self._thread.start()
        logger.info(
            f"Scheduler started (tick every {self._intervals['tick']:.0f}s, "
            f"predictive every {self._intervals['predictive']:.0f}s)"
        )

    def stop(self):
        """Cancel both jobs. An in-flight run finishes but nothing new starts."""
        self._stop.set()
        for job in self._jobs.values():
            self._scheduler.cancel_job(job)
        self._jobs.clear()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None
        logger.info("Scheduler stopped")

    def _run_loop(self):
        self._launch("tick")
        while not self._stop.is_set():
            self._scheduler.run_pending()
            self._stop.wait(self.poll_seconds)

    def _launch(self, name):
        if self._stop.is_set() or self._executor is None:
            return
        previous = self._in_flight.get(name)
        if previous is not None and not previous.done():
            logger.warning(f"Skipping {name}: previous run still in progress")
            return
        self._in_flight[name] = self._executor.submit(self._run_job, name)

    def _run_job(self, name):
        try:
            self._tasks[name]()
            self._consecutive_failures[name] = 0
        except Exception as e:
            self._consecutive_failures[name] += 1
            count = self._consecutive_failures[name]
            logger.error(f"{name} failed ({count} consecutive): {e}")
            if count >= 5:
                logger.critical(f"5+ consecutive {name} failures!")
