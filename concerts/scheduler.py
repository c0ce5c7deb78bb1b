"""Cancelable periodic jobs on an asyncio event loop."""
import asyncio
import logging
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class PeriodicJob:
    """Runs a callable every ``interval_seconds`` on an event loop.

    A plain callable runs on the loop thread and completes before any other
    callback is run, so it needs no locking against other loop callbacks.
    A callable returning a coroutine is wrapped in a task; the next tick is
    skipped while that task is still running.
    """

    def __init__(self, name: str, interval_seconds: float, callback: Callable[[], object],
                 loop: asyncio.AbstractEventLoop):
        if interval_seconds <= 0:
            raise ValueError(f"Interval for job '{name}' must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.loop = loop
        self.runs = 0
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._stopped = True

    @property
    def active(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        self.cancel()
        self._stopped = False
        self._handle = self.loop.call_later(self.interval_seconds, self._run)

    def cancel(self) -> None:
        self._stopped = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _run(self) -> None:
        self._handle = None
        if self._task is not None and not self._task.done():
            logger.warning(f"Periodic job '{self.name}' still running, skipping this run")
        else:
            self._call()
        # cancel() from inside the callback leaves the job stopped
        if not self._stopped:
            self._handle = self.loop.call_later(self.interval_seconds, self._run)

    def _call(self) -> None:
        try:
            result = self.callback()
        except Exception as e:
            logger.error(f"Periodic job '{self.name}' failed: {e}", exc_info=True)
            self.runs += 1
            return

        if asyncio.iscoroutine(result):
            self._task = self.loop.create_task(result)
            self._task.add_done_callback(self._task_done)
        else:
            self.runs += 1

    def _task_done(self, task: asyncio.Task) -> None:
        if task is self._task:
            self._task = None
        if task.cancelled():
            return
        self.runs += 1
        error = task.exception()
        if error is not None:
            logger.error(f"Periodic job '{self.name}' failed: {error}", exc_info=error)


class Scheduler:
    """Named periodic jobs sharing one event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self.jobs: Dict[str, PeriodicJob] = {}

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def every(self, name: str, interval_seconds: float, callback: Callable[[], object]) -> PeriodicJob:
        """
        Schedule ``callback`` to run every ``interval_seconds``.

        Replaces a job with the same name.

        Args:
            name: Job name
            interval_seconds: Seconds between runs
            callback: Callable run on the loop

        Returns:
            The started PeriodicJob
        """
        self.cancel(name)
        job = PeriodicJob(name, interval_seconds, callback, self.loop)
        job.start()
        self.jobs[name] = job
        logger.info(f"Scheduled '{name}' every {interval_seconds:g} seconds")
        return job

    def cancel(self, name: str) -> None:
        job = self.jobs.pop(name, None)
        if job is not None:
            job.cancel()

    def cancel_all(self) -> None:
        for name in list(self.jobs):
            self.cancel(name)
