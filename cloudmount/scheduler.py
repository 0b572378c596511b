"""Module with the process-wide scheduler of periodic background tasks."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from cloudmount.logger import log


class PeriodicTask:
    """Handle of a task that has been scheduled to run on a fixed interval."""

    def __init__(self, scheduler: Scheduler, name: str):
        """Instantiate a handle for the task with the given name."""
        self._scheduler = scheduler
        self.name = name

    def cancel(self) -> None:
        """Stop running the task. A run that is already in progress is not aborted."""
        self._scheduler.cancel(self.name)


class Scheduler:
    """
    Owner of all periodic background work, like polling for changes.

    Tasks run in a pool of background threads. A task never runs concurrently with
    itself: if a run takes longer than the interval then missed runs are collapsed into
    one. Exceptions raised by a task are logged and don't affect its schedule.
    """

    def __init__(self) -> None:
        """Instantiate a scheduler without any tasks."""
        self._scheduler = BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1}
        )
        self._tasks: Dict[str, PeriodicTask] = {}

    @property
    def running(self) -> bool:
        """Return whether the scheduler has been started and not shut down."""
        return self._scheduler.running

    def start(self) -> None:
        """Start running the scheduled tasks in the background."""
        self._scheduler.start()

    def shutdown(self, wait: bool = True) -> None:
        """Stop all tasks, by default waiting for runs in progress to finish."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)

        self._tasks.clear()

    def add_periodic(
        self,
        name: str,
        func: Callable[[], object],
        interval: float,
        run_immediately: bool = False,
    ) -> PeriodicTask:
        """
        Schedule a function to run every interval seconds.

        If run_immediately is set, then the first run happens right away instead of
        after the first interval has passed.
        """
        if name in self._tasks:
            raise ValueError(f"task {name} is already scheduled")

        def run() -> None:
            try:
                func()
            except Exception as e:
                log.error(f"task {name} failed: {e}")

        options = {}
        if run_immediately:
            options["next_run_time"] = datetime.now()

        self._scheduler.add_job(
            run, "interval", seconds=interval, id=name, name=name, **options
        )

        task = PeriodicTask(self, name)
        self._tasks[name] = task

        log.debug(f"scheduled task {name} every {interval}s")

        return task

    def cancel(self, name: str) -> None:
        """Remove a task from the schedule."""
        self._tasks.pop(name, None)

        try:
            self._scheduler.remove_job(name)
        except JobLookupError:
            # Already cancelled
            pass
