import threading
import time

import pytest

from cloudmount.scheduler import Scheduler


@pytest.fixture
def scheduler():
    scheduler = Scheduler()
    yield scheduler
    scheduler.shutdown()


def test_run_immediately(scheduler):
    ran = threading.Event()

    scheduler.add_periodic("task", ran.set, 3600, run_immediately=True)
    scheduler.start()

    assert ran.wait(5)


def test_run_periodically(scheduler):
    runs = []

    scheduler.add_periodic("task", lambda: runs.append(1), 0.1)
    scheduler.start()

    time.sleep(1)

    assert len(runs) >= 2


def test_not_run_before_interval(scheduler):
    runs = []

    scheduler.add_periodic("task", lambda: runs.append(1), 3600)
    scheduler.start()

    time.sleep(0.2)

    assert runs == []


def test_cancel(scheduler):
    runs = []

    task = scheduler.add_periodic("task", lambda: runs.append(1), 0.1)
    scheduler.start()

    task.cancel()
    time.sleep(0.3)

    count = len(runs)
    time.sleep(0.3)

    assert len(runs) == count

    # Cancelling twice is harmless
    task.cancel()


def test_failing_task_keeps_running(scheduler, caplog):
    runs = []

    def task():
        runs.append(1)
        raise RuntimeError("oops")

    scheduler.add_periodic("failing", task, 0.1, run_immediately=True)
    scheduler.start()

    time.sleep(1)

    assert len(runs) >= 2
    assert "task failing failed: oops" in caplog.text


def test_duplicate_task(scheduler):
    scheduler.add_periodic("task", lambda: None, 10)

    with pytest.raises(ValueError):
        scheduler.add_periodic("task", lambda: None, 10)


def test_shutdown(scheduler):
    scheduler.start()
    assert scheduler.running

    scheduler.shutdown()
    assert not scheduler.running

    # Shutting down twice is harmless
    scheduler.shutdown()
