"""Tests for the background network mirror."""
import threading

import pytest

from notesync.exceptions import BatchSizeExceededError, NetworkError
from notesync.services import network_mirror
from notesync.services.network_mirror import NetworkMirror


class Flaky:
    """Callable that fails ``failures`` times before succeeding."""

    def __init__(self, failures=0, exc=None):
        self.failures = failures
        self.exc = exc or NetworkError("offline")
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "ok"


@pytest.fixture
def sleeps(monkeypatch):
    """Record retry delays instead of sleeping."""
    recorded = []
    monkeypatch.setattr(network_mirror.time, "sleep", recorded.append)
    return recorded


class TestInlineMirror:
    """Inline mode runs tasks in the caller's thread."""

    def test_success(self, sleeps):
        mirror = NetworkMirror(inline=True)
        fn = Flaky()

        mirror.submit("insert_or_update", fn, note_id="n1")

        assert fn.calls == 1
        assert mirror.stats() == {"submitted": 1, "completed": 1, "failed": 0, "pending": 0}
        assert sleeps == []

    def test_retries_with_growing_delay(self, sleeps):
        mirror = NetworkMirror(max_retries=3, retry_delay=0.5, inline=True)
        fn = Flaky(failures=2)

        mirror.submit("delete", fn, note_id="n1")

        assert fn.calls == 3
        assert sleeps == [0.5, 1.0]
        assert mirror.stats()["completed"] == 1

    def test_gives_up_after_retries(self, sleeps, caplog):
        mirror = NetworkMirror(max_retries=2, retry_delay=0.1, inline=True)
        fn = Flaky(failures=10)

        mirror.submit("delete", fn, note_id="n1")

        assert fn.calls == 3
        assert len(sleeps) == 2
        assert mirror.stats()["failed"] == 1
        assert "gave up after 3 attempts" in caplog.text

    def test_timeouts_are_retried(self, sleeps):
        mirror = NetworkMirror(max_retries=1, retry_delay=0.0, inline=True)
        fn = Flaky(failures=1, exc=TimeoutError())

        mirror.submit("insert_or_update", fn)

        assert fn.calls == 2
        assert mirror.stats()["completed"] == 1

    def test_oversized_batch_is_not_retried(self, sleeps):
        mirror = NetworkMirror(max_retries=3, inline=True)
        fn = Flaky(failures=10, exc=BatchSizeExceededError(600, 500))

        mirror.submit("insert_or_update_many", fn)

        assert fn.calls == 1
        assert sleeps == []
        assert mirror.stats()["failed"] == 1

    def test_submit_after_shutdown_is_dropped(self):
        mirror = NetworkMirror(inline=True)
        mirror.shutdown()
        fn = Flaky()

        mirror.submit("delete", fn)

        assert fn.calls == 0
        assert mirror.stats()["submitted"] == 0


class TestThreadedMirror:
    """The worker thread serves tasks in submission order."""

    def test_tasks_run_in_fifo_order(self):
        mirror = NetworkMirror(max_retries=0)
        order = []

        for i in range(20):
            mirror.submit("op", lambda i=i: order.append(i))

        assert mirror.drain(timeout=5)
        assert order == list(range(20))
        mirror.shutdown()

    def test_tasks_do_not_run_in_the_caller_thread(self):
        mirror = NetworkMirror()
        threads = []

        mirror.submit("op", lambda: threads.append(threading.current_thread().name))
        mirror.drain(timeout=5)

        assert threads == ["notesync-mirror"]
        mirror.shutdown()

    def test_drain_times_out_while_a_task_blocks(self):
        mirror = NetworkMirror()
        release = threading.Event()

        mirror.submit("op", lambda: release.wait(5))

        assert mirror.drain(timeout=0.05) is False
        release.set()
        assert mirror.drain(timeout=5) is True
        mirror.shutdown()

    def test_shutdown_waits_for_queued_tasks(self):
        mirror = NetworkMirror()
        done = []

        for i in range(5):
            mirror.submit("op", lambda i=i: done.append(i))
        mirror.shutdown(wait=True, timeout=5)

        assert done == [0, 1, 2, 3, 4]
        assert mirror.stats()["pending"] == 0

    def test_failure_does_not_block_later_tasks(self, sleeps):
        mirror = NetworkMirror(max_retries=1)
        later = []

        mirror.submit("op", Flaky(failures=5))
        mirror.submit("op", lambda: later.append(True))
        mirror.drain(timeout=5)

        assert later == [True]
        stats = mirror.stats()
        assert stats["failed"] == 1
        assert stats["completed"] == 1
        mirror.shutdown()


def test_from_config(test_config):
    mirror = NetworkMirror.from_config(test_config)

    assert mirror.inline is True
    assert mirror.max_retries == test_config.mirror_max_retries
    assert mirror.retry_delay == test_config.mirror_retry_delay
