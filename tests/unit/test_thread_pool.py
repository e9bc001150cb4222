"""
Unit tests for the worker thread pool.
"""

import threading

import pytest

from fsserver.core.thread_pool import ThreadPool


@pytest.fixture
def pool():
    pool = ThreadPool(min_workers=2, max_workers=4, queue_size=10, idle_timeout=0.1)
    pool.start()
    yield pool
    pool.shutdown(wait=True, timeout=5.0)


class TestThreadPool:

    def test_runs_tasks(self, pool: ThreadPool):
        done = threading.Event()
        results = []

        def task(value):
            results.append(value)
            done.set()

        assert pool.submit(task, args=(42,))
        assert done.wait(5.0)
        assert results == [42]

    def test_failing_task_keeps_worker(self, pool: ThreadPool):
        done = threading.Event()

        def broken():
            raise RuntimeError("boom")

        pool.submit(broken)
        pool.submit(done.set)

        assert done.wait(5.0)

    def test_full_queue_rejected(self):
        """Test that submit returns False instead of blocking."""
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1, idle_timeout=0.1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def blocker():
            started.set()
            release.wait(5.0)

        try:
            assert pool.submit(blocker)
            assert started.wait(5.0)
            assert pool.submit(blocker)        # waits in the queue
            assert not pool.submit(blocker)    # queue full
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_scales_up_under_load(self):
        pool = ThreadPool(min_workers=1, max_workers=3, queue_size=10, idle_timeout=0.1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def blocker():
            started.set()
            release.wait(5.0)

        try:
            pool.submit(blocker)
            assert started.wait(5.0)
            pool.submit(blocker)

            assert pool.stats["workers"]["total"] == 2
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_submit_requires_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool().submit(print)

    def test_stats_shape(self, pool: ThreadPool):
        stats = pool.stats

        assert stats["workers"]["min"] == 2
        assert stats["workers"]["max"] == 4
        assert stats["tasks"]["queued"] == 0
