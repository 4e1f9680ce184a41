import threading
import time

import pytest

from hostloop.host.waiting import wait_any
from hostloop.scheduler.completion import CompletionQueue
from hostloop.scheduler.errors import DispatchFailure, WorkerFailure
from hostloop.scheduler.models import AsyncTaskResult
from hostloop.scheduler.worker import WorkerPool


def _collect(queue, count, timeout=5.0):
    results = []
    deadline = time.monotonic() + timeout
    while len(results) < count and time.monotonic() < deadline:
        if wait_any([queue.wake_signal], timeout=0.1):
            results.extend(queue.drain())
    return results


def test_puts_coalesce_into_one_wakeup():
    queue = CompletionQueue()
    try:
        queue.put(AsyncTaskResult(continuation_id=1, success=True, payload=b"a"))
        queue.put(AsyncTaskResult(continuation_id=2, success=True, payload=b"b"))
        assert wait_any([queue.wake_signal], timeout=0) == 1
        assert wait_any([queue.wake_signal], timeout=0) is None
        assert [item.continuation_id for item in queue.drain()] == [1, 2]
        assert queue.drain() == []
    finally:
        queue.close()


def test_put_after_close_is_discarded():
    queue = CompletionQueue()
    queue.close()
    assert not queue.put(AsyncTaskResult(continuation_id=1, success=True))
    assert queue.drain() == []
    queue.wake()


def test_outcome_pairs():
    ok = AsyncTaskResult(continuation_id=1, success=True, payload=b"P")
    failed = AsyncTaskResult(continuation_id=1, success=False, error="M")
    assert ok.outcome == (True, b"P")
    assert failed.outcome == (False, "M")


def test_each_submission_posts_exactly_one_result():
    queue = CompletionQueue()
    pool = WorkerPool(queue, worker_count=4)
    try:
        for continuation_id in range(1, 41):
            pool.submit(lambda value=continuation_id: value * 2, continuation_id)
        results = _collect(queue, 40)
    finally:
        pool.shutdown()
        queue.close()
    assert sorted(result.continuation_id for result in results) == list(range(1, 41))
    assert all(result.success and result.payload == result.continuation_id * 2 for result in results)


def test_failing_unit_carries_its_message():
    queue = CompletionQueue()
    pool = WorkerPool(queue, worker_count=1)

    def failing():
        raise WorkerFailure("disk on fire")

    try:
        pool.submit(failing, 7)
        results = _collect(queue, 1)
    finally:
        pool.shutdown()
        queue.close()
    assert results == [AsyncTaskResult(continuation_id=7, success=False, error="disk on fire")]


def test_submit_after_shutdown_is_a_dispatch_failure():
    queue = CompletionQueue()
    pool = WorkerPool(queue, worker_count=1)
    pool.shutdown()
    with pytest.raises(DispatchFailure):
        pool.submit(lambda: None, 1)
    queue.close()


def test_shutdown_drains_in_flight_work():
    queue = CompletionQueue()
    pool = WorkerPool(queue, worker_count=1)
    started = threading.Event()
    finished = []

    def slow():
        started.set()
        time.sleep(0.05)
        finished.append(True)
        return b"done"

    pool.submit(slow, 1)
    assert started.wait(2)
    pool.shutdown(wait=True)
    assert finished == [True]
    assert [item.payload for item in queue.drain()] == [b"done"]
    queue.close()
