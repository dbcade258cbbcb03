import threading
import time

from lsmkit.pipeline import PipelineCommitQueue, SequenceCounter


def _start(target, *args):
    results = []

    def run():
        results.append(target(*args))

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread, results


def test_commit_in_order_publishes():
    counter = SequenceCounter(0)
    queue = PipelineCommitQueue(counter)
    queue.commit(0, 5)
    assert counter.last_sequence == 5
    queue.commit(5, 9)
    assert counter.last_sequence == 9


def test_out_of_order_commit_waits_for_predecessor():
    counter = SequenceCounter(0)
    queue = PipelineCommitQueue(counter)
    thread, _ = _start(queue.commit, 3, 7)
    time.sleep(0.05)
    assert thread.is_alive()
    assert counter.last_sequence == 0
    queue.commit(0, 3)
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert counter.last_sequence == 7


def test_many_writers_finish_in_sequence_order():
    counter = SequenceCounter(0)
    queue = PipelineCommitQueue(counter)
    threads = [_start(queue.commit, i, i + 1)[0] for i in reversed(range(20))]
    for thread in threads:
        thread.join(timeout=5)
    assert all(not t.is_alive() for t in threads)
    assert counter.last_sequence == 20


def test_wait_pending_writers_already_visible():
    counter = SequenceCounter(10)
    queue = PipelineCommitQueue(counter)
    assert queue.wait_pending_writers(10) is False
    assert queue.wait_pending_writers(4) is False


def test_wait_pending_writers_released_by_commit():
    counter = SequenceCounter(0)
    queue = PipelineCommitQueue(counter)
    thread, results = _start(queue.wait_pending_writers, 2)
    time.sleep(0.05)
    assert thread.is_alive()
    queue.commit(0, 2)
    thread.join(timeout=5)
    assert results == [False]


def test_stop_releases_waiters():
    counter = SequenceCounter(0)
    queue = PipelineCommitQueue(counter)
    committer, _ = _start(queue.commit, 4, 8)
    waiter, results = _start(queue.wait_pending_writers, 8)
    time.sleep(0.05)
    queue.stop()
    committer.join(timeout=5)
    waiter.join(timeout=5)
    assert not committer.is_alive()
    assert results == [True]
    assert counter.last_sequence == 0
    assert queue.stopped is True


def test_matching_commit_after_stop_still_publishes():
    counter = SequenceCounter(3)
    queue = PipelineCommitQueue(counter)
    queue.stop()
    queue.commit(3, 6)
    assert counter.last_sequence == 6
    queue.commit(1, 2)
    assert counter.last_sequence == 6