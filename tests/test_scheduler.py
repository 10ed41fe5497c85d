import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from bac.errors import PoolStartError
from bac.scheduler import WorkerPool


def test_imap_unordered_yields_in_completion_order():
    delays = {"slow": 0.2, "fast": 0.0}
    with WorkerPool(max_workers=2) as pool:
        got = [item for item, _, _ in pool.imap_unordered(lambda k: time.sleep(delays[k]) or k, ["slow", "fast"])]
    assert got == ["fast", "slow"]


def test_imap_unordered_returns_exceptions_per_item():
    def work(n):
        if n == 2:
            raise ValueError("bad item")
        return n * 10

    with WorkerPool(max_workers=3) as pool:
        results = {item: (res, exc) for item, res, exc in pool.imap_unordered(work, [1, 2, 3])}
    assert results[1] == (10, None)
    assert results[3] == (30, None)
    assert results[2][0] is None
    assert isinstance(results[2][1], ValueError)


def test_invalid_worker_count():
    with pytest.raises(ValueError):
        WorkerPool(max_workers=0)


class _FlakyExecutor:
    """Accepts the first submission, then refuses like an exhausted process."""

    def __init__(self):
        self._real = ThreadPoolExecutor(max_workers=1)
        self.calls = 0

    def submit(self, fn, *args):
        self.calls += 1
        if self.calls > 1:
            raise RuntimeError("can't start new thread")
        return self._real.submit(fn, *args)

    def shutdown(self, wait=True):
        self._real.shutdown(wait=wait)


def test_submission_failure_after_start_reports_remaining_items():
    pool = WorkerPool(max_workers=1)
    pool._exe.shutdown()
    pool._exe = _FlakyExecutor()
    refused = []
    done = [item for item, _, _ in pool.imap_unordered(lambda x: x, ["a", "b", "c"],
                                                        on_submit_error=lambda item, e: refused.append(item))]
    pool.shutdown()
    assert done == ["a"]
    assert refused == ["b", "c"]


def test_submission_failure_before_start_is_pool_start_error():
    pool = WorkerPool(max_workers=1)
    flaky = _FlakyExecutor()
    flaky.calls = 1
    pool._exe.shutdown()
    pool._exe = flaky
    with pytest.raises(PoolStartError):
        list(pool.imap_unordered(lambda x: x, ["a"]))
    pool.shutdown()
