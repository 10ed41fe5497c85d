"""Bounded worker pool for running conversion units (standard library).

`imap_unordered` yields results in completion order and never lets an
exception escape the iteration: each item comes back with either its result
or the exception it raised.
"""
from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor, Future, wait, FIRST_COMPLETED
from typing import Callable, Iterable, Optional, Tuple, Any, Dict, Set, Iterator

from loguru import logger

from .errors import PoolStartError


DEFAULT_MAX_WORKERS = 4


class WorkerPool:
    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS, *, name: str = "bac-worker") -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        try:
            self._exe = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        except (RuntimeError, OSError) as e:
            raise PoolStartError(f"Could not create worker pool: {e}") from e
        self._max_workers = max_workers

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def imap_unordered(
        self,
        fn: Callable[[Any], Any],
        iterable: Iterable[Any],
        *,
        on_submit_error: Optional[Callable[[Any, BaseException], None]] = None,
    ) -> Iterator[Tuple[Any, Any, Optional[BaseException]]]:
        """Submit every item up front, then yield (item, result, exc) as each finishes.

        The executor itself bounds concurrency to `max_workers`; extra items
        wait in its queue. If submitting fails before anything was submitted,
        PoolStartError is raised. A later submission failure is reported per
        remaining item through `on_submit_error` and those items are skipped.
        """
        items = list(iterable)
        pending: Dict[Future, Any] = {}
        logger.debug(f"pool: {len(items)} items across {self._max_workers} workers")

        for idx, item in enumerate(items):
            try:
                # Each task runs in a copy of the caller's context (log run id).
                fut = self._exe.submit(contextvars.copy_context().run, fn, item)
            except RuntimeError as e:
                if not pending:
                    raise PoolStartError(f"Could not start worker pool: {e}") from e
                logger.error(f"pool: submission stopped after {idx} of {len(items)} items: {e}")
                if on_submit_error is not None:
                    for rest in items[idx:]:
                        on_submit_error(rest, e)
                break
            pending[fut] = item

        active: Set[Future] = set(pending)
        while active:
            done_set, _ = wait(active, return_when=FIRST_COMPLETED)
            for fut in done_set:
                active.remove(fut)
                item = pending.pop(fut)
                exc = fut.exception()
                yield item, (None if exc is not None else fut.result()), exc

    def shutdown(self, wait: bool = True) -> None:
        self._exe.shutdown(wait=wait)

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown(wait=True)
