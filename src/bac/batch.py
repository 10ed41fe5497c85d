"""Batch scheduler: run conversion units on a bounded pool and tally results.

The thread calling `run_batch` is the coordination context. It is the only
writer of the aggregate counters and the only caller of the batch callback,
and it consumes unit completions in the order they finish.
"""
from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from loguru import logger

from .errors import ConversionError, UnexpectedError
from .events import BatchCallback, ProgressCallback
from .logging import bind_run, log_event
from .models import ConversionSettings, MediaFile, SettingsSnapshot, Status
from .paths import unique_output_stems
from .resolver import Encoder
from .scheduler import DEFAULT_MAX_WORKERS, WorkerPool
from .unit import ConversionOutcome, ConversionUnit


@dataclass
class BatchResult:
    total: int = 0
    completed: int = 0
    failed: int = 0
    failures: List[Tuple[MediaFile, ConversionError]] = field(default_factory=list)
    run_id: Optional[str] = None

    @property
    def finished(self) -> int:
        return self.completed + self.failed

    @property
    def progress(self) -> float:
        return 1.0 if self.total == 0 else self.finished / self.total

    def summary(self) -> str:
        return f"Conversion complete: {self.completed} successful, {self.failed} failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "failures": [
                {"file": str(mf.path), "error": type(err).__name__, "message": err.user_message}
                for mf, err in self.failures
            ],
        }


def _check_unique(files: Iterable[MediaFile]) -> None:
    seen = set()
    for mf in files:
        if mf.path in seen:
            raise ValueError(f"Duplicate source path in batch: {mf.path}")
        seen.add(mf.path)


def build_units(
    files: Sequence[MediaFile],
    settings: Union[ConversionSettings, SettingsSnapshot],
    output_dir: Union[str, Path],
    *,
    encoder: Encoder = "ffmpeg",
    callback: Optional[ProgressCallback] = None,
    callback_factory: Optional[Callable[[MediaFile], ProgressCallback]] = None,
) -> List[ConversionUnit]:
    """Create fresh units for a new run.

    Settings are snapshotted once for the whole batch, every file is reset to
    PENDING, and colliding output names get a " (n)" suffix.
    """
    _check_unique(files)
    snap = settings.snapshot() if isinstance(settings, ConversionSettings) else settings
    stems = unique_output_stems([mf.path for mf in files], snap.format_spec.extension)
    units: List[ConversionUnit] = []
    for mf, stem in zip(files, stems):
        mf.reset()
        cb = callback_factory(mf) if callback_factory is not None else callback
        units.append(
            ConversionUnit(mf, snap, output_dir, callback=cb, encoder=encoder, output_stem=stem)
        )
    return units


class BatchScheduler:
    """Run a list of conversion units with at most `max_concurrency` at a time."""

    def __init__(self, max_concurrency: int = DEFAULT_MAX_WORKERS, callback: Optional[BatchCallback] = None) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self.callback = callback or BatchCallback()
        self._lock = threading.Lock()
        self._running = False

    def _emit_progress(self, fraction: float) -> None:
        try:
            self.callback.on_progress(fraction)
        except Exception:
            logger.exception("Batch progress callback failed")

    def _emit_complete(self, result: BatchResult) -> None:
        try:
            self.callback.on_complete(result)
        except Exception:
            logger.exception("Batch completion callback failed")

    @staticmethod
    def _classify(unit: ConversionUnit, outcome: Optional[ConversionOutcome], exc: Optional[BaseException]) -> Optional[ConversionError]:
        """Return the unit's error (None on success), wrapping unexpected exceptions."""
        mf = unit.media_file
        if exc is None and outcome is not None:
            return outcome.error
        if isinstance(exc, ConversionError):
            err: ConversionError = exc
        else:
            err = UnexpectedError(media_file=mf, cause=exc)
        err.media_file = mf
        # The unit normally reaches FAILED itself; its future is done, so
        # this thread is now the only writer of the status.
        if not mf.status.terminal:
            mf.status = Status.FAILED
        return err

    def run_batch(self, units: Sequence[ConversionUnit]) -> BatchResult:
        """Run every unit to a terminal status and return the tally.

        Raises PoolStartError if the pool cannot start before any unit runs.
        Per-file failures never abort the batch.
        """
        units = list(units)
        _check_unique(u.media_file for u in units)
        with self._lock:
            if self._running:
                raise RuntimeError("This scheduler is already running a batch")
            self._running = True
        try:
            return self._run(units)
        finally:
            with self._lock:
                self._running = False

    def _run(self, units: List[ConversionUnit]) -> BatchResult:
        with bind_run() as run_id:
            return self._run_tagged(units, run_id)

    def _run_tagged(self, units: List[ConversionUnit], run_id: str) -> BatchResult:
        result = BatchResult(total=len(units), run_id=run_id)
        log_event("batch", status="start", total=len(units), workers=self.max_concurrency, msg="batch started")

        if not units:
            self._emit_progress(1.0)
            self._emit_complete(result)
            return result

        def _record(unit: ConversionUnit, err: Optional[ConversionError]) -> None:
            if err is None:
                result.completed += 1
                logger.info(f"[{result.finished}/{result.total}] OK  {unit.media_file.display_name}")
            else:
                result.failed += 1
                result.failures.append((unit.media_file, err))
                logger.error(f"[{result.finished}/{result.total}] ERR {unit.media_file.display_name}: {err}")
            self._emit_progress(result.finished / result.total)

        def _not_submitted(unit: ConversionUnit, exc: BaseException) -> None:
            _record(unit, self._classify(unit, None, exc))

        pool = WorkerPool(max_workers=min(self.max_concurrency, len(units)))
        try:
            for unit, outcome, exc in pool.imap_unordered(
                lambda u: u.run(), units, on_submit_error=_not_submitted
            ):
                _record(unit, self._classify(unit, outcome, exc))
        finally:
            pool.shutdown()

        log_event(
            "batch",
            status="done",
            total=result.total,
            completed=result.completed,
            failed=result.failed,
            msg=result.summary(),
            level="INFO" if result.failed == 0 else "WARNING",
        )
        self._emit_complete(result)
        return result

    def start(self, units: Sequence[ConversionUnit]) -> "Future[BatchResult]":
        """Run the batch on a dedicated coordination thread; returns a Future."""
        coordinator = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bac-batch")
        fut = coordinator.submit(self.run_batch, list(units))
        coordinator.shutdown(wait=False)
        return fut
