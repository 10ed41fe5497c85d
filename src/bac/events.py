"""Progress and status reporting surfaces.

Front ends either subclass the callback classes or use `EventQueueReporter`,
which turns every callback into a typed event on a `queue.Queue` so a single
consumer (e.g. a UI thread) can drain them.
"""
from __future__ import annotations

import queue
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:  # pragma: no cover
    from .batch import BatchResult
    from .models import MediaFile, Status


class ProgressCallback:
    """Per-file callback. Default methods do nothing."""

    def on_progress(self, media_file: "MediaFile", fraction: float, message: str) -> None:
        pass

    def on_status_change(self, media_file: "MediaFile", status: "Status") -> None:
        pass


class BatchCallback:
    """Batch-level callback. Default methods do nothing."""

    def on_progress(self, fraction: float) -> None:
        pass

    def on_complete(self, result: "BatchResult") -> None:
        pass


@dataclass(frozen=True)
class StatusChanged:
    media_file: "MediaFile"
    status: "Status"


@dataclass(frozen=True)
class FileProgress:
    media_file: "MediaFile"
    fraction: float
    message: str


@dataclass(frozen=True)
class BatchProgress:
    fraction: float


@dataclass(frozen=True)
class BatchCompleted:
    result: "BatchResult"


Event = Union[StatusChanged, FileProgress, BatchProgress, BatchCompleted]


class _QueueBatchCallback(BatchCallback):
    def __init__(self, events: "queue.Queue[Event]") -> None:
        self.events = events

    def on_progress(self, fraction: float) -> None:
        self.events.put(BatchProgress(float(fraction)))

    def on_complete(self, result: "BatchResult") -> None:
        self.events.put(BatchCompleted(result))


class EventQueueReporter(ProgressCallback):
    """Per-file callback that publishes typed events to a queue.

    `batch` is the matching batch-level callback writing to the same queue.
    """

    def __init__(self, events: Optional["queue.Queue[Event]"] = None) -> None:
        self.events: "queue.Queue[Event]" = events if events is not None else queue.Queue()
        self.batch = _QueueBatchCallback(self.events)

    def on_progress(self, media_file: "MediaFile", fraction: float, message: str) -> None:
        self.events.put(FileProgress(media_file, float(fraction), message))

    def on_status_change(self, media_file: "MediaFile", status: "Status") -> None:
        self.events.put(StatusChanged(media_file, status))

    def drain(self) -> list:
        """Return every queued event without blocking."""
        out = []
        while True:
            try:
                out.append(self.events.get_nowait())
            except queue.Empty:
                return out
