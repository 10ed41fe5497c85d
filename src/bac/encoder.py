"""Encoder process execution.

Runs one ffmpeg process with stdout and stderr merged into a single text
stream. `-progress pipe:1` key=value lines are turned into a completion
fraction (using the `Duration:` banner line for the total); everything else
is kept as diagnostic text for error reports.
"""
from __future__ import annotations

import re
import shlex
import subprocess
from collections import deque
from pathlib import Path
from typing import Callable, Deque, Optional, Sequence

from loguru import logger

from .logging import truncate
from .paths import same_file


ProgressFn = Callable[[float], None]

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_KEYVAL_RE = re.compile(r"^([a-z0-9_]+)=(\S*)$")

DIAGNOSTIC_LINES = 200


def cmd_to_string(cmd: Sequence[str]) -> str:
    return " ".join(shlex.quote(p) for p in cmd)


def _hms_to_seconds(h: str, m: str, s: str) -> float:
    return int(h) * 3600 + int(m) * 60 + float(s)


class ProgressParser:
    """Incremental parser for ffmpeg's merged progress/diagnostic output."""

    def __init__(self, max_lines: int = DIAGNOSTIC_LINES) -> None:
        self.duration_s: Optional[float] = None
        self.fraction = 0.0
        self.finished = False
        self._diag: Deque[str] = deque(maxlen=max_lines)

    def feed(self, line: str) -> Optional[float]:
        """Consume one line; return a new fraction when progress advanced."""
        line = line.strip()
        if not line:
            return None
        kv = _KEYVAL_RE.match(line)
        if kv is None:
            self._diag.append(line)
            if self.duration_s is None:
                m = _DURATION_RE.search(line)
                if m:
                    self.duration_s = _hms_to_seconds(*m.groups())
            return None

        key, value = kv.groups()
        if key == "progress" and value == "end":
            self.finished = True
            return self._advance(1.0)
        # ffmpeg reports out_time_ms in microseconds as well
        if key in ("out_time_us", "out_time_ms") and self.duration_s:
            try:
                seconds = int(value) / 1_000_000
            except ValueError:
                return None
            return self._advance(min(0.99, seconds / self.duration_s))
        return None

    def _advance(self, fraction: float) -> Optional[float]:
        if fraction <= self.fraction:
            return None
        self.fraction = fraction
        return fraction

    @property
    def diagnostics(self) -> str:
        return truncate("\n".join(self._diag))


def run_encoder(cmd: Sequence[str], on_progress: Optional[ProgressFn] = None) -> tuple[int, str]:
    """Run the encoder to completion and return (exit code, diagnostic tail).

    Raises OSError if the process cannot be launched (e.g. binary missing).
    """
    parser = ProgressParser()
    logger.debug("Running encoder: {}", cmd_to_string(cmd))
    proc = subprocess.Popen(
        list(cmd),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        encoding="utf-8",
        errors="replace",
        bufsize=1,
    )
    try:
        assert proc.stdout is not None
        for line in proc.stdout:
            fraction = parser.feed(line)
            if fraction is not None and on_progress is not None:
                on_progress(fraction)
        rc = proc.wait()
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()
        if proc.stdout is not None:
            proc.stdout.close()
    return rc, parser.diagnostics


def remove_partial(path: Path, source: Optional[Path] = None) -> None:
    """Best-effort removal of a partial output after a failed encode.

    Never removes `source`, even when `path` points at it.
    """
    if source is not None and same_file(path, source):
        logger.warning(f"Not removing {path}: it is the source file")
        return
    try:
        if path.exists():
            path.unlink()
    except OSError as e:
        logger.warning(f"Could not remove partial output {path}: {e}")
