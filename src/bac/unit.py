"""Conversion unit: one file's lifecycle from PENDING to a terminal status.

A unit is one-shot. It owns its `MediaFile.status` for the duration of the
run and always reaches COMPLETED or FAILED (and reports it) before `run()`
returns or raises.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from .encoder import remove_partial, run_encoder
from .errors import (
    ConversionError,
    EncoderProcessError,
    InvalidOutputPathError,
    OutputVerificationError,
    UnsupportedFormatError,
)
from .events import ProgressCallback
from .logging import log_event
from .models import ConversionSettings, MediaFile, SettingsSnapshot, Status, is_supported_input
from .resolver import Encoder, ResolvedCommand, resolve


@dataclass
class ConversionOutcome:
    media_file: MediaFile
    status: Status
    error: Optional[ConversionError] = None
    output_path: Optional[Path] = None
    elapsed_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is Status.COMPLETED


class ConversionUnit:
    def __init__(
        self,
        media_file: MediaFile,
        settings: Union[SettingsSnapshot, ConversionSettings],
        output_dir: Union[str, Path],
        *,
        callback: Optional[ProgressCallback] = None,
        encoder: Encoder = "ffmpeg",
        output_stem: Optional[str] = None,
    ) -> None:
        self.media_file = media_file
        # Units never see later edits to a live ConversionSettings.
        self.settings = settings.snapshot() if isinstance(settings, ConversionSettings) else settings
        self.output_dir = Path(output_dir)
        self.callback = callback or ProgressCallback()
        self.encoder = encoder
        self.output_stem = output_stem
        self._started = False

    def __repr__(self) -> str:
        return f"ConversionUnit({self.media_file.display_name!r}, {self.settings.output_format})"

    # -- callbacks -------------------------------------------------------

    def _notify_status(self, status: Status) -> None:
        try:
            self.callback.on_status_change(self.media_file, status)
        except Exception:
            logger.exception(f"Status callback failed for {self.media_file.display_name}")

    def _notify_progress(self, fraction: float, message: str) -> None:
        try:
            self.callback.on_progress(self.media_file, fraction, message)
        except Exception:
            logger.exception(f"Progress callback failed for {self.media_file.display_name}")

    def _set_status(self, status: Status) -> None:
        self.media_file.transition(status)
        self._notify_status(status)

    def _fail(self, error: ConversionError, t0: float, output_path: Optional[Path] = None) -> ConversionOutcome:
        error.media_file = self.media_file
        self._set_status(Status.FAILED)
        elapsed = time.time() - t0
        log_event(
            "encode",
            file=str(self.media_file.path),
            status="error",
            error=type(error).__name__,
            reason=str(error),
            elapsed_ms=int(elapsed * 1000),
            level="ERROR",
            msg="encode failed",
        )
        return ConversionOutcome(self.media_file, Status.FAILED, error, output_path, elapsed)

    # -- lifecycle -------------------------------------------------------

    def run(self) -> ConversionOutcome:
        """Convert the file. Conversion problems are returned, not raised.

        Anything unexpected still drives the file to FAILED (and notifies)
        before the exception propagates to the scheduler.
        """
        if self._started:
            raise RuntimeError(f"{self!r} has already been run")
        self._started = True
        t0 = time.time()
        try:
            return self._run(t0)
        except Exception:
            if not self.media_file.status.terminal:
                self._set_status(Status.FAILED)
            raise

    def _run(self, t0: float) -> ConversionOutcome:
        src = self.media_file.path
        if not is_supported_input(src):
            return self._fail(UnsupportedFormatError(f"Unsupported input extension: {src.suffix or '(none)'}"), t0)
        if not src.is_file():
            return self._fail(UnsupportedFormatError(f"Source file not found: {src}"), t0)

        self._set_status(Status.PROCESSING)
        self._notify_progress(0.0, "Starting")

        try:
            resolved: ResolvedCommand = resolve(
                self.settings, src, self.output_dir, encoder=self.encoder, output_stem=self.output_stem
            )
        except InvalidOutputPathError as e:
            return self._fail(e, t0)

        dest = resolved.output_path
        try:
            rc, diagnostics = run_encoder(
                resolved.args, on_progress=lambda f: self._notify_progress(f, f"{f * 100:.0f}%")
            )
        except OSError as e:
            return self._fail(EncoderProcessError(f"Could not launch encoder: {e}", diagnostics=str(e)), t0)

        if rc != 0:
            remove_partial(dest, source=src)
            err = EncoderProcessError(f"Encoder exited with status {rc}", returncode=rc, diagnostics=diagnostics)
            return self._fail(err, t0, dest)

        try:
            size = dest.stat().st_size
        except OSError:
            size = 0
        if size <= 0:
            remove_partial(dest, source=src)
            return self._fail(OutputVerificationError(f"Expected output missing or empty: {dest}"), t0, dest)

        self._set_status(Status.COMPLETED)
        self._notify_progress(1.0, "Done")
        elapsed = time.time() - t0
        log_event(
            "encode",
            file=str(src),
            output=str(dest),
            status="ok",
            elapsed_ms=int(elapsed * 1000),
            bytes_out=size,
            msg="encode complete",
        )
        return ConversionOutcome(self.media_file, Status.COMPLETED, None, dest, elapsed)
