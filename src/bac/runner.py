"""Engine entry point for front ends: paths in, BatchResult out."""
from __future__ import annotations

import time
from pathlib import Path
from typing import Iterable, Optional, Union

from loguru import logger

from .batch import BatchResult, BatchScheduler, build_units
from .config import BacSettings
from .errors import PoolStartError
from .events import BatchCallback, ProgressCallback
from .ffmpeg_check import missing_encoders, probe_ffmpeg
from .logging import configure_logging, is_configured
from .models import ConversionSettings
from .resolver import Encoder
from .scanner import scan_media_files


def preflight(encoder: Encoder, settings: ConversionSettings) -> None:
    """Raise PoolStartError unless ffmpeg is installed with the needed encoder."""
    if not isinstance(encoder, str):
        encoder = list(encoder)[-1]
    st = probe_ffmpeg(encoder)
    if not st.available:
        raise PoolStartError(st.error or f"{encoder} is not available")
    logger.info(f"ffmpeg: {st.ffmpeg_path}")
    logger.info(f"version: {st.ffmpeg_version}")
    missing = missing_encoders(st, [settings.output_format])
    if missing:
        raise PoolStartError(f"{encoder} lacks required encoder(s): {', '.join(missing)}")


def convert_files(
    paths: Iterable[Union[str, Path]],
    output_dir: Union[str, Path],
    settings: Optional[ConversionSettings] = None,
    *,
    cfg: Optional[BacSettings] = None,
    max_concurrency: Optional[int] = None,
    file_callback: Optional[ProgressCallback] = None,
    batch_callback: Optional[BatchCallback] = None,
    recursive: bool = True,
    preflight_check: bool = False,
) -> BatchResult:
    """Convert every supported file under `paths` into `output_dir`.

    Missing arguments fall back to `cfg` (or `BacSettings.load()`): settings,
    worker count and encoder path. Logging is set up from `cfg` unless the
    caller already configured it. Unsupported files are skipped at intake.
    """
    cfg = cfg or BacSettings.load()
    if not is_configured():
        configure_logging(cfg.log_level, cfg.log_json)
    settings = settings or cfg.to_conversion_settings()
    workers = max_concurrency or cfg.workers

    if preflight_check:
        preflight(cfg.encoder, settings)

    files = scan_media_files(paths, recursive=recursive)
    logger.info(f"Converting {len(files)} file(s) to {settings.output_format} with {workers} worker(s)")

    t0 = time.time()
    units = build_units(files, settings, output_dir, encoder=cfg.encoder, callback=file_callback)
    result = BatchScheduler(workers, callback=batch_callback).run_batch(units)
    d_total = time.time() - t0

    logger.info(result.summary())
    if result.completed:
        thr = result.completed / d_total if d_total > 0 else float("inf")
        logger.info(f"Throughput: {result.completed} files in {d_total:.2f}s = {thr:.2f} files/s")
    return result
