"""Input intake: turn picked/dropped paths into MediaFile entries (standard library only)."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, Union

from loguru import logger

from .models import MediaFile, is_supported_input


def _walk(root: Path, recursive: bool) -> Iterator[Path]:
    if not recursive:
        for entry in sorted(root.iterdir()):
            if entry.is_file():
                yield entry
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            yield Path(dirpath) / name


def scan_media_files(
    paths: Iterable[Union[str, Path]],
    *,
    recursive: bool = True,
    existing: Optional[Iterable[MediaFile]] = None,
) -> List[MediaFile]:
    """Accept files and directories; keep supported audio files once each.

    - Directories are expanded (recursively by default).
    - Unsupported extensions are skipped (case-insensitive suffix match).
    - Entries are deduplicated by absolute path, including against `existing`.
    - First-seen order is preserved.
    """
    seen: Set[Path] = {mf.path for mf in (existing or [])}
    results: List[MediaFile] = []
    skipped = 0

    def _accept(p: Path) -> None:
        nonlocal skipped
        if not is_supported_input(p):
            skipped += 1
            return
        mf = MediaFile(p)
        if mf.path in seen:
            return
        seen.add(mf.path)
        results.append(mf)

    for raw in paths:
        p = Path(raw).expanduser()
        if p.is_dir():
            for child in _walk(p, recursive):
                _accept(child)
        elif p.exists():
            _accept(p)
        else:
            logger.warning(f"Skipping missing path: {p}")

    if skipped:
        logger.debug(f"scan: skipped {skipped} unsupported file(s)")
    return results
