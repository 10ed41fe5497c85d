from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List, Tuple


def _normcase_key(name: str) -> str:
    """Case-insensitive key so `Song` and `song` collide (FAT/exFAT/NTFS, macOS)."""
    return name.casefold()


def same_file(a: Path, b: Path) -> bool:
    """True if both paths name the same file, including through symlinks or case."""
    if Path(a).resolve() == Path(b).resolve():
        return True
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


def unique_output_stems(sources: Iterable[Path], extension: str) -> List[str]:
    """Assign each source a distinct output stem within one output directory.

    Two inputs with the same stem (e.g. `a/song.wav` and `b/song.flac`) would
    otherwise write the same `song.<ext>`. Strategy:
    - Process sources in deterministic order (by their full path string).
    - The first keeps its stem; later ones get " (n)" starting at 1.
    - Comparison is case-insensitive on the final file name.
    - Return results in the original input order.

    Files already present in the output directory are not considered; the
    encoder overwrites them.
    """
    src_list: List[Path] = [Path(p) for p in sources]
    ext = extension.lstrip(".")

    prepared: List[Tuple[str, int, str]] = [(str(p), idx, p.stem) for idx, p in enumerate(src_list)]
    prepared.sort(key=lambda t: t[0])

    taken: set[str] = set()
    stems: List[str] = [""] * len(src_list)

    for _, idx, stem in prepared:
        final = stem
        key = _normcase_key(f"{final}.{ext}")
        n = 1
        while key in taken:
            final = f"{stem} ({n})"
            key = _normcase_key(f"{final}.{ext}")
            n += 1
        taken.add(key)
        stems[idx] = final

    return stems
