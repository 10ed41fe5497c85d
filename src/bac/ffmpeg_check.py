"""FFmpeg preflight checks.

Uses only the Python standard library.
"""
from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from .models import OutputFormat


@dataclass
class FFmpegStatus:
    available: bool
    ffmpeg_path: Optional[str] = None
    ffmpeg_version: Optional[str] = None
    encoders: FrozenSet[str] = field(default_factory=frozenset)
    error: Optional[str] = None

    def has_encoder(self, name: str) -> bool:
        return name in self.encoders


def _run(cmd: list[str]) -> tuple[int, str, str]:
    try:
        proc = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
            text=True,
        )
        return proc.returncode, proc.stdout, proc.stderr
    except OSError as exc:
        return 1, "", str(exc)


def _parse_encoders(text: str) -> FrozenSet[str]:
    """Names from `ffmpeg -encoders`; rows look like ` A....D libmp3lame  ...`."""
    names = set()
    past_header = False
    for line in text.splitlines():
        s = line.strip()
        if s.startswith("------"):
            past_header = True
            continue
        if not past_header or not s:
            continue
        parts = s.split()
        if len(parts) >= 2:
            names.add(parts[1])
    return frozenset(names)


def probe_ffmpeg(ffmpeg: str = "ffmpeg") -> FFmpegStatus:
    path = shutil.which(ffmpeg)
    if not path:
        return FFmpegStatus(available=False, error=f"{ffmpeg} not found in PATH")

    rc_v, out_v, err_v = _run([path, "-version"])  # version printed to stdout
    version = out_v.splitlines()[0].strip() if out_v else None

    rc_e, out_e, _ = _run([path, "-hide_banner", "-encoders"])
    encoders = _parse_encoders(out_e) if rc_e == 0 else frozenset()

    return FFmpegStatus(
        available=(rc_v == 0),
        ffmpeg_path=path,
        ffmpeg_version=version,
        encoders=encoders,
        error=None if rc_v == 0 else (err_v or f"{ffmpeg} -version failed"),
    )


def missing_encoders(status: FFmpegStatus, formats: Iterable[OutputFormat]) -> List[str]:
    """Codec names required by `formats` that this ffmpeg build lacks."""
    needed = []
    for fmt in formats:
        codec = OutputFormat(fmt).spec.codec
        if codec not in needed:
            needed.append(codec)
    return [c for c in needed if not status.has_encoder(c)]


if __name__ == "__main__":
    s = probe_ffmpeg()
    print(s)
