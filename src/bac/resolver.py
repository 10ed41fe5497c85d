"""Settings resolver: turn a settings snapshot into an ffmpeg invocation.

Pure translation. The only filesystem access is a read-only check that the
output directory is writable; nothing is launched or created here.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from .errors import InvalidOutputPathError, InvalidSettingsError
from .models import ConversionSettings, SettingsSnapshot
from .paths import same_file


Encoder = Union[str, Sequence[str]]

BITRATE_FLAG = "-b:a"
VBR_FLAG = "-q:a"


@dataclass(frozen=True)
class ResolvedCommand:
    args: Tuple[str, ...]
    output_path: Path


def output_path_for(settings: SettingsSnapshot, input_path: Path, output_dir: Path, stem: Optional[str] = None) -> Path:
    return Path(output_dir) / f"{stem or Path(input_path).stem}.{settings.format_spec.extension}"


def check_output_dir(output_dir: Path) -> None:
    out = Path(output_dir)
    if not out.is_dir():
        raise InvalidOutputPathError(f"Output directory does not exist: {out}")
    if not os.access(out, os.W_OK | os.X_OK):
        raise InvalidOutputPathError(f"Output directory is not writable: {out}")


def rate_args(settings: SettingsSnapshot) -> List[str]:
    """Bitrate or VBR-quality directive; never both, and none for lossless/PCM formats."""
    spec = settings.format_spec
    if not spec.supports_bitrate:
        return []
    if settings.uses_vbr:
        return [VBR_FLAG, str(settings.vbr_quality)]
    # Constant bitrate, including formats that cannot do VBR.
    bitrate = settings.effective_bitrate
    if bitrate not in spec.bitrates:
        raise InvalidSettingsError(f"Resolved bitrate {bitrate} is not an option for {settings.output_format}")
    return [BITRATE_FLAG, f"{bitrate}k"]


def build_ffmpeg_cmd(
    settings: SettingsSnapshot,
    src: Path,
    dest: Path,
    *,
    encoder: Encoder = "ffmpeg",
) -> List[str]:
    prefix = [encoder] if isinstance(encoder, str) else list(encoder)
    return [
        *prefix,
        "-nostdin",
        "-hide_banner",
        "-y",
        "-i",
        str(src),
        "-vn",  # drop cover art / video streams
        "-map",
        "0:a:0",  # first audio stream only
        "-c:a",
        settings.format_spec.codec,
        *rate_args(settings),
        "-ar",
        str(int(settings.sample_rate)),
        "-ac",
        str(int(settings.channels)),
        "-progress",
        "pipe:1",
        "-nostats",
        str(dest),
    ]


def resolve(
    settings: Union[SettingsSnapshot, ConversionSettings],
    input_path: Union[str, Path],
    output_dir: Union[str, Path],
    *,
    encoder: Encoder = "ffmpeg",
    output_stem: Optional[str] = None,
) -> ResolvedCommand:
    """Return the encoder arguments and the path the encoder is expected to write.

    Raises InvalidOutputPathError if `output_dir` is missing or not writable,
    or if the output would land on the input file itself.
    """
    snap = settings.snapshot() if isinstance(settings, ConversionSettings) else settings
    check_output_dir(Path(output_dir))
    dest = output_path_for(snap, Path(input_path), Path(output_dir), output_stem)
    if same_file(dest, Path(input_path)):
        raise InvalidOutputPathError(f"Output would overwrite its own source: {dest}")
    cmd = build_ffmpeg_cmd(snap, Path(input_path), dest, encoder=encoder)
    return ResolvedCommand(args=tuple(cmd), output_path=dest)
