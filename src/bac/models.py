"""Domain model: output format catalog, conversion settings and media files.

`OutputFormat` is a closed enum; everything format-specific lives in the
`FORMAT_SPECS` table so the resolver and the settings validation read the
same capability record.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple, Union

from .errors import InvalidSettingsError, UnsupportedFormatError


SUPPORTED_INPUT_EXTENSIONS: FrozenSet[str] = frozenset({"mp3", "wav", "m4a", "flac"})

VBR_QUALITY_RANGE = range(0, 6)  # 0 = best/largest ... 5 = smallest/worst


class OutputFormat(str, enum.Enum):
    MP3 = "mp3"
    M4A = "m4a"
    WAV = "wav"
    FLAC = "flac"

    @property
    def spec(self) -> "FormatSpec":
        return FORMAT_SPECS[self]

    def __str__(self) -> str:
        return self.value.upper()


@dataclass(frozen=True)
class FormatSpec:
    extension: str
    codec: str
    supports_bitrate: bool
    supports_vbr: bool = False
    bitrates: Tuple[int, ...] = ()
    default_bitrate: Optional[int] = None
    sample_rates: Tuple[int, ...] = (44100, 48000)


FORMAT_SPECS: Dict[OutputFormat, FormatSpec] = {
    OutputFormat.MP3: FormatSpec(
        extension="mp3",
        codec="libmp3lame",
        supports_bitrate=True,
        supports_vbr=True,
        bitrates=(64, 96, 128, 160, 192, 224, 256, 320),
        default_bitrate=192,
    ),
    OutputFormat.M4A: FormatSpec(
        extension="m4a",
        codec="aac",
        supports_bitrate=True,
        bitrates=(64, 96, 128, 160, 192, 256, 320),
        default_bitrate=192,
    ),
    OutputFormat.WAV: FormatSpec(extension="wav", codec="pcm_s16le", supports_bitrate=False),
    OutputFormat.FLAC: FormatSpec(extension="flac", codec="flac", supports_bitrate=False),
}


class Quality(enum.Enum):
    ECONOMY = ("Economy", 64)
    STANDARD = ("Standard", 128)
    GOOD = ("Good", 192)
    BEST = ("Best", 320)

    def __init__(self, label: str, bitrate: int) -> None:
        self.label = label
        self.bitrate = bitrate

    def __str__(self) -> str:
        return f"{self.label} ({self.bitrate} kbps)"


class SampleRate(enum.IntEnum):
    SR_44100 = 44100
    SR_48000 = 48000

    @property
    def label(self) -> str:
        return f"{self.value / 1000:g} kHz"


class Channels(enum.IntEnum):
    MONO = 1
    STEREO = 2


class BitrateMode(str, enum.Enum):
    CONSTANT = "constant"
    VARIABLE = "variable"


class Status(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (Status.COMPLETED, Status.FAILED)


_TRANSITIONS: Dict[Status, FrozenSet[Status]] = {
    Status.PENDING: frozenset({Status.PROCESSING, Status.FAILED}),
    Status.PROCESSING: frozenset({Status.COMPLETED, Status.FAILED}),
    Status.COMPLETED: frozenset(),
    Status.FAILED: frozenset(),
}


def _check_catalog() -> None:
    """Quality presets and defaults must be selectable for every bitrate-capable format."""
    for fmt, spec in FORMAT_SPECS.items():
        if not spec.supports_bitrate:
            continue
        wanted = [spec.default_bitrate] + [q.bitrate for q in Quality]
        missing = [b for b in wanted if b not in spec.bitrates]
        if missing:
            raise RuntimeError(f"{fmt} format table lacks bitrate(s) {missing}")


_check_catalog()


def extension_of(path: Union[str, Path]) -> str:
    return Path(path).suffix.lower().lstrip(".")


def is_supported_input(path: Union[str, Path]) -> bool:
    return extension_of(path) in SUPPORTED_INPUT_EXTENSIONS


class MediaFile:
    """One input audio file and its conversion status.

    The source path is fixed at creation; `status` is written only by the
    conversion unit that owns the file during a run.
    """

    def __init__(self, path: Union[str, Path], status: Status = Status.PENDING) -> None:
        self._path = Path(path).expanduser().absolute()
        self.status = status

    @property
    def path(self) -> Path:
        return self._path

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "MediaFile":
        if not is_supported_input(path):
            raise UnsupportedFormatError(f"Unsupported input extension: {path}")
        return cls(Path(path))

    @property
    def display_name(self) -> str:
        return self.path.name

    @property
    def extension(self) -> str:
        return extension_of(self.path)

    def transition(self, new: Status) -> None:
        if new not in _TRANSITIONS[self.status]:
            raise RuntimeError(f"Illegal status transition {self.status.value} -> {new.value} for {self.path}")
        self.status = new

    def reset(self) -> None:
        self.status = Status.PENDING

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MediaFile):
            return NotImplemented
        return self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def __repr__(self) -> str:
        return f"MediaFile({str(self.path)!r}, status={self.status.value})"


@dataclass(frozen=True)
class SettingsSnapshot:
    """Immutable, validated settings for one batch run."""

    output_format: OutputFormat
    quality: Quality
    custom_bitrate: Optional[int]
    sample_rate: SampleRate
    channels: Channels
    bitrate_mode: BitrateMode
    vbr_quality: int

    @property
    def format_spec(self) -> FormatSpec:
        return self.output_format.spec

    @property
    def effective_bitrate(self) -> Optional[int]:
        return _effective_bitrate(self.output_format, self.quality, self.custom_bitrate)

    @property
    def uses_vbr(self) -> bool:
        return self.format_spec.supports_vbr and self.bitrate_mode is BitrateMode.VARIABLE


def _effective_bitrate(fmt: OutputFormat, quality: Quality, custom: Optional[int]) -> Optional[int]:
    if not fmt.spec.supports_bitrate:
        return None
    if custom is not None and custom > 0:
        return custom
    return quality.bitrate


class ConversionSettings:
    """User-facing conversion settings, editable until a batch starts.

    Changing the output format clears any custom bitrate, since bitrate
    options are format specific. Call `snapshot()` to get the frozen copy
    that conversion units use.
    """

    def __init__(
        self,
        output_format: OutputFormat = OutputFormat.MP3,
        quality: Quality = Quality.GOOD,
        *,
        custom_bitrate: Optional[int] = None,
        sample_rate: SampleRate = SampleRate.SR_44100,
        channels: Channels = Channels.STEREO,
        bitrate_mode: BitrateMode = BitrateMode.CONSTANT,
        vbr_quality: int = 2,
    ) -> None:
        self._output_format = OutputFormat(output_format)
        self.quality = quality
        self._custom_bitrate: Optional[int] = None
        self.custom_bitrate = custom_bitrate
        self.sample_rate = sample_rate
        self.channels = channels
        self.bitrate_mode = BitrateMode(bitrate_mode)
        self.vbr_quality = vbr_quality

    @property
    def output_format(self) -> OutputFormat:
        return self._output_format

    @output_format.setter
    def output_format(self, value: OutputFormat) -> None:
        self._output_format = OutputFormat(value)
        self._custom_bitrate = None

    @property
    def custom_bitrate(self) -> Optional[int]:
        return self._custom_bitrate

    @custom_bitrate.setter
    def custom_bitrate(self, value: Optional[int]) -> None:
        if value is None or value <= 0:
            self._custom_bitrate = None
            return
        spec = self._output_format.spec
        if spec.supports_bitrate and value not in spec.bitrates:
            raise InvalidSettingsError(
                f"{value} kbps is not available for {self._output_format}; choose one of {list(spec.bitrates)}"
            )
        self._custom_bitrate = int(value)

    @property
    def sample_rate(self) -> SampleRate:
        return self._sample_rate

    @sample_rate.setter
    def sample_rate(self, value: Union[SampleRate, int]) -> None:
        try:
            rate = SampleRate(int(value))
        except ValueError:
            raise InvalidSettingsError(f"Unsupported sample rate: {value}") from None
        self._sample_rate = rate

    @property
    def channels(self) -> Channels:
        return self._channels

    @channels.setter
    def channels(self, value: Union[Channels, int]) -> None:
        try:
            self._channels = Channels(int(value))
        except ValueError:
            raise InvalidSettingsError(f"Unsupported channel count: {value}") from None

    @property
    def vbr_quality(self) -> int:
        return self._vbr_quality

    @vbr_quality.setter
    def vbr_quality(self, value: int) -> None:
        if int(value) not in VBR_QUALITY_RANGE:
            raise InvalidSettingsError(f"VBR quality must be 0..5, got {value}")
        self._vbr_quality = int(value)

    @property
    def effective_bitrate(self) -> Optional[int]:
        return _effective_bitrate(self._output_format, self.quality, self._custom_bitrate)

    def snapshot(self) -> SettingsSnapshot:
        """Validate against the current format and return a frozen copy."""
        spec = self._output_format.spec
        if self._sample_rate not in spec.sample_rates:
            raise InvalidSettingsError(f"{self._sample_rate.label} is not available for {self._output_format}")
        bitrate = self.effective_bitrate
        if bitrate is not None and bitrate not in spec.bitrates:
            raise InvalidSettingsError(f"{bitrate} kbps is not available for {self._output_format}")
        return SettingsSnapshot(
            output_format=self._output_format,
            quality=self.quality,
            custom_bitrate=self._custom_bitrate,
            sample_rate=self._sample_rate,
            channels=self._channels,
            bitrate_mode=self.bitrate_mode,
            vbr_quality=self._vbr_quality,
        )

    def __repr__(self) -> str:
        return (
            f"ConversionSettings(format={self._output_format}, quality={self.quality.name}, "
            f"custom_bitrate={self._custom_bitrate}, sample_rate={int(self._sample_rate)}, "
            f"channels={int(self._channels)}, mode={self.bitrate_mode.value}, vbr={self._vbr_quality})"
        )
