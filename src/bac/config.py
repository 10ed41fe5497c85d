from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Literal, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from tomlkit import dumps as toml_dumps

from .models import BitrateMode, Channels, ConversionSettings, OutputFormat, Quality, SampleRate
from .scheduler import DEFAULT_MAX_WORKERS


DEFAULT_CONFIG_PATH = Path("~/.config/batch-audio-converter/config.toml").expanduser()
ENV_PREFIX = "BAC_"


class BacSettings(BaseSettings):
    """Engine defaults for batch-audio-converter.

    Priority (lowest -> highest):
    - Class defaults below
    - TOML file at `config_path` (default: ~/.config/batch-audio-converter/config.toml)
    - Environment variables with prefix BAC_
    - Overrides passed to `load(overrides=...)`
    """

    # Logging
    log_level: str = Field(default="INFO", description="Console log level")
    log_json: Optional[str] = Field(default=None, description="Path for structured JSON log file")

    # Engine
    encoder: Union[str, List[str]] = Field(
        default="ffmpeg", description="Encoder executable, or a command prefix such as [\"wrapper\", \"ffmpeg\"]"
    )
    workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1, description="Concurrent encodes per batch")

    # Default conversion settings
    output_format: Literal["mp3", "m4a", "wav", "flac"] = Field(default="mp3", description="Target format")
    quality: Literal["economy", "standard", "good", "best"] = Field(default="good", description="Bitrate preset")
    custom_bitrate: Optional[int] = Field(default=None, description="Explicit bitrate in kbps; overrides preset")
    sample_rate: Literal[44100, 48000] = Field(default=44100, description="Output sample rate in Hz")
    channels: Literal[1, 2] = Field(default=2, description="Output channel count")
    bitrate_mode: Literal["constant", "variable"] = Field(default="constant", description="CBR or VBR (MP3 only)")
    vbr_quality: int = Field(default=2, ge=0, le=5, description="VBR quality 0 (best) .. 5 (smallest)")

    # Config source/path (not persisted as part of effective config when writing)
    config_path: Path = Field(default=DEFAULT_CONFIG_PATH, exclude=True)

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    @field_validator("output_format", "quality", "bitrate_mode", mode="before")
    @classmethod
    def _lower(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @classmethod
    def _toml_file_source(cls, config_path: Path) -> Dict[str, Any]:
        """Read settings from a TOML file if it exists; return dict values.

        Unknown keys are ignored by pydantic via extra="ignore".
        """
        if not config_path or not config_path.exists():
            return {}
        with config_path.open("rb") as f:
            data = tomllib.load(f)
        if not isinstance(data, dict):
            return {}
        return data  # type: ignore[return-value]

    @classmethod
    def load(
        cls,
        *,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "BacSettings":
        """Load settings from defaults + TOML + env + explicit overrides.

        - config_path: path to TOML config; defaults to ~/.config/batch-audio-converter/config.toml
        - overrides: dict of values from the front end (None values are ignored)
        """
        cp = config_path or DEFAULT_CONFIG_PATH
        file_values = cls._toml_file_source(cp)
        # Environment beats the file; pydantic-settings gives init kwargs priority,
        # so drop file keys that an env var also sets.
        base = cls(**{k: v for k, v in file_values.items() if not cls._env_has(k)})
        non_none = {k: v for k, v in (overrides or {}).items() if v is not None}
        merged = base.model_dump()
        merged.update(non_none)
        settings = cls(**merged)
        settings.config_path = cp
        return settings

    @staticmethod
    def _env_has(key: str) -> bool:
        return f"{ENV_PREFIX}{key}".upper() in {k.upper() for k in os.environ}

    def to_toml(self) -> str:
        """Serialize effective settings (excluding ephemeral fields) to TOML string."""
        data = self.model_dump(exclude={"config_path"}, exclude_none=True)
        return toml_dumps(data)

    def write(self, path: Optional[Path] = None) -> Path:
        """Write effective config to TOML at `path` (or default path). Creates parent dirs.

        Returns the path written.
        """
        target = path or self.config_path or DEFAULT_CONFIG_PATH
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.to_toml(), encoding="utf-8")
        return target

    def to_conversion_settings(self) -> ConversionSettings:
        """Build a ConversionSettings; raises InvalidSettingsError for bad combinations."""
        return ConversionSettings(
            OutputFormat(self.output_format),
            Quality[self.quality.upper()],
            custom_bitrate=self.custom_bitrate,
            sample_rate=SampleRate(self.sample_rate),
            channels=Channels(self.channels),
            bitrate_mode=BitrateMode(self.bitrate_mode),
            vbr_quality=self.vbr_quality,
        )
