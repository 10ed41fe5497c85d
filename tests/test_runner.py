from unittest.mock import patch

import pytest

from bac.config import BacSettings
from bac.errors import PoolStartError
from bac.events import BatchCallback
from bac.ffmpeg_check import FFmpegStatus
from bac.models import ConversionSettings, OutputFormat
from bac.runner import convert_files


def _cfg(tmp_path, fake_encoder, **overrides):
    return BacSettings.load(
        config_path=tmp_path / "none.toml",
        overrides={"workers": 2, "encoder": fake_encoder, **overrides},
    )


def test_convert_files_end_to_end(tmp_path, fake_encoder, make_audio, out_dir):
    make_audio("a.wav")
    make_audio("b.flac")
    make_audio("c-fail.m4a")
    make_audio("readme.txt")

    class Done(BatchCallback):
        def __init__(self):
            self.results = []

        def on_complete(self, result):
            self.results.append(result)

    cb = Done()
    result = convert_files(
        [tmp_path / "in"], out_dir, ConversionSettings(OutputFormat.WAV),
        cfg=_cfg(tmp_path, fake_encoder), batch_callback=cb,
    )
    assert result.total == 3
    assert result.completed == 2
    assert result.failed == 1
    assert cb.results == [result]
    assert sorted(p.name for p in out_dir.iterdir()) == ["a.wav", "b.wav"]


def test_convert_files_uses_config_settings(tmp_path, fake_encoder, make_audio, out_dir):
    make_audio("a.wav")
    result = convert_files([tmp_path / "in"], out_dir, cfg=_cfg(tmp_path, fake_encoder, output_format="flac"))
    assert result.completed == 1
    assert (out_dir / "a.flac").exists()


def test_preflight_failure_stops_before_any_unit(tmp_path, fake_encoder, make_audio, out_dir):
    make_audio("a.wav")
    st = FFmpegStatus(available=True, ffmpeg_path="/usr/bin/ffmpeg", encoders=frozenset({"aac"}))
    with patch("bac.runner.probe_ffmpeg", return_value=st):
        with pytest.raises(PoolStartError):
            convert_files([tmp_path / "in"], out_dir, ConversionSettings(OutputFormat.MP3),
                          cfg=_cfg(tmp_path, fake_encoder), preflight_check=True)
    assert list(out_dir.iterdir()) == []


def test_convert_files_configures_logging_from_settings(tmp_path, fake_encoder, make_audio, out_dir):
    make_audio("a.wav")
    cfg = _cfg(tmp_path, fake_encoder, log_level="DEBUG", log_json=str(tmp_path / "events.jsonl"))
    with patch("bac.runner.is_configured", return_value=False), \
            patch("bac.runner.configure_logging") as configure:
        convert_files([tmp_path / "in"], out_dir, cfg=cfg)
    configure.assert_called_once_with("DEBUG", str(tmp_path / "events.jsonl"))


def test_convert_files_leaves_existing_logging_alone(tmp_path, fake_encoder, make_audio, out_dir):
    make_audio("a.wav")
    with patch("bac.runner.is_configured", return_value=True), \
            patch("bac.runner.configure_logging") as configure:
        convert_files([tmp_path / "in"], out_dir, cfg=_cfg(tmp_path, fake_encoder))
    configure.assert_not_called()
