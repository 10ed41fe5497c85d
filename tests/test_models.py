import dataclasses
from unittest.mock import patch

import pytest

from bac.errors import InvalidSettingsError, UnsupportedFormatError
from bac.models import (
    FORMAT_SPECS,
    BitrateMode,
    Channels,
    ConversionSettings,
    MediaFile,
    OutputFormat,
    Quality,
    SampleRate,
    Status,
)
from bac.models import _check_catalog


def test_defaults_match_original_application():
    s = ConversionSettings()
    assert s.output_format is OutputFormat.MP3
    assert s.quality is Quality.GOOD
    assert s.custom_bitrate is None
    assert s.sample_rate is SampleRate.SR_44100
    assert s.channels is Channels.STEREO
    assert s.bitrate_mode is BitrateMode.CONSTANT
    assert s.vbr_quality == 2


def test_format_catalog():
    assert FORMAT_SPECS[OutputFormat.MP3].codec == "libmp3lame"
    assert FORMAT_SPECS[OutputFormat.M4A].codec == "aac"
    assert FORMAT_SPECS[OutputFormat.WAV].codec == "pcm_s16le"
    assert FORMAT_SPECS[OutputFormat.FLAC].codec == "flac"
    assert OutputFormat.MP3.spec.supports_vbr
    assert not OutputFormat.M4A.spec.supports_vbr
    assert not OutputFormat.WAV.spec.supports_bitrate
    assert not OutputFormat.FLAC.spec.bitrates
    assert str(OutputFormat.M4A) == "M4A"


def test_effective_bitrate_prefers_positive_custom():
    s = ConversionSettings(quality=Quality.STANDARD)
    assert s.effective_bitrate == 128
    s.custom_bitrate = 256
    assert s.effective_bitrate == 256
    s.custom_bitrate = 0
    assert s.custom_bitrate is None
    assert s.effective_bitrate == 128


@pytest.mark.parametrize("fmt", [OutputFormat.MP3, OutputFormat.M4A])
@pytest.mark.parametrize("quality", list(Quality))
def test_effective_bitrate_is_allowed_option(fmt, quality):
    s = ConversionSettings(fmt, quality)
    assert s.effective_bitrate in fmt.spec.bitrates
    for custom in fmt.spec.bitrates:
        s.custom_bitrate = custom
        assert s.snapshot().effective_bitrate in fmt.spec.bitrates


def test_catalog_check_rejects_missing_preset_bitrate():
    _check_catalog()
    broken = dataclasses.replace(FORMAT_SPECS[OutputFormat.M4A], bitrates=(96, 192, 256))
    with patch.dict("bac.models.FORMAT_SPECS", {OutputFormat.M4A: broken}):
        with pytest.raises(RuntimeError, match="lacks bitrate"):
            _check_catalog()


def test_effective_bitrate_none_without_bitrate_support():
    assert ConversionSettings(OutputFormat.FLAC).effective_bitrate is None


@pytest.mark.parametrize("new_fmt", list(OutputFormat))
def test_changing_format_clears_custom_bitrate(new_fmt):
    s = ConversionSettings(OutputFormat.MP3, custom_bitrate=320)
    assert s.custom_bitrate == 320
    s.output_format = new_fmt
    assert s.custom_bitrate is None


def test_custom_bitrate_outside_format_options_is_rejected():
    s = ConversionSettings(OutputFormat.M4A)
    with pytest.raises(InvalidSettingsError):
        s.custom_bitrate = 224  # MP3 only
    with pytest.raises(InvalidSettingsError):
        ConversionSettings(OutputFormat.MP3, custom_bitrate=100)


def test_sample_rate_and_vbr_quality_validation():
    s = ConversionSettings()
    s.sample_rate = 48000
    assert s.sample_rate is SampleRate.SR_48000
    with pytest.raises(InvalidSettingsError):
        s.sample_rate = 22050
    with pytest.raises(InvalidSettingsError):
        s.vbr_quality = 6
    with pytest.raises(InvalidSettingsError):
        s.channels = 6


def test_snapshot_is_frozen_and_detached():
    s = ConversionSettings(OutputFormat.MP3, Quality.GOOD)
    snap = s.snapshot()
    s.output_format = OutputFormat.WAV
    s.quality = Quality.BEST
    assert snap.output_format is OutputFormat.MP3
    assert snap.effective_bitrate == 192
    with pytest.raises(dataclasses.FrozenInstanceError):
        snap.quality = Quality.ECONOMY  # type: ignore[misc]


def test_media_file_derived_fields(tmp_path):
    mf = MediaFile.from_path(tmp_path / "Track 01.FLAC")
    assert mf.path.is_absolute()
    assert mf.display_name == "Track 01.FLAC"
    assert mf.extension == "flac"
    assert mf.status is Status.PENDING
    with pytest.raises(AttributeError):
        mf.path = tmp_path / "other.wav"  # type: ignore[misc]


def test_media_file_rejects_unsupported_extension(tmp_path):
    with pytest.raises(UnsupportedFormatError):
        MediaFile.from_path(tmp_path / "clip.ogg")


def test_media_file_identity_is_path(tmp_path):
    a = MediaFile(tmp_path / "a.wav")
    b = MediaFile(tmp_path / "a.wav", status=Status.FAILED)
    assert a == b
    assert len({a, b}) == 1


def test_status_machine():
    mf = MediaFile("/music/a.wav")
    mf.transition(Status.PROCESSING)
    mf.transition(Status.COMPLETED)
    assert mf.status.terminal
    with pytest.raises(RuntimeError):
        mf.transition(Status.FAILED)
    with pytest.raises(RuntimeError):
        mf.transition(Status.PROCESSING)
    mf.reset()
    assert mf.status is Status.PENDING
    # validation failures go straight from PENDING to FAILED
    mf.transition(Status.FAILED)
    assert mf.status is Status.FAILED
