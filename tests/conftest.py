import sys
import textwrap
from pathlib import Path

import pytest
from loguru import logger


# Stand-in for ffmpeg: reads `-i <src>` and writes the last argument.
# Behaviour is picked from the source file name:
#   *fail*  -> diagnostics on stderr, exit 1
#   *empty* -> exit 0 without writing output
#   *slow*  -> sleep FAKE_ENCODER_SLEEP seconds before finishing
# Like ffmpeg, it refuses to write onto its own input (exit 1).
FAKE_ENCODER = textwrap.dedent(
    """
    import os, sys, time
    args = sys.argv[1:]
    src = args[args.index("-i") + 1]
    out = args[-1]
    name = os.path.basename(src)
    if os.path.abspath(src) == os.path.abspath(out):
        sys.stderr.write("Output same as Input #0 - exiting\\n")
        sys.exit(1)
    sys.stderr.write("Input #0, wav, from '%s':\\n" % src)
    sys.stderr.write("  Duration: 00:00:10.00, start: 0.000000, bitrate: 1411 kb/s\\n")
    sys.stderr.flush()
    if "slow" in name:
        time.sleep(float(os.environ.get("FAKE_ENCODER_SLEEP", "0.2")))
    if "fail" in name:
        sys.stderr.write("Error while decoding stream #0:0: Invalid data found\\n")
        sys.exit(1)
    print("out_time_ms=5000000", flush=True)
    print("progress=continue", flush=True)
    if "empty" not in name:
        with open(out, "wb") as f:
            f.write(b"encoded audio")
    print("out_time_ms=10000000", flush=True)
    print("progress=end", flush=True)
    """
)


@pytest.fixture(autouse=True)
def quiet_logger():
    logger.remove()
    yield
    logger.remove()


@pytest.fixture
def fake_encoder(tmp_path):
    script = tmp_path / "fake_ffmpeg.py"
    script.write_text(FAKE_ENCODER, encoding="utf-8")
    return [sys.executable, str(script)]


@pytest.fixture
def make_audio(tmp_path):
    src_dir = tmp_path / "in"
    src_dir.mkdir()

    def _make(name: str, data: bytes = b"RIFF....WAVE") -> Path:
        p = src_dir / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        return p

    return _make


@pytest.fixture
def out_dir(tmp_path):
    d = tmp_path / "out"
    d.mkdir()
    return d
