"""
Pytest fixtures for slideshow tests.
"""
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.errors import CompositionError
from shared.models.composition import ImageAsset, Segment
from modules.slideshow.lifecycle import ProcessLifecycleManager
from modules.slideshow.natural_order import parse_image_asset
from modules.slideshow.segment_encoder import encode_params_for, segment_filename


class FakeFFmpeg:
    """
    Stand-in for run_ffmpeg_command.

    Writes a small file at the command's output path (last argument) and
    records every call. `fail_on` makes the matching label fail after
    leaving a partial output behind.
    """

    def __init__(self):
        self.calls: List[Tuple[str, List[str]]] = []
        self.manifests: Dict[str, str] = {}
        self.fail_on: Optional[str] = None

    async def __call__(self, cmd, job_id, lifecycle, label, error_cls=CompositionError, timeout=None):
        self.calls.append((label, list(cmd)))
        if "-f" in cmd and cmd[cmd.index("-f") + 1] == "concat":
            manifest = Path(cmd[cmd.index("-i") + 1])
            self.manifests[label] = manifest.read_text(encoding="utf-8")
        output = Path(cmd[-1])
        if label == self.fail_on:
            output.write_bytes(b"partial")
            raise error_cls(f"FFmpeg {label} failed (exit code 1): boom", job_id=job_id)
        output.write_bytes(b"\x00" * 2048)

    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self.calls]

    def command(self, label: str) -> List[str]:
        return next(cmd for call_label, cmd in self.calls if call_label == label)


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Patch every FFmpeg call site with a FakeFFmpeg."""
    fake = FakeFFmpeg()
    monkeypatch.setattr("modules.slideshow.segment_encoder.run_ffmpeg_command", fake)
    monkeypatch.setattr("modules.slideshow.concatenator.run_ffmpeg_command", fake)
    monkeypatch.setattr("modules.slideshow.audio_muxer.run_ffmpeg_command", fake)
    return fake


@pytest.fixture
def lifecycle():
    return ProcessLifecycleManager()


@pytest.fixture
def staged_images(tmp_path):
    """Create placeholder image files and return them as assets."""
    def _create(*filenames: str) -> List[ImageAsset]:
        image_dir = tmp_path / "images"
        image_dir.mkdir(exist_ok=True)
        assets = []
        for name in filenames:
            path = image_dir / name
            path.write_bytes(b"\x89PNG")
            assets.append(parse_image_asset(name, path=path))
        return assets
    return _create


@pytest.fixture
def sample_segments(tmp_path):
    """Create segment files on disk with matching Segment models."""
    def _create(count: int = 3, duration: float = 2.0) -> List[Segment]:
        segments_dir = tmp_path / "segments"
        segments_dir.mkdir(exist_ok=True)
        params = encode_params_for("normal")
        segments = []
        for index in range(count):
            path = segments_dir / segment_filename(index, count)
            path.write_bytes(b"\x00" * 1024)
            segments.append(Segment(
                index=index,
                source_asset=parse_image_asset(f"image_{index}.png"),
                path=path,
                duration_seconds=duration,
                encode_params=params
            ))
        return segments
    return _create


def make_process(returncode: int = 0, stderr: bytes = b"", stdout: bytes = b"") -> MagicMock:
    """Mock of asyncio.subprocess.Process after it has exited."""
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.wait = AsyncMock(return_value=returncode)
    return process


def create_test_image(output_path: Path, width: int = 320, height: int = 240, color: str = "red"):
    """Render a solid color PNG with FFmpeg."""
    cmd = [
        "ffmpeg",
        "-f", "lavfi",
        "-i", f"color=c={color}:s={width}x{height}",
        "-frames:v", "1",
        "-y",
        str(output_path)
    ]
    subprocess.run(cmd, capture_output=True, timeout=30, check=True)


def create_test_audio(output_path: Path, duration: float = 1.0):
    """Render a sine tone with FFmpeg."""
    cmd = [
        "ffmpeg",
        "-f", "lavfi",
        "-i", f"sine=frequency=440:duration={duration}",
        "-y",
        str(output_path)
    ]
    subprocess.run(cmd, capture_output=True, timeout=30, check=True)


def probe_stream(path: Path) -> Dict[str, str]:
    """Video stream and format fields of a file, as ffprobe reports them."""
    result = subprocess.run(
        [
            "ffprobe", "-v", "error",
            "-select_streams", "v:0",
            "-show_entries",
            "stream=codec_name,width,height,pix_fmt,color_space,color_primaries,color_transfer,color_range"
            ":format=duration",
            "-of", "default=noprint_wrappers=1",
            str(path)
        ],
        capture_output=True, text=True, timeout=30, check=True
    )
    fields = {}
    for line in result.stdout.splitlines():
        if "=" in line:
            key, value = line.split("=", 1)
            fields[key] = value
    return fields


@pytest.fixture
def make_fake_process():
    """Fixture that returns the make_process function."""
    return make_process


@pytest.fixture
def create_test_image_file():
    """Fixture that returns the create_test_image function."""
    return create_test_image


@pytest.fixture
def create_test_audio_file():
    """Fixture that returns the create_test_audio function."""
    return create_test_audio


@pytest.fixture
def probe_video_stream():
    """Fixture that returns the probe_stream function."""
    return probe_stream
