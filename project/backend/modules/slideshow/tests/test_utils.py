"""
Unit tests for slideshow utils.
"""
import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from modules.slideshow.utils import (
    check_ffmpeg_available,
    get_media_duration,
    probe_image_dimensions,
    remove_path,
    remove_paths,
    remove_tree,
    resolve_binary,
    run_ffmpeg_command,
    stderr_tail,
)
from shared.errors import CompositionError, EncodeError


def hanging_process():
    """Process whose communicate() never finishes on its own."""
    process = MagicMock()
    process.returncode = None

    async def communicate():
        await asyncio.sleep(10)

    process.communicate = communicate
    process.wait = AsyncMock(return_value=-9)
    return process


class TestResolveBinary:
    """Tests for resolve_binary function."""

    def test_explicit_path_wins(self, tmp_path):
        (tmp_path / "bin").mkdir()
        (tmp_path / "bin" / "ffmpeg").write_bytes(b"")
        assert resolve_binary("ffmpeg", explicit="/opt/ffmpeg", app_root=tmp_path) == "/opt/ffmpeg"

    def test_bundled_binary(self, tmp_path):
        """Test ffmpeg/bin under the deployment root is preferred over PATH."""
        bundled = tmp_path / "ffmpeg" / "bin" / "ffmpeg"
        bundled.parent.mkdir(parents=True)
        bundled.write_bytes(b"")
        assert resolve_binary("ffmpeg", app_root=tmp_path) == str(bundled)

    def test_bundled_windows_binary(self, tmp_path):
        bundled = tmp_path / "bin" / "ffprobe.exe"
        bundled.parent.mkdir(parents=True)
        bundled.write_bytes(b"")
        assert resolve_binary("ffprobe", app_root=tmp_path) == str(bundled)

    def test_falls_back_to_path(self, tmp_path):
        assert resolve_binary("ffmpeg", app_root=tmp_path) == "ffmpeg"

    def test_check_ffmpeg_unavailable(self):
        with patch("modules.slideshow.utils.resolve_ffmpeg_binary", return_value="no-such-ffmpeg-binary"):
            assert check_ffmpeg_available() is False

    def test_check_ffmpeg_bundled_file(self, tmp_path):
        binary = tmp_path / "ffmpeg"
        binary.write_bytes(b"")
        with patch("modules.slideshow.utils.resolve_ffmpeg_binary", return_value=str(binary)):
            assert check_ffmpeg_available() is True


class TestStderrTail:
    """Tests for stderr_tail function."""

    def test_keeps_last_lines(self):
        stderr = "\n".join(f"line {i}" for i in range(20)).encode()
        tail = stderr_tail(stderr, max_lines=3)
        assert tail == "line 17\nline 18\nline 19"

    def test_empty_stderr(self):
        assert stderr_tail(b"") == "Unknown FFmpeg error"
        assert stderr_tail(None) == "Unknown FFmpeg error"
        assert stderr_tail(b"\n  \n") == "Unknown FFmpeg error"


class TestRunFFmpegCommand:
    """Tests for run_ffmpeg_command function."""

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    async def test_success_deregisters(self, mock_exec, lifecycle, make_fake_process):
        mock_exec.return_value = make_fake_process(0)

        await run_ffmpeg_command(["ffmpeg", "-version"], uuid4(), lifecycle, "segment_0")

        mock_exec.assert_called_once()
        assert mock_exec.call_args[0] == ("ffmpeg", "-version")
        assert lifecycle.active_count == 0

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    async def test_registered_while_running(self, mock_exec, lifecycle, make_fake_process):
        process = make_fake_process(0)
        seen = []

        async def communicate():
            seen.append(lifecycle.active_count)
            return b"", b""

        process.communicate = communicate
        mock_exec.return_value = process

        await run_ffmpeg_command(["ffmpeg"], None, lifecycle, "concat")

        assert seen == [1]
        assert lifecycle.active_count == 0

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    async def test_non_zero_exit_raises_stage_error(self, mock_exec, lifecycle, make_fake_process):
        """Test exit status and stderr tail end up in the stage error."""
        mock_exec.return_value = make_fake_process(1, stderr=b"banner\nInvalid data found\n")

        with pytest.raises(EncodeError) as exc_info:
            await run_ffmpeg_command(["ffmpeg"], None, lifecycle, "segment_3", error_cls=EncodeError)

        assert "exit code 1" in exc_info.value.message
        assert "Invalid data found" in exc_info.value.message
        assert lifecycle.active_count == 0

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    async def test_spawn_failure(self, mock_exec, lifecycle):
        mock_exec.side_effect = FileNotFoundError("ffmpeg")

        with pytest.raises(CompositionError, match="Failed to start FFmpeg"):
            await run_ffmpeg_command(["ffmpeg"], None, lifecycle, "concat")

        assert lifecycle.active_count == 0

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    async def test_timeout_kills_process(self, mock_exec, lifecycle):
        """Test deadline expiry force-terminates and raises the stage error."""
        process = hanging_process()
        mock_exec.return_value = process

        with pytest.raises(EncodeError, match="timed out"):
            await run_ffmpeg_command(["ffmpeg"], None, lifecycle, "segment_0", error_cls=EncodeError, timeout=0.01)

        process.kill.assert_called_once()
        process.wait.assert_awaited()
        assert lifecycle.active_count == 0

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    async def test_cancellation_kills_process(self, mock_exec, lifecycle):
        process = hanging_process()
        mock_exec.return_value = process

        task = asyncio.create_task(run_ffmpeg_command(["ffmpeg"], None, lifecycle, "segment_0"))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        process.kill.assert_called_once()
        assert lifecycle.active_count == 0

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    async def test_terminated_process_reports_termination(self, mock_exec, lifecycle, make_fake_process):
        """Test a shutdown-terminated process fails its stage with a clear message."""
        process = make_fake_process(-15)

        async def communicate():
            lifecycle.terminate_all()
            return b"", b""

        process.communicate = communicate
        mock_exec.return_value = process

        with pytest.raises(CompositionError, match="was terminated"):
            await run_ffmpeg_command(["ffmpeg"], None, lifecycle, "concat")


class TestProbes:
    """Tests for ffprobe helpers."""

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils._run_probe", new_callable=AsyncMock)
    async def test_probe_image_dimensions(self, mock_probe, tmp_path):
        mock_probe.return_value = json.dumps({"streams": [{"width": 640, "height": 480}]})

        assert await probe_image_dimensions(tmp_path / "a.png") == (640, 480)

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils._run_probe", new_callable=AsyncMock)
    async def test_probe_image_without_stream(self, mock_probe, tmp_path):
        mock_probe.return_value = json.dumps({"streams": []})

        with pytest.raises(EncodeError, match="a.png"):
            await probe_image_dimensions(tmp_path / "a.png")

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils._run_probe", new_callable=AsyncMock)
    async def test_probe_failure(self, mock_probe, tmp_path):
        mock_probe.side_effect = RuntimeError("Invalid data found")

        with pytest.raises(EncodeError, match="Invalid data found"):
            await probe_image_dimensions(tmp_path / "a.png")

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils._run_probe", new_callable=AsyncMock)
    async def test_get_media_duration(self, mock_probe, tmp_path):
        mock_probe.return_value = "6.000000\n"
        assert await get_media_duration(tmp_path / "v.mp4") == 6.0

    @pytest.mark.asyncio
    @patch("modules.slideshow.utils._run_probe", new_callable=AsyncMock)
    async def test_get_media_duration_unknown(self, mock_probe, tmp_path):
        mock_probe.return_value = "N/A\n"
        assert await get_media_duration(tmp_path / "v.mp4") is None


class TestCleanupHelpers:
    """Tests for best-effort removal helpers."""

    def test_remove_path(self, tmp_path):
        path = tmp_path / "segment_000.mp4"
        path.write_bytes(b"x")
        assert remove_path(path) is True
        assert not path.exists()
        # Already gone
        assert remove_path(path) is True

    def test_remove_paths_counts_failures(self, tmp_path):
        removable = tmp_path / "a.mp4"
        removable.write_bytes(b"x")
        directory = tmp_path / "not_a_file"
        directory.mkdir()

        assert remove_paths([removable, directory, tmp_path / "missing.mp4"]) == 1
        assert not removable.exists()

    def test_remove_tree(self, tmp_path):
        work_dir = tmp_path / "job_1"
        (work_dir / "segments").mkdir(parents=True)
        (work_dir / "segments" / "segment_000.mp4").write_bytes(b"x")

        assert remove_tree(work_dir) is True
        assert not work_dir.exists()
        assert remove_tree(work_dir) is True
