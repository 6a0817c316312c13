"""
Utility functions for slideshow module.

FFmpeg binary resolution, tracked command execution, ffprobe helpers and
best-effort artifact cleanup.
"""
import asyncio
import json
import shutil
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Type
from uuid import UUID

from shared.config import settings
from shared.errors import CleanupError, CompositionError, EncodeError
from shared.logging import get_logger
from .config import FFMPEG_BINARY, FFPROBE_BINARY, bundled_binary_candidates
from .lifecycle import ProcessLifecycleManager

logger = get_logger("slideshow.utils")

PROBE_TIMEOUT = 10
STDERR_TAIL_LINES = 8


def resolve_binary(binary: str, explicit: Optional[str] = None, app_root: Optional[Path] = None) -> str:
    """
    Resolve an FFmpeg-suite binary.

    An explicit path wins; otherwise bundled candidates under the deployment
    root are probed, falling back to the bare name resolved on PATH.

    Args:
        binary: Binary name ("ffmpeg" or "ffprobe")
        explicit: Configured override
        app_root: Deployment root (defaults to settings.app_root)

    Returns:
        Executable path or bare command name
    """
    if explicit:
        return explicit
    root = app_root if app_root is not None else settings.app_root
    for candidate in bundled_binary_candidates(Path(root), binary):
        if candidate.is_file():
            return str(candidate)
    return binary


def resolve_ffmpeg_binary() -> str:
    return resolve_binary(FFMPEG_BINARY, settings.ffmpeg_path)


def resolve_ffprobe_binary() -> str:
    return resolve_binary(FFPROBE_BINARY, settings.ffprobe_path)


def check_ffmpeg_available() -> bool:
    """
    Check if FFmpeg is bundled, configured or available in PATH.

    Returns:
        True if FFmpeg is available, False otherwise
    """
    binary = resolve_ffmpeg_binary()
    if Path(binary).is_file():
        return True
    return shutil.which(binary) is not None


def stderr_tail(stderr: Optional[bytes], max_lines: int = STDERR_TAIL_LINES) -> str:
    """Last non-empty stderr lines (FFmpeg prints its banner first)."""
    if not stderr:
        return "Unknown FFmpeg error"
    text = stderr.decode(errors="replace")
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if not lines:
        return "Unknown FFmpeg error"
    return "\n".join(lines[-max_lines:])


async def run_ffmpeg_command(
    cmd: List[str],
    job_id: Optional[UUID],
    lifecycle: ProcessLifecycleManager,
    label: str,
    error_cls: Type[CompositionError] = CompositionError,
    timeout: Optional[float] = None
) -> None:
    """
    Run an FFmpeg command registered with the lifecycle manager.

    The handle is registered before the process starts and deregistered on
    every exit path. Waiting is event driven; no thread is blocked.

    Args:
        cmd: FFmpeg command as list of strings
        job_id: Job ID for logging
        lifecycle: Registry tracking the invocation
        label: Stage label used in handle ids and messages
        error_cls: Stage error raised on failure
        timeout: Deadline in seconds, None for no deadline

    Raises:
        error_cls: If the process cannot start, exits non-zero, times out or is terminated
    """
    logger.info(
        f"Running FFmpeg command: {' '.join(cmd)}",
        extra={"job_id": str(job_id), "command": cmd, "label": label}
    )

    async with lifecycle.track(label, job_id=job_id) as handle:
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise error_cls(f"Failed to start FFmpeg ({label}): {e}", job_id=job_id) from e

        handle.attach(process)

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            lifecycle.terminate(handle.id, force=True)
            await process.wait()
            logger.error(
                f"FFmpeg {label} timed out after {timeout}s",
                extra={"job_id": str(job_id), "label": label}
            )
            raise error_cls(f"FFmpeg {label} timed out after {timeout}s", job_id=job_id)
        except asyncio.CancelledError:
            lifecycle.terminate(handle.id, force=True)
            raise

        if process.returncode != 0:
            if handle.terminated:
                raise error_cls(f"FFmpeg {label} was terminated", job_id=job_id)
            error_msg = stderr_tail(stderr)
            logger.error(
                f"FFmpeg command failed: {error_msg}",
                extra={"job_id": str(job_id), "error": error_msg, "command": cmd, "label": label}
            )
            raise error_cls(
                f"FFmpeg {label} failed (exit code {process.returncode}): {error_msg}",
                job_id=job_id
            )


async def _run_probe(cmd: List[str]) -> str:
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=PROBE_TIMEOUT)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise
    if process.returncode != 0:
        raise RuntimeError(stderr_tail(stderr))
    return stdout.decode(errors="replace")


async def probe_image_dimensions(image_path: Path, job_id: Optional[UUID] = None) -> Tuple[int, int]:
    """
    Get image width and height using ffprobe.

    Args:
        image_path: Path to image file
        job_id: Job ID for logging

    Returns:
        (width, height) in pixels

    Raises:
        EncodeError: If ffprobe cannot start or the image has no readable video stream
    """
    cmd = [
        resolve_ffprobe_binary(),
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height",
        "-of", "json",
        str(image_path)
    ]
    try:
        output = await _run_probe(cmd)
        streams = json.loads(output).get("streams") or []
        width = int(streams[0]["width"])
        height = int(streams[0]["height"])
    except (OSError, RuntimeError, asyncio.TimeoutError, ValueError, KeyError, IndexError) as e:
        raise EncodeError(f"Could not probe dimensions of {image_path.name}: {e}", job_id=job_id) from e

    logger.debug(
        f"Probed {image_path.name}: {width}x{height}",
        extra={"job_id": str(job_id), "width": width, "height": height}
    )
    return width, height


async def get_media_duration(media_path: Path) -> Optional[float]:
    """
    Get container duration using ffprobe.

    Args:
        media_path: Path to video or audio file

    Returns:
        Duration in seconds, or None if it cannot be determined
    """
    cmd = [
        resolve_ffprobe_binary(),
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(media_path)
    ]
    try:
        return float((await _run_probe(cmd)).strip())
    except (OSError, RuntimeError, asyncio.TimeoutError, ValueError) as e:
        logger.warning(
            f"Failed to get media duration: {e}",
            extra={"media_path": str(media_path)}
        )
        return None


def remove_path(path: Path, job_id: Optional[UUID] = None) -> bool:
    """
    Delete a file, tolerating files that are already gone. Never raises.

    Returns:
        False if deletion failed
    """
    try:
        path.unlink(missing_ok=True)
        return True
    except OSError as e:
        error = CleanupError(f"Failed to remove {path}: {e}", job_id=job_id)
        logger.warning(error.message, extra={"job_id": str(job_id), "kind": error.kind})
        return False


def remove_paths(paths: Iterable[Path], job_id: Optional[UUID] = None) -> int:
    """
    Delete several files best-effort.

    Returns:
        Number of paths that could not be removed
    """
    return sum(0 if remove_path(p, job_id=job_id) else 1 for p in paths)


def remove_tree(directory: Path, job_id: Optional[UUID] = None) -> bool:
    """Delete a directory tree best-effort. Never raises."""
    failures: List[str] = []

    def _on_exc(func, path, exc):
        failures.append(f"{path}: {exc}")

    if not directory.exists():
        return True
    if sys.version_info >= (3, 12):
        shutil.rmtree(directory, onexc=_on_exc)
    else:
        shutil.rmtree(directory, onerror=lambda func, path, exc_info: _on_exc(func, path, exc_info[1]))
    for failure in failures:
        error = CleanupError(f"Failed to remove {failure}", job_id=job_id)
        logger.warning(error.message, extra={"job_id": str(job_id), "kind": error.kind})
    return not failures
