"""
Audio muxing for slideshow module.

Combines the silent video with a music track. The picture stream is copied
untouched, audio is normalized to AAC 192k / 44.1 kHz / stereo, and the
output ends with the shorter of the two streams.
"""
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from shared.errors import MuxError
from shared.logging import get_logger
from .config import (
    OUTPUT_AUDIO_BITRATE,
    OUTPUT_AUDIO_CHANNELS,
    OUTPUT_AUDIO_CODEC,
    OUTPUT_AUDIO_SAMPLE_RATE,
)
from .lifecycle import ProcessLifecycleManager
from .utils import remove_path, resolve_ffmpeg_binary, run_ffmpeg_command

logger = get_logger("slideshow.audio_muxer")


def build_mux_command(video_path: Path, music_path: Path, output_path: Path) -> List[str]:
    return [
        resolve_ffmpeg_binary(),
        "-i", str(video_path),
        "-i", str(music_path),
        "-c:v", "copy",  # Copy video (no re-encoding)
        "-c:a", OUTPUT_AUDIO_CODEC,
        "-b:a", OUTPUT_AUDIO_BITRATE,
        "-ar", str(OUTPUT_AUDIO_SAMPLE_RATE),
        "-ac", str(OUTPUT_AUDIO_CHANNELS),
        "-shortest",  # Truncate to the shorter stream, never loop
        "-y",
        str(output_path)
    ]


async def mux_audio(
    video_path: Path,
    music_path: Path,
    output_path: Path,
    job_id: Optional[UUID],
    lifecycle: ProcessLifecycleManager,
    timeout: Optional[float] = None
) -> Path:
    """
    Add background music to a video.

    Args:
        video_path: Silent concatenated video (kept on failure)
        music_path: Music track
        output_path: Destination for the video with music
        job_id: Job ID for logging
        lifecycle: Registry tracking the invocation
        timeout: Deadline in seconds

    Returns:
        Path to the muxed video

    Raises:
        MuxError: If FFmpeg fails; `silent_video_path` points at the intact input
    """
    logger.info(
        f"Adding music {music_path.name} to video",
        extra={"job_id": str(job_id), "music": music_path.name}
    )

    try:
        await run_ffmpeg_command(
            build_mux_command(video_path, music_path, output_path),
            job_id=job_id,
            lifecycle=lifecycle,
            label="music",
            error_cls=MuxError,
            timeout=timeout
        )
        if not output_path.exists():
            raise MuxError(f"Video with music not created: {output_path}", job_id=job_id)
    except Exception as e:
        remove_path(output_path, job_id=job_id)
        logger.error(f"Error adding music to video: {e}", extra={"job_id": str(job_id)})
        raise MuxError(
            e.message if isinstance(e, MuxError) else f"Failed to add music: {e}",
            job_id=job_id,
            silent_video_path=video_path
        ) from e

    logger.info("Music added to video successfully", extra={"job_id": str(job_id)})
    return output_path
