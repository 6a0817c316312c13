"""
Segment concatenation for slideshow module.

Merges encoded segments into one silent video with the concat demuxer and
stream copy. Every segment shares codec, resolution and frame rate, so no
re-encode is needed and per-segment durations are preserved exactly.
"""
from pathlib import Path
from typing import List, Optional, Sequence
from uuid import UUID

from shared.errors import CompositionError, ConcatError
from shared.logging import get_logger
from shared.models.composition import Segment
from .lifecycle import ProcessLifecycleManager
from .manifest import write_manifest
from .utils import remove_path, remove_paths, resolve_ffmpeg_binary, run_ffmpeg_command

logger = get_logger("slideshow.concatenator")


def build_concat_command(manifest_path: Path, output_path: Path) -> List[str]:
    return [
        resolve_ffmpeg_binary(),
        "-f", "concat",
        "-safe", "0",  # Allow absolute paths in the manifest
        "-i", str(manifest_path),
        "-c:v", "copy",
        "-y",
        str(output_path)
    ]


def cleanup_segment_artifacts(
    segments: Sequence[Segment],
    manifest_path: Optional[Path],
    job_id: Optional[UUID] = None
) -> int:
    """
    Remove the manifest and segment files. Safe to call repeatedly.

    Returns:
        Number of files that could not be removed
    """
    paths = [s.path for s in segments]
    if manifest_path is not None:
        paths.insert(0, manifest_path)
    failures = remove_paths(paths, job_id=job_id)
    if failures:
        logger.warning(
            f"Error cleaning up temporary files: {failures} could not be removed",
            extra={"job_id": str(job_id), "failures": failures}
        )
    return failures


async def concatenate_segments(
    segments: Sequence[Segment],
    manifest_path: Path,
    output_path: Path,
    job_id: Optional[UUID],
    lifecycle: ProcessLifecycleManager,
    timeout: Optional[float] = None
) -> Path:
    """
    Concatenate segments into a single silent video.

    The manifest and all segment files are removed afterwards, on success
    and on failure.

    Args:
        segments: Completed segments
        manifest_path: Where to write the concat list
        output_path: Silent video destination
        job_id: Job ID for logging
        lifecycle: Registry tracking the invocation
        timeout: Deadline in seconds

    Returns:
        Path to the concatenated video

    Raises:
        ConcatError: If there is nothing to concatenate or FFmpeg fails
    """
    ordered = sorted(segments, key=lambda s: s.index)
    if not ordered:
        raise ConcatError("No segments to concatenate", job_id=job_id)
    if [s.index for s in ordered] != list(range(len(ordered))):
        cleanup_segment_artifacts(ordered, None, job_id=job_id)
        raise ConcatError("Segment indices are not contiguous", job_id=job_id)

    expected_duration = sum(s.duration_seconds for s in ordered)
    logger.info(
        f"All segments created, concatenating {len(ordered)} segments "
        f"(expected duration {expected_duration:g}s)",
        extra={"job_id": str(job_id), "segment_count": len(ordered), "expected_duration": expected_duration}
    )

    try:
        write_manifest([s.path.resolve() for s in ordered], manifest_path)
        await run_ffmpeg_command(
            build_concat_command(manifest_path, output_path),
            job_id=job_id,
            lifecycle=lifecycle,
            label="concat",
            error_cls=ConcatError,
            timeout=timeout
        )
        if not output_path.exists():
            raise ConcatError(f"Concatenated video not created: {output_path}", job_id=job_id)
    except Exception as e:
        remove_path(output_path, job_id=job_id)
        logger.error(f"Error concatenating video: {e}", extra={"job_id": str(job_id)})
        if isinstance(e, CompositionError):
            raise
        raise ConcatError(f"Failed to concatenate segments: {e}", job_id=job_id) from e
    finally:
        cleanup_segment_artifacts(ordered, manifest_path, job_id=job_id)

    logger.info(
        "Video concatenation completed successfully",
        extra={"job_id": str(job_id), "output_path": str(output_path)}
    )
    return output_path
