"""
Main entry point for slideshow module.

Orchestrates a composition job: resolves image order, encodes one segment
per image (sequentially), concatenates the segments, optionally muxes a
music track, and removes every temporary artifact on the way out.
"""
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Optional, Sequence, Tuple, Union
from uuid import UUID, uuid4

from shared.config import settings
from shared.errors import CompositionError, InputError
from shared.logging import get_logger, set_job_id
from shared.models.composition import (
    CompositionJob,
    CompositionOptions,
    CompositionResult,
    ImageAsset,
    JobState,
)
from .audio_muxer import mux_audio
from .concatenator import cleanup_segment_artifacts, concatenate_segments
from .config import (
    DURATION_TOLERANCE,
    JOB_DIR_PREFIX,
    OUTPUT_VIDEO_TEMPLATE,
    OUTPUT_VIDEO_WITH_MUSIC_TEMPLATE,
)
from .lifecycle import ProcessLifecycleManager
from .natural_order import resolve_order
from .segment_encoder import encode_segments
from .utils import check_ffmpeg_available, get_media_duration, probe_image_dimensions, remove_tree

logger = get_logger("slideshow.process")

_UNSET = object()


@asynccontextmanager
async def job_workspace(job_id: UUID, work_root: Optional[Path] = None) -> AsyncIterator[Path]:
    """
    Isolated working directory for one job, removed on exit.

    Args:
        job_id: Job identifier, used as the directory key
        work_root: Parent directory (defaults to settings.work_root)

    Yields:
        Path to <work_root>/job_<job_id>
    """
    root = Path(work_root) if work_root is not None else Path(settings.work_root)
    work_dir = root / f"{JOB_DIR_PREFIX}{job_id}"
    work_dir.mkdir(parents=True, exist_ok=False)
    try:
        yield work_dir
    finally:
        remove_tree(work_dir, job_id=job_id)


def cleanup_job(job: CompositionJob) -> None:
    """
    Remove the job's manifest and segment files. Idempotent, never raises.

    Final outputs (and the silent video) live outside the work dir and are
    never touched here.
    """
    cleanup_segment_artifacts(job.ordered_segments, job.manifest_path, job_id=job.job_id)
    remove_tree(job.segments_dir, job_id=job.job_id)


async def resolve_resolution(
    options: CompositionOptions,
    first_asset: ImageAsset,
    job_id: Optional[UUID] = None
) -> Tuple[int, int]:
    """
    Output resolution: explicit width/height, each falling back to the
    probed dimensions of the first ordered image.
    """
    if options.width and options.height:
        return options.width, options.height
    probed_width, probed_height = await probe_image_dimensions(first_asset.source_path, job_id=job_id)
    return options.width or probed_width, options.height or probed_height


async def _run_job(
    job: CompositionJob,
    images: Sequence[Union[str, ImageAsset]],
    silent_path: Path,
    lifecycle: ProcessLifecycleManager,
    timeout: Optional[float]
) -> CompositionResult:
    options = job.options
    job_id = job.job_id
    start_time = time.time()
    timings: Dict[str, float] = {}

    try:
        job.ordered_assets = resolve_order(images)
        job.transition(JobState.ORDERING_RESOLVED)

        segment_count = len(job.ordered_assets)
        expected_duration = segment_count * options.duration_per_image
        logger.info(
            f"Expected video duration: {expected_duration:g} seconds "
            f"({segment_count} images x {options.duration_per_image:g}s each)",
            extra={
                "job_id": str(job_id),
                "segment_count": segment_count,
                "expected_duration": expected_duration,
                "fps": options.fps,
                "profile": options.performance_profile.value
            }
        )

        job.resolution = await resolve_resolution(options, job.ordered_assets[0], job_id=job_id)

        # Segments
        job.transition(JobState.SEGMENTS_IN_PROGRESS)
        step_start = time.time()
        job.ordered_segments = await encode_segments(
            job.ordered_assets,
            job.segments_dir,
            options.duration_per_image,
            options.fps,
            job.resolution,
            options.performance_profile,
            job_id=job_id,
            lifecycle=lifecycle,
            timeout=timeout
        )
        timings["encode_segments"] = time.time() - step_start
        job.transition(JobState.SEGMENTS_COMPLETE)

        # Concatenation
        job.transition(JobState.CONCATENATING)
        step_start = time.time()
        await concatenate_segments(
            job.ordered_segments,
            job.manifest_path,
            silent_path,
            job_id=job_id,
            lifecycle=lifecycle,
            timeout=timeout
        )
        timings["concatenate"] = time.time() - step_start
        job.transition(JobState.CONCATENATED)

        actual_duration = await get_media_duration(silent_path)
        if actual_duration is not None and abs(actual_duration - expected_duration) > DURATION_TOLERANCE:
            logger.warning(
                f"Concatenated duration {actual_duration:.2f}s differs from expected {expected_duration:g}s",
                extra={"job_id": str(job_id), "actual_duration": actual_duration}
            )

        # Music
        has_audio = False
        if options.music_track is not None:
            job.transition(JobState.MUXING_AUDIO)
            step_start = time.time()
            await mux_audio(
                silent_path,
                options.music_track,
                job.output_path,
                job_id=job_id,
                lifecycle=lifecycle,
                timeout=timeout
            )
            timings["mux_audio"] = time.time() - step_start
            job.transition(JobState.MUXED)
            has_audio = True

        job.transition(JobState.DONE)

    except CompositionError:
        job.transition(JobState.FAILED)
        logger.error("Composition failed", exc_info=True, extra={"job_id": str(job_id)})
        raise
    except Exception as e:
        job.transition(JobState.FAILED)
        logger.error(
            f"Unexpected composition error: {e}",
            exc_info=True,
            extra={"job_id": str(job_id)}
        )
        raise CompositionError(f"Unexpected error during composition: {e}", job_id=job_id) from e
    except BaseException:
        # Cancelled (e.g. client gone or shutdown)
        job.transition(JobState.FAILED)
        logger.warning("Composition cancelled", extra={"job_id": str(job_id)})
        raise
    finally:
        cleanup_job(job)

    timings["total"] = time.time() - start_time
    logger.info(
        f"Composition complete in {timings['total']:.2f}s: {job.output_path.name}",
        extra={"job_id": str(job_id), "timings": timings, "has_audio": has_audio}
    )

    return CompositionResult(
        job_id=job_id,
        output_path=job.output_path,
        silent_video_path=silent_path,
        has_audio=has_audio,
        segment_count=len(job.ordered_segments),
        expected_duration=expected_duration,
        resolution=job.resolution,
        timings=timings
    )


async def compose(
    images: Sequence[Union[str, ImageAsset]],
    options: CompositionOptions,
    output_dir: Optional[Path] = None,
    lifecycle: Optional[ProcessLifecycleManager] = None,
    job_id: Optional[UUID] = None,
    work_dir: Optional[Path] = None,
    work_root: Optional[Path] = None,
    timeout=_UNSET
) -> CompositionResult:
    """
    Compose a video from still images.

    Args:
        images: Filenames or parsed assets (staged paths); ordered here
        options: Duration, fps, resolution, profile and optional music track
        output_dir: Where final videos are written (defaults to settings.output_dir)
        lifecycle: Process registry; a private one is created if omitted
        job_id: Job identifier (generated if omitted)
        work_dir: Caller-owned working directory. When omitted an isolated
            job_<id> directory is created under work_root and removed afterwards
        work_root: Parent for the generated working directory
        timeout: Per-invocation FFmpeg deadline (defaults to settings.ffmpeg_timeout)

    Returns:
        CompositionResult describing the final artifact

    Raises:
        InputError: No images supplied
        EncodeError: A segment could not be encoded
        ConcatError: Concatenation failed
        MuxError: Music could not be added (silent video kept)
        CompositionError: FFmpeg unavailable or unexpected failure
    """
    job_id = job_id or uuid4()
    set_job_id(job_id)

    if not images:
        raise InputError("No images supplied", job_id=job_id)

    if not check_ffmpeg_available():
        raise CompositionError(
            "FFmpeg not found. Please install FFmpeg:\n"
            "  macOS: brew install ffmpeg\n"
            "  Linux: apt-get install ffmpeg or yum install ffmpeg\n"
            "  Windows: Download from https://ffmpeg.org/",
            job_id=job_id
        )

    lifecycle = lifecycle if lifecycle is not None else ProcessLifecycleManager()
    deadline = settings.deadline if timeout is _UNSET else timeout

    if options.music_track is not None and not Path(options.music_track).is_file():
        logger.warning(
            f"Music track not found, producing silent video: {options.music_track}",
            extra={"job_id": str(job_id)}
        )
        options = options.model_copy(update={"music_track": None})

    out_dir = Path(output_dir) if output_dir is not None else Path(settings.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    silent_path = out_dir / OUTPUT_VIDEO_TEMPLATE.format(job_id=job_id)
    final_path = (
        out_dir / OUTPUT_VIDEO_WITH_MUSIC_TEMPLATE.format(job_id=job_id)
        if options.music_track is not None else silent_path
    )

    logger.info(
        f"Starting composition of {len(images)} images",
        extra={"job_id": str(job_id), "image_count": len(images)}
    )

    try:
        if work_dir is not None:
            job = CompositionJob(job_id=job_id, work_dir=Path(work_dir), output_path=final_path, options=options)
            return await _run_job(job, images, silent_path, lifecycle, deadline)

        async with job_workspace(job_id, work_root) as owned_dir:
            job = CompositionJob(job_id=job_id, work_dir=owned_dir, output_path=final_path, options=options)
            return await _run_job(job, images, silent_path, lifecycle, deadline)
    finally:
        set_job_id(None)
