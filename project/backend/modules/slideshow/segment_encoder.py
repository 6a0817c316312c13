"""
Segment encoding for slideshow module.

Turns each ordered image into a fixed-duration H.264 clip, one FFmpeg
invocation at a time. Encoding is sequential to bound peak memory and CPU.
"""
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from shared.errors import CompositionError, EncodeError
from shared.logging import get_logger
from shared.models.composition import EncodeParams, ImageAsset, PerformanceProfile, Segment
from .config import (
    OUTPUT_COLOR_PRIMARIES,
    OUTPUT_COLOR_RANGE,
    OUTPUT_COLOR_TRC,
    OUTPUT_COLORSPACE,
    OUTPUT_PIXEL_FORMAT,
    OUTPUT_VIDEO_CODEC,
    PROFILE_SETTINGS,
    SEGMENT_EXTENSION,
    SEGMENT_INDEX_MIN_WIDTH,
    SEGMENT_PREFIX,
)
from .lifecycle import ProcessLifecycleManager
from .utils import remove_path, remove_paths, resolve_ffmpeg_binary, run_ffmpeg_command

logger = get_logger("slideshow.segment_encoder")


def encode_params_for(profile: PerformanceProfile) -> EncodeParams:
    """
    Encode parameters for a performance profile.

    normal: CRF 23, preset "fast". low: CRF 28, preset "ultrafast".
    Pixel format and color tags are the same for every profile.
    """
    crf, preset = PROFILE_SETTINGS[PerformanceProfile(profile)]
    return EncodeParams(
        crf=crf,
        preset=preset,
        video_codec=OUTPUT_VIDEO_CODEC,
        pixel_format=OUTPUT_PIXEL_FORMAT,
        colorspace=OUTPUT_COLORSPACE,
        color_primaries=OUTPUT_COLOR_PRIMARIES,
        color_trc=OUTPUT_COLOR_TRC,
        color_range=OUTPUT_COLOR_RANGE
    )


def segment_filename(index: int, total: int) -> str:
    """
    Zero-padded segment filename, e.g. "segment_007.mp4".

    The pad width grows with the job size so that a plain lexicographic
    listing of the segments directory matches index order.
    """
    width = max(SEGMENT_INDEX_MIN_WIDTH, len(str(max(total - 1, 0))))
    return f"{SEGMENT_PREFIX}{index:0{width}d}{SEGMENT_EXTENSION}"


def format_seconds(seconds: float) -> str:
    """
    Plain decimal form of a duration for FFmpeg's time options.

    Keeps every significant digit of the float and never uses exponent
    notation, e.g. 5 -> "5.0", 0.1234567 -> "0.1234567", 1e16 -> "10000000000000000".
    """
    return format(Decimal(repr(float(seconds))), "f")


def build_segment_command(
    image_path: Path,
    output_path: Path,
    duration_seconds: float,
    fps: int,
    resolution: Tuple[int, int],
    params: EncodeParams
) -> List[str]:
    """Build the FFmpeg command that holds one image for `duration_seconds`."""
    width, height = resolution
    return [
        resolve_ffmpeg_binary(),
        "-loop", "1",
        "-t", format_seconds(duration_seconds),
        "-i", str(image_path),
        "-c:v", params.video_codec,
        "-s", f"{width}x{height}",
        "-r", str(fps),
        "-crf", str(params.crf),
        "-preset", params.preset,
        "-pix_fmt", params.pixel_format,
        "-colorspace", params.colorspace,
        "-color_trc", params.color_trc,
        "-color_primaries", params.color_primaries,
        "-color_range", params.color_range,
        "-y",
        str(output_path)
    ]


async def encode_segment(
    asset: ImageAsset,
    index: int,
    total: int,
    segments_dir: Path,
    duration_seconds: float,
    fps: int,
    resolution: Tuple[int, int],
    params: EncodeParams,
    job_id: Optional[UUID],
    lifecycle: ProcessLifecycleManager,
    timeout: Optional[float] = None
) -> Segment:
    """
    Encode one image into a segment.

    Raises:
        EncodeError: If FFmpeg fails or produces no output
    """
    output_path = segments_dir / segment_filename(index, total)
    cmd = build_segment_command(
        asset.source_path, output_path, duration_seconds, fps, resolution, params
    )

    try:
        await run_ffmpeg_command(
            cmd,
            job_id=job_id,
            lifecycle=lifecycle,
            label=f"segment_{index}",
            error_cls=EncodeError,
            timeout=timeout
        )
        if not output_path.exists():
            raise EncodeError(f"Segment {index} not created: {output_path}", job_id=job_id)
    except Exception as e:
        remove_path(output_path, job_id=job_id)
        if isinstance(e, CompositionError):
            raise
        raise EncodeError(f"Failed to encode segment {index} ({asset.filename}): {e}", job_id=job_id) from e

    logger.info(
        f"Segment {index} created: {output_path}",
        extra={"job_id": str(job_id), "segment_index": index, "image_filename": asset.filename}
    )
    return Segment(
        index=index,
        source_asset=asset,
        path=output_path,
        duration_seconds=duration_seconds,
        encode_params=params
    )


async def encode_segments(
    assets: Sequence[ImageAsset],
    segments_dir: Path,
    duration_seconds: float,
    fps: int,
    resolution: Tuple[int, int],
    profile: PerformanceProfile,
    job_id: Optional[UUID],
    lifecycle: ProcessLifecycleManager,
    timeout: Optional[float] = None
) -> List[Segment]:
    """
    Encode every asset in order, awaiting each segment before the next.

    Args:
        assets: Images in resolved order
        segments_dir: Job-owned directory for segment files
        duration_seconds: Seconds each image is held
        fps: Output frame rate
        resolution: (width, height) shared by all segments
        profile: Performance profile
        job_id: Job ID for logging
        lifecycle: Registry tracking each invocation
        timeout: Per-segment deadline in seconds

    Returns:
        Segments with contiguous indices 0..N-1

    Raises:
        EncodeError: On the first failing segment, after removing every
            segment file produced so far
    """
    params = encode_params_for(profile)
    segments_dir.mkdir(parents=True, exist_ok=True)
    total = len(assets)
    segments: List[Segment] = []

    logger.info(
        f"Encoding {total} segments ({resolution[0]}x{resolution[1]} @ {fps}fps, "
        f"crf {params.crf}, preset {params.preset})",
        extra={"job_id": str(job_id), "segment_count": total, "profile": PerformanceProfile(profile).value}
    )

    for index, asset in enumerate(assets):
        try:
            segment = await encode_segment(
                asset, index, total, segments_dir, duration_seconds, fps,
                resolution, params, job_id, lifecycle, timeout=timeout
            )
        except BaseException:
            logger.error(
                f"Error creating segment {index}, aborting remaining {total - index - 1} segments",
                extra={"job_id": str(job_id), "segment_index": index}
            )
            remove_paths((s.path for s in segments), job_id=job_id)
            raise
        segments.append(segment)

    return segments
