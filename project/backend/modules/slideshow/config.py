"""
Slideshow configuration.

Centralized FFmpeg settings, encode profiles, file naming and extension
allow-lists for the composition pipeline.
"""
from pathlib import Path
from typing import Dict, List, Tuple

from shared.models.composition import PerformanceProfile

# Binaries
FFMPEG_BINARY = "ffmpeg"
FFPROBE_BINARY = "ffprobe"

# Bundled binary locations, relative to the deployment root, probed before PATH
BUNDLED_BINARY_DIRS: Tuple[Tuple[str, ...], ...] = (
    ("ffmpeg", "bin"),
    ("bin",),
)
BINARY_SUFFIXES = ("", ".exe")

# Segment encoding
OUTPUT_VIDEO_CODEC = "libx264"
OUTPUT_PIXEL_FORMAT = "yuv420p"  # 8-bit 4:2:0
OUTPUT_COLORSPACE = "bt709"
OUTPUT_COLOR_PRIMARIES = "bt709"
OUTPUT_COLOR_TRC = "iec61966-2-1"  # sRGB transfer characteristic
OUTPUT_COLOR_RANGE = "pc"  # full range

# (crf, preset) per performance profile
PROFILE_SETTINGS: Dict[PerformanceProfile, Tuple[int, str]] = {
    PerformanceProfile.NORMAL: (23, "fast"),
    PerformanceProfile.LOW: (28, "ultrafast"),  # Higher compression, fastest encoding
}

DEFAULT_DURATION_PER_IMAGE = 5
DEFAULT_FPS = 30

# Audio muxing
OUTPUT_AUDIO_CODEC = "aac"
OUTPUT_AUDIO_BITRATE = "192k"
OUTPUT_AUDIO_SAMPLE_RATE = 44100
OUTPUT_AUDIO_CHANNELS = 2

# Artifact naming
SEGMENT_PREFIX = "segment_"
SEGMENT_EXTENSION = ".mp4"
SEGMENT_INDEX_MIN_WIDTH = 3
MANIFEST_FILENAME = "segments.txt"
JOB_DIR_PREFIX = "job_"
OUTPUT_VIDEO_TEMPLATE = "output_video_{job_id}.mp4"
OUTPUT_VIDEO_WITH_MUSIC_TEMPLATE = "output_video_{job_id}_with_music.mp4"

# Allow-lists (lower-case, with dot)
IMAGE_EXTENSIONS: List[str] = [".png", ".jpg", ".jpeg", ".bmp", ".tiff"]
MUSIC_EXTENSIONS: List[str] = [".mp3", ".wav", ".aac", ".flac", ".m4a", ".ogg"]

# Tolerance used when comparing probed durations against N * d
DURATION_TOLERANCE = 0.5


def bundled_binary_candidates(app_root: Path, binary: str) -> List[Path]:
    """
    Bundled binary paths probed before falling back to PATH.

    Args:
        app_root: Deployment root directory
        binary: Binary name without extension (e.g. "ffmpeg")

    Returns:
        Candidate paths in probe order
    """
    return [
        app_root.joinpath(*parts, f"{binary}{suffix}")
        for parts in BUNDLED_BINARY_DIRS
        for suffix in BINARY_SUFFIXES
    ]
