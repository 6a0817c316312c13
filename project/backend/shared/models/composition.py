"""
Composition data models.

Defines image assets, encoded segments, job options, the job state machine
and the composition result.
"""

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_serializer


class PerformanceProfile(str, Enum):
    """Coarse encode speed/quality trade-off."""

    NORMAL = "normal"
    LOW = "low"


class EncodeParams(BaseModel):
    """FFmpeg parameters used for every segment of a job."""

    model_config = ConfigDict(frozen=True)

    crf: int
    preset: str
    video_codec: str = "libx264"
    pixel_format: str = "yuv420p"
    colorspace: str = "bt709"
    color_primaries: str = "bt709"
    color_trc: str = "iec61966-2-1"  # sRGB transfer
    color_range: str = "pc"


class ImageAsset(BaseModel):
    """Source image parsed into its natural-order components."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(description="Original filename, used for ordering")
    base_name: str
    sequence_number: Optional[int] = Field(
        default=None,
        description="Parenthesized suffix, e.g. 2 for 'Shot (2).png'"
    )
    path: Optional[Path] = Field(default=None, description="Staged location on disk")

    @property
    def source_path(self) -> Path:
        """Path ffmpeg reads from (staged path, or the filename itself)."""
        return self.path if self.path is not None else Path(self.filename)


class Segment(BaseModel):
    """Fixed-duration clip produced from exactly one image."""

    index: int = Field(ge=0)
    source_asset: ImageAsset
    path: Path
    duration_seconds: float = Field(gt=0)
    encode_params: EncodeParams


class CompositionOptions(BaseModel):
    """Per-job parameters supplied by the caller."""

    duration_per_image: float = Field(default=5, gt=0, description="Seconds each image is held")
    fps: int = Field(default=30, gt=0)
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    performance_profile: PerformanceProfile = PerformanceProfile.NORMAL
    music_track: Optional[Path] = None


class JobState(str, Enum):
    """Composition job lifecycle."""

    CREATED = "created"
    ORDERING_RESOLVED = "ordering_resolved"
    SEGMENTS_IN_PROGRESS = "segments_in_progress"
    SEGMENTS_COMPLETE = "segments_complete"
    CONCATENATING = "concatenating"
    CONCATENATED = "concatenated"
    MUXING_AUDIO = "muxing_audio"
    MUXED = "muxed"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({JobState.DONE, JobState.FAILED})

# FAILED is reachable from every non-terminal state and is added in can_transition
ALLOWED_TRANSITIONS: Dict[JobState, Tuple[JobState, ...]] = {
    JobState.CREATED: (JobState.ORDERING_RESOLVED,),
    JobState.ORDERING_RESOLVED: (JobState.SEGMENTS_IN_PROGRESS,),
    JobState.SEGMENTS_IN_PROGRESS: (JobState.SEGMENTS_COMPLETE,),
    JobState.SEGMENTS_COMPLETE: (JobState.CONCATENATING,),
    JobState.CONCATENATING: (JobState.CONCATENATED,),
    JobState.CONCATENATED: (JobState.MUXING_AUDIO, JobState.DONE),
    JobState.MUXING_AUDIO: (JobState.MUXED,),
    JobState.MUXED: (JobState.DONE,),
    JobState.DONE: (),
    JobState.FAILED: (),
}


def can_transition(current: JobState, target: JobState) -> bool:
    """Check whether a job may move from `current` to `target`."""
    if current in TERMINAL_STATES:
        return False
    if target == JobState.FAILED:
        return True
    return target in ALLOWED_TRANSITIONS[current]


class CompositionJob(BaseModel):
    """A single composition run and its working state."""

    job_id: UUID
    work_dir: Path
    output_path: Path
    options: CompositionOptions
    state: JobState = JobState.CREATED
    history: List[JobState] = Field(default_factory=lambda: [JobState.CREATED])
    ordered_assets: List[ImageAsset] = Field(default_factory=list)
    ordered_segments: List[Segment] = Field(default_factory=list)
    resolution: Optional[Tuple[int, int]] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def manifest_path(self) -> Path:
        return self.work_dir / "segments.txt"

    @property
    def segments_dir(self) -> Path:
        return self.work_dir / "segments"

    def transition(self, target: JobState) -> None:
        """
        Move the job to `target`.

        Raises:
            ValueError: If the transition is not part of the state machine
        """
        if not can_transition(self.state, target):
            raise ValueError(
                f"Invalid job state transition: {self.state.value} -> {target.value}"
            )
        self.state = target
        self.history.append(target)


class CompositionResult(BaseModel):
    """Outcome of a successful composition."""

    job_id: UUID
    output_path: Path
    silent_video_path: Path
    has_audio: bool
    segment_count: int
    expected_duration: float = Field(description="segment_count * duration_per_image")
    resolution: Tuple[int, int]
    timings: Dict[str, float] = Field(default_factory=dict)

    @field_serializer("job_id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)
