"""
Error taxonomy for the composition pipeline.

All fatal pipeline failures derive from CompositionError and carry a `kind`
so callers can report a single structured failure.
"""

from pathlib import Path
from typing import Any, Dict, Optional
from uuid import UUID


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    kind = "pipeline_error"

    def __init__(self, message: str, job_id: Optional[UUID] = None):
        super().__init__(message)
        self.message = message
        self.job_id = job_id

    def to_dict(self) -> Dict[str, Any]:
        """Structured form returned to API callers."""
        data: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.job_id is not None:
            data["job_id"] = str(self.job_id)
        return data


class ConfigError(PipelineError):
    """Raised when configuration is invalid or missing."""

    kind = "config_error"


class CompositionError(PipelineError):
    """Fatal failure while composing a video."""

    kind = "composition_error"


class InputError(CompositionError):
    """No images supplied or invalid job parameters. Encoding never starts."""

    kind = "input_error"


class EncodeError(CompositionError):
    """A segment encode exited non-zero or its process failed to start."""

    kind = "encode_error"


class ConcatError(CompositionError):
    """Segment concatenation failed."""

    kind = "concat_error"


class MuxError(CompositionError):
    """
    Audio muxing failed.

    The silent video produced before muxing is kept on disk and exposed via
    `silent_video_path`.
    """

    kind = "mux_error"

    def __init__(
        self,
        message: str,
        job_id: Optional[UUID] = None,
        silent_video_path: Optional[Path] = None
    ):
        super().__init__(message, job_id=job_id)
        self.silent_video_path = silent_video_path


class CleanupError(PipelineError):
    """Failure to delete a temporary artifact. Logged, never escalated."""

    kind = "cleanup_error"
