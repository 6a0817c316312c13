"""
Data models for the composition pipeline.

This module exports all Pydantic models used across pipeline modules.
"""

from .composition import (
    PerformanceProfile,
    EncodeParams,
    ImageAsset,
    Segment,
    CompositionOptions,
    CompositionJob,
    CompositionResult,
    JobState,
    TERMINAL_STATES,
    can_transition,
)

__all__ = [
    "PerformanceProfile",
    "EncodeParams",
    "ImageAsset",
    "Segment",
    "CompositionOptions",
    "CompositionJob",
    "CompositionResult",
    "JobState",
    "TERMINAL_STATES",
    "can_transition",
]
