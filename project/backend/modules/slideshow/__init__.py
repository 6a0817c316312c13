"""
Slideshow module.

Composition pipeline: orders still images naturally, encodes one segment per
image, concatenates the segments, optionally muxes background music and
produces the final MP4 video.
"""

from modules.slideshow.lifecycle import ProcessLifecycleManager
from modules.slideshow.process import compose

__all__ = ["compose", "ProcessLifecycleManager"]
