"""
Sampling Module
===============

Frame capture and grayscale reduction.

Components:
    - FrameSource: Protocol for frame providers
    - VideoFileFrameSource: OpenCV-backed source for local files
    - FrameSampler: Multi-frame capture and averaging
    - rgb_to_gray_matrix, average_matrices: Pixel math
    - wait_first, wait_until: Bounded suspension helpers
"""

from clipguard.sampling.source import FrameSource, VideoFileFrameSource
from clipguard.sampling.sampler import FrameSampler
from clipguard.sampling.grayscale import average_matrices, rgb_to_gray_matrix, round_half_up
from clipguard.sampling.waits import wait_first, wait_until

__all__ = [
    "FrameSource",
    "VideoFileFrameSource",
    "FrameSampler",
    "average_matrices",
    "rgb_to_gray_matrix",
    "round_half_up",
    "wait_first",
    "wait_until",
]
