"""
ClipGuard
=========

Perceptual fingerprinting and near-duplicate blocking for short video clips.

A clip is sampled into a handful of frames, reduced to a 32x32 grayscale
matrix, and hashed with a DCT-based perceptual hash. The resulting 63-bit
fingerprint is compared against a blocklist by Hamming distance.

Components:
    - sampling: Frame capture, grayscale reduction, and averaging
    - hashing: DCT transform, perceptual hash, and quality gate
    - matching: Hamming-distance matcher and the in-memory block registry
    - jobs: Bounded-concurrency job scheduler with per-job timeout
    - store: Fingerprint store protocol and in-memory implementation
    - blocker: Orchestration of fingerprint/block/check operations

Example:
    from clipguard.config import load_config
    from clipguard.blocker import VideoBlocker

    settings = load_config()
    blocker = VideoBlocker.from_settings(settings)
    blocked = await blocker.check(source)
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
