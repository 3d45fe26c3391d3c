"""
Test Configuration
==================

Pytest fixtures and fake frame sources for ClipGuard.
"""

import asyncio
from typing import List, Optional

import numpy as np
import pytest

from clipguard.blocker import VideoBlocker
from clipguard.errors import FrameCaptureError
from clipguard.hashing.phash import PerceptualHasher
from clipguard.hashing.quality import HashQualityGate
from clipguard.jobs.queue import ConcurrencyQueue
from clipguard.matching.registry import BlockRegistry
from clipguard.matching.similarity import SimilarityMatcher
from clipguard.pipeline import FingerprintPipeline
from clipguard.sampling.sampler import FrameSampler
from clipguard.store.memory import InMemoryFingerprintStore


SIZE = 32


def textured_frame(seed: int = 7, size: int = SIZE) -> np.ndarray:
    """Deterministic RGB frame with enough structure to hash non-trivially."""
    rng = np.random.default_rng(seed)
    return rng.integers(40, 216, size=(size, size, 3), dtype=np.uint8)


def solid_frame(value: int = 0, size: int = SIZE) -> np.ndarray:
    return np.full((size, size, 3), value, dtype=np.uint8)


class FakeFrameSource:
    """
    In-memory FrameSource.

    Serves frames from a list (the last one repeats). A frame entry of
    None makes that draw() raise FrameCaptureError. With frame_interval
    set, next_frame_event() returns an Event that fires after that delay.
    """

    def __init__(
        self,
        frames: List[Optional[np.ndarray]],
        ready_state: int = 4,
        width: int = 640,
        height: int = 360,
        duration: float = 0.0,
        current_time: float = 0.0,
        draw_delay: float = 0.0,
        seek_error: Optional[Exception] = None,
        frame_interval: Optional[float] = None,
    ) -> None:
        self.frames = frames
        self.ready_state = ready_state
        self.width = width
        self.height = height
        self.duration = duration
        self.current_time = current_time
        self.draw_delay = draw_delay
        self.seek_error = seek_error
        self.frame_interval = frame_interval
        self.frame_events = 0
        self.muted = False
        self.draw_count = 0
        self.seeks: List[float] = []
        self.muted_during_draw: List[bool] = []

    def seek(self, seconds: float) -> asyncio.Event:
        self.seeks.append(seconds)
        if self.seek_error is not None:
            raise self.seek_error
        self.current_time = seconds
        settled = asyncio.Event()
        settled.set()
        return settled

    async def draw(self, size: int) -> np.ndarray:
        index = min(self.draw_count, len(self.frames) - 1)
        self.draw_count += 1
        self.muted_during_draw.append(self.muted)
        if self.draw_delay:
            await asyncio.sleep(self.draw_delay)

        frame = self.frames[index]
        if frame is None:
            raise FrameCaptureError("frame unavailable")
        return frame

    def next_frame_event(self) -> Optional[asyncio.Event]:
        if self.frame_interval is None:
            return None
        self.frame_events += 1
        advanced = asyncio.Event()
        asyncio.get_running_loop().call_later(self.frame_interval, advanced.set)
        return advanced


@pytest.fixture
def hasher():
    return PerceptualHasher(sample_size=SIZE, block_size=8)


@pytest.fixture
def gate():
    return HashQualityGate(min_ones_zeros=4, expected_length=63)


@pytest.fixture
def sampler():
    return FrameSampler(
        sample_size=SIZE,
        ready_timeout=0.1,
        seek_timeout=0.1,
        ready_poll_interval=0.01,
    )


@pytest.fixture
def random_matrix():
    """Factory for deterministic S×S intensity matrices."""
    def make(seed: int = 1) -> np.ndarray:
        rng = np.random.default_rng(seed)
        return rng.integers(30, 220, size=(SIZE, SIZE)).astype(np.float64)
    return make


@pytest.fixture
def fingerprint_bits(hasher, random_matrix):
    """Factory for valid, non-trivial 63-bit fingerprints."""
    def make(seed: int = 1) -> str:
        return hasher.hash(random_matrix(seed)).bits
    return make


@pytest.fixture
def make_blocker(hasher, gate, sampler):
    """Factory for a VideoBlocker with fast timings."""
    def make(
        job_timeout: float = 2.0,
        max_concurrent: int = 3,
        retry_attempts: int = 3,
        threshold: int = 12,
        store: Optional[InMemoryFingerprintStore] = None,
    ) -> VideoBlocker:
        return VideoBlocker(
            pipeline=FingerprintPipeline(sampler, hasher, gate),
            queue=ConcurrencyQueue(
                max_concurrent=max_concurrent,
                job_timeout=job_timeout,
                poll_interval=0.01,
            ),
            registry=BlockRegistry(
                store if store is not None else InMemoryFingerprintStore(),
                SimilarityMatcher(threshold=threshold),
            ),
            frames_to_capture=3,
            auto_scan_frames=2,
            frame_delay=0.0,
            retry_attempts=retry_attempts,
            backoff=0.0,
            trivial_backoff=0.0,
        )
    return make
