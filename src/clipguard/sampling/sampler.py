"""
Frame Sampler
=============

Captures a few frames from a source and averages them into one
denoised S×S grayscale matrix.

Steps:
    1. Wait (bounded) for the source to reach the ready-state threshold
    2. Mute the source for the duration of the capture (always restored)
    3. Seek away from t=0, which is often a static poster frame
    4. Capture frame_count frames, frame_delay apart (or at frame advance)
    5. Average the captured matrices

Failure policy:
    - A failed frame is logged and skipped, whatever the source raised
    - Zero captured frames -> None (never a matrix of zeros)
    - Seek failures are non-fatal; capture proceeds at the current position
    - A source that never becomes ready yields None
"""

import logging
import math
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

import numpy as np

from clipguard.errors import ClipGuardError, FrameCaptureError, InvalidMatrixError
from clipguard.sampling.grayscale import average_matrices, rgb_to_gray_matrix
from clipguard.sampling.source import FrameSource
from clipguard.sampling.waits import wait_first, wait_until


logger = logging.getLogger(__name__)


# Clips shorter than this are too short for the proportional seek
LONG_CLIP_SECONDS = 2.0
# Skip the seek when already this close to the target
SEEK_TOLERANCE_SECONDS = 0.5
# Short-clip fallback: nudge off the poster frame
SHORT_CLIP_MIN_SECONDS = 0.5
SHORT_CLIP_SEEK_SECONDS = 0.3
SHORT_CLIP_SEEK_TIMEOUT = 1.0


class FrameSampler:
    """
    Multi-frame grayscale sampler.
    
    Attributes:
        sample_size: Output matrix edge S
        ready_timeout: Seconds to wait for readiness
        ready_state_threshold: Minimum ready_state to capture
        seek_timeout: Seconds to wait for a seek to settle
        seek_fraction: Seek target as a fraction of duration
        max_seek_seconds: Upper bound on the seek target
        
    Example:
        sampler = FrameSampler(sample_size=32)
        matrix = await sampler.sample(source, frame_count=3, frame_delay=0.12)
        if matrix is None:
            ...  # no usable frames
    """
    
    def __init__(
        self,
        sample_size: int = 32,
        ready_timeout: float = 1.5,
        ready_state_threshold: int = 2,
        seek_timeout: float = 2.0,
        seek_fraction: float = 0.1,
        max_seek_seconds: float = 2.0,
        ready_poll_interval: float = 0.05,
    ) -> None:
        if sample_size < 1:
            raise ValueError("sample_size must be >= 1")
        
        self.sample_size = sample_size
        self.ready_timeout = ready_timeout
        self.ready_state_threshold = ready_state_threshold
        self.seek_timeout = seek_timeout
        self.seek_fraction = seek_fraction
        self.max_seek_seconds = max_seek_seconds
        self.ready_poll_interval = ready_poll_interval
    
    async def sample(
        self,
        source: FrameSource,
        frame_count: int = 3,
        frame_delay: float = 0.12,
    ) -> Optional[np.ndarray]:
        """
        Capture and average frames from a source.
        
        Args:
            source: Frame source
            frame_count: Frames to capture (>= 1)
            frame_delay: Seconds between captures
            
        Returns:
            (S, S) int32 averaged matrix, or None if no frame was captured
        """
        if frame_count < 1:
            raise ValueError("frame_count must be >= 1")
        
        ready = await wait_until(
            lambda: source.ready_state >= self.ready_state_threshold,
            timeout=self.ready_timeout,
            interval=self.ready_poll_interval,
        )
        if not ready:
            logger.warning(
                f"Source not ready within {self.ready_timeout:.1f}s "
                f"(ready_state={source.ready_state}, "
                f"required={self.ready_state_threshold})"
            )
            return None
        
        if not source.width or not source.height:
            logger.warning("Source has no dimensions")
            return None
        
        async with self._capture_session(source):
            await self._seek_past_poster(source)
            matrices = await self._capture_frames(source, frame_count, frame_delay)
        
        if not matrices:
            logger.error("No frames captured successfully")
            return None
        
        return average_matrices(matrices)
    
    @asynccontextmanager
    async def _capture_session(self, source: FrameSource) -> AsyncIterator[None]:
        """Mute the source for the capture and restore it afterwards."""
        original_muted = source.muted
        source.muted = True
        try:
            yield
        finally:
            source.muted = original_muted
    
    async def _capture_frames(
        self,
        source: FrameSource,
        frame_count: int,
        frame_delay: float,
    ) -> List[np.ndarray]:
        matrices: List[np.ndarray] = []
        
        for i in range(frame_count):
            try:
                rgb = await source.draw(self.sample_size)
                matrices.append(rgb_to_gray_matrix(rgb, self.sample_size))
                logger.debug(f"Frame {i + 1}/{frame_count} captured")
            except (FrameCaptureError, InvalidMatrixError) as e:
                logger.warning(f"Failed to capture frame {i + 1}/{frame_count}: {e}")
            except Exception as e:
                # Source-specific failures (protected content, decoder errors)
                logger.warning(f"Failed to capture frame {i + 1}/{frame_count}: {e!r}")
            
            if i < frame_count - 1:
                await wait_first(source.next_frame_event(), timeout=frame_delay)
        
        return matrices
    
    async def _seek_past_poster(self, source: FrameSource) -> None:
        duration = source.duration
        if not duration or not math.isfinite(duration):
            return
        
        current = source.current_time
        if duration > LONG_CLIP_SECONDS:
            target = min(duration * self.seek_fraction, self.max_seek_seconds)
            if abs(current - target) <= SEEK_TOLERANCE_SECONDS:
                return
            timeout = self.seek_timeout
        elif current == 0 and duration > SHORT_CLIP_MIN_SECONDS:
            target = SHORT_CLIP_SEEK_SECONDS
            timeout = min(SHORT_CLIP_SEEK_TIMEOUT, self.seek_timeout)
        else:
            return
        
        try:
            settled = source.seek(target)
        except ClipGuardError as e:
            logger.warning(f"Seek to {target:.2f}s failed, capturing at current position: {e}")
            return
        
        if not await wait_first(settled, timeout=timeout):
            logger.debug(f"Seek to {target:.2f}s did not settle within {timeout:.1f}s")
