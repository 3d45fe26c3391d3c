"""
Video Blocker
=============

Caller layer over the core: fingerprinting with retries, blocking,
and checking clips against the blocklist.

Data flow:
    source -> ConcurrencyQueue job -> FingerprintPipeline
           -> BlockRegistry (add or match) -> BlockDecision

Retry policy (per compute_fingerprint call):
    - NO_SIGNAL (trivial or no frames): back off, try again
    - ERROR: back off, try again
    - TIMEOUT: not retried; the abandoned attempt may still be using
      the source
    - CANCELLED (queue cleared): not retried
Each attempt is a separate queue job, so backoff never holds a slot.
"""

import asyncio
import logging
import weakref
from typing import Optional, Union

from clipguard.config import Settings
from clipguard.errors import InvalidFingerprintError, JobTimeoutError, QueueClearedError
from clipguard.hashing.phash import PerceptualHasher
from clipguard.hashing.quality import HashQualityGate
from clipguard.jobs.queue import ConcurrencyQueue
from clipguard.matching.registry import BlockRegistry
from clipguard.matching.similarity import SimilarityMatcher
from clipguard.models.fingerprint import Fingerprint
from clipguard.models.outcome import (
    BlockDecision,
    BlockStatus,
    FingerprintOutcome,
    FingerprintResult,
)
from clipguard.models.record import BlockOrigin
from clipguard.pipeline import TRIVIAL, FingerprintPipeline
from clipguard.sampling.sampler import FrameSampler
from clipguard.sampling.source import FrameSource
from clipguard.store.base import FingerprintStore
from clipguard.store.memory import InMemoryFingerprintStore


logger = logging.getLogger(__name__)


# Queue priorities: explicit blocks outrank background checks
BLOCK_PRIORITY = 2
CHECK_PRIORITY = 1


class VideoBlocker:
    """
    Blocks clips and checks clips against the blocklist.
    
    Attributes:
        pipeline: Single-attempt fingerprint pipeline
        queue: Concurrency queue running pipeline attempts
        registry: Blocklist view
        frames_to_capture: Frames averaged when blocking
        auto_scan_frames: Frames averaged when checking
        frame_delay: Seconds between captures
        retry_attempts: Total attempts per fingerprint computation
        backoff: Seconds to wait after an error
        trivial_backoff: Seconds to wait after a no-signal attempt
        
    Example:
        blocker = VideoBlocker.from_settings(load_config())
        await blocker.start()
        decision = await blocker.block(source)
        decision = await blocker.check(other_source)
    """
    
    def __init__(
        self,
        pipeline: FingerprintPipeline,
        queue: ConcurrencyQueue,
        registry: BlockRegistry,
        frames_to_capture: int = 3,
        auto_scan_frames: int = 2,
        frame_delay: float = 0.12,
        retry_attempts: int = 3,
        backoff: float = 0.3,
        trivial_backoff: float = 0.8,
    ) -> None:
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        
        self.pipeline = pipeline
        self.queue = queue
        self.registry = registry
        self.frames_to_capture = frames_to_capture
        self.auto_scan_frames = auto_scan_frames
        self.frame_delay = frame_delay
        self.retry_attempts = retry_attempts
        self.backoff = backoff
        self.trivial_backoff = trivial_backoff
        
        self._processed: "weakref.WeakSet[FrameSource]" = weakref.WeakSet()
        self._videos_blocked: int = 0
        self._hashes_added: int = 0
        self._matches_found: int = 0
    
    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[FingerprintStore] = None,
    ) -> "VideoBlocker":
        """Build a blocker and its collaborators from settings."""
        hashing = settings.hashing
        sampling = settings.sampling
        
        sampler = FrameSampler(
            sample_size=hashing.sample_size,
            ready_timeout=sampling.ready_timeout_ms / 1000.0,
            ready_state_threshold=sampling.ready_state_threshold,
            seek_timeout=sampling.seek_timeout_ms / 1000.0,
            seek_fraction=sampling.seek_fraction,
            max_seek_seconds=sampling.max_seek_seconds,
        )
        hasher = PerceptualHasher(
            sample_size=hashing.sample_size,
            block_size=hashing.block_size,
        )
        gate = HashQualityGate(
            min_ones_zeros=hashing.min_ones_zeros,
            expected_length=hasher.bit_length,
        )
        queue = ConcurrencyQueue(
            max_concurrent=settings.queue.max_concurrent,
            job_timeout=settings.queue.job_timeout_ms / 1000.0,
            poll_interval=settings.queue.poll_interval_ms / 1000.0,
        )
        registry = BlockRegistry(
            store if store is not None else InMemoryFingerprintStore(),
            SimilarityMatcher(threshold=hashing.hamming_threshold),
        )
        
        return cls(
            pipeline=FingerprintPipeline(sampler, hasher, gate),
            queue=queue,
            registry=registry,
            frames_to_capture=sampling.frames_to_capture,
            auto_scan_frames=sampling.auto_scan_frames,
            frame_delay=sampling.frame_delay_ms / 1000.0,
            retry_attempts=settings.retry.attempts,
            backoff=settings.retry.backoff_ms / 1000.0,
            trivial_backoff=settings.retry.trivial_backoff_ms / 1000.0,
        )
    
    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    
    async def start(self) -> None:
        """Load the blocklist and subscribe to store changes."""
        count = await self.registry.load()
        logger.info(
            f"Video blocker initialized: blocked={count}, "
            f"threshold={self.registry.matcher.threshold}"
        )
    
    async def shutdown(self) -> None:
        """Reject pending work and detach from the store."""
        self.queue.cleanup()
        self.registry.close()
        logger.info("Video blocker shut down")
    
    # -------------------------------------------------------------------------
    # Fingerprinting
    # -------------------------------------------------------------------------
    
    async def compute_fingerprint(
        self,
        source: FrameSource,
        frame_count: Optional[int] = None,
        priority: int = 0,
        job_id: Optional[str] = None,
    ) -> FingerprintResult:
        """
        Fingerprint a source, retrying no-signal and error attempts.
        
        Args:
            source: Frame source
            frame_count: Frames per attempt; defaults to frames_to_capture
            priority: Queue priority for each attempt
            job_id: Base job id; attempts are suffixed with /<n>
            
        Returns:
            FingerprintResult; never raises for timeouts, clears, or
            task errors
        """
        frames = frame_count or self.frames_to_capture
        last = FingerprintResult(outcome=FingerprintOutcome.ERROR, attempts=0)
        
        for attempt in range(1, self.retry_attempts + 1):
            attempt_id = f"{job_id}/{attempt}" if job_id else None
            
            try:
                result = await self.queue.enqueue(
                    lambda: self.pipeline.attempt(source, frames, self.frame_delay),
                    job_id=attempt_id,
                    priority=priority,
                )
            except JobTimeoutError as e:
                logger.warning(f"Fingerprint attempt {attempt} timed out: {e}")
                return FingerprintResult(
                    outcome=FingerprintOutcome.TIMEOUT,
                    attempts=attempt,
                    detail=str(e),
                )
            except QueueClearedError as e:
                logger.info(f"Fingerprint attempt {attempt} cancelled: {e}")
                return FingerprintResult(
                    outcome=FingerprintOutcome.CANCELLED,
                    attempts=attempt,
                    detail=str(e),
                )
            except Exception as e:
                logger.debug(f"Fingerprint attempt {attempt}/{self.retry_attempts} failed: {e!r}")
                last = FingerprintResult(
                    outcome=FingerprintOutcome.ERROR,
                    attempts=attempt,
                    detail=repr(e),
                )
                delay = self.backoff
            else:
                if result.ok:
                    return FingerprintResult(
                        outcome=result.outcome,
                        fingerprint=result.fingerprint,
                        attempts=attempt,
                    )
                last = FingerprintResult(
                    outcome=result.outcome,
                    attempts=attempt,
                    detail=result.detail,
                )
                delay = self.trivial_backoff if result.detail == TRIVIAL else self.backoff
            
            if attempt < self.retry_attempts:
                logger.debug(f"Retrying fingerprint in {delay * 1000:.0f}ms ({last.detail})")
                await asyncio.sleep(delay)
        
        if last.outcome is FingerprintOutcome.ERROR:
            logger.error(f"Fingerprint failed after {last.attempts} attempts: {last.detail}")
        else:
            logger.warning(
                f"No usable fingerprint after {last.attempts} attempts ({last.detail}); "
                f"likely poster frame or blank video"
            )
        return last
    
    # -------------------------------------------------------------------------
    # Block / Check
    # -------------------------------------------------------------------------
    
    async def block(self, source: FrameSource) -> BlockDecision:
        """
        Fingerprint a clip and add it to the blocklist.
        
        Returns:
            BLOCKED, ALREADY_BLOCKED, or NO_FINGERPRINT
        """
        logger.info("Starting video blocking process")
        result = await self.compute_fingerprint(
            source,
            frame_count=self.frames_to_capture,
            priority=BLOCK_PRIORITY,
            job_id=f"block-{id(source):x}",
        )
        if not result.ok:
            return BlockDecision(status=BlockStatus.NO_FINGERPRINT, fingerprint_result=result)
        
        fingerprint = result.fingerprint
        if fingerprint in self.registry:
            logger.info("Video hash already in blocked list")
            return BlockDecision(status=BlockStatus.ALREADY_BLOCKED, fingerprint_result=result)
        
        added = await self.registry.add(fingerprint, origin=BlockOrigin.MANUAL)
        if not added:
            return BlockDecision(status=BlockStatus.ALREADY_BLOCKED, fingerprint_result=result)
        
        self._processed.add(source)
        self._hashes_added += 1
        self._videos_blocked += 1
        logger.info(
            f"Video blocked: {fingerprint.preview} (total={len(self.registry)})"
        )
        return BlockDecision(status=BlockStatus.BLOCKED, fingerprint_result=result)
    
    async def check(self, source: FrameSource) -> BlockDecision:
        """
        Fingerprint a clip (fewer frames) and match it against the blocklist.
        
        Each source object is checked at most once.
        
        Returns:
            MATCHED, NOT_MATCHED, NO_FINGERPRINT, or SKIPPED
        """
        if source in self._processed:
            return BlockDecision(status=BlockStatus.SKIPPED)
        self._processed.add(source)
        
        result = await self.compute_fingerprint(
            source,
            frame_count=self.auto_scan_frames,
            priority=CHECK_PRIORITY,
            job_id=f"check-{id(source):x}",
        )
        if not result.ok:
            return BlockDecision(status=BlockStatus.NO_FINGERPRINT, fingerprint_result=result)
        
        match = self.registry.match(result.fingerprint)
        if match is None:
            return BlockDecision(status=BlockStatus.NOT_MATCHED, fingerprint_result=result)
        
        self._matches_found += 1
        self._videos_blocked += 1
        logger.info(
            f"Matching blocked hash found: {result.fingerprint.preview} "
            f"(distance={match.distance})"
        )
        return BlockDecision(status=BlockStatus.MATCHED, fingerprint_result=result, match=match)
    
    # -------------------------------------------------------------------------
    # Blocklist management
    # -------------------------------------------------------------------------
    
    async def add_fingerprint(
        self,
        fingerprint: Union[Fingerprint, str],
        origin: BlockOrigin = BlockOrigin.MANUAL,
    ) -> bool:
        """
        Add a fingerprint directly, after format and quality validation.
        
        Raises:
            InvalidFingerprintError: If validation reports any issue
        """
        validation = self.pipeline.gate.validate(fingerprint)
        if not validation.valid:
            raise InvalidFingerprintError(f"Invalid hash: {', '.join(validation.issues)}")
        
        added = await self.registry.add(fingerprint, origin=origin)
        if added:
            self._hashes_added += 1
        return added
    
    async def remove_fingerprint(self, fingerprint: Union[Fingerprint, str]) -> bool:
        removed = await self.registry.remove(fingerprint)
        if removed:
            logger.info("Hash removed from blocked list")
        return removed
    
    async def clear_all(self) -> None:
        await self.registry.clear()
        self._processed = weakref.WeakSet()
        self._hashes_added = 0
        logger.info("All blocked hashes cleared")
    
    def set_threshold(self, threshold: int) -> None:
        """Update matching sensitivity at runtime."""
        self.registry.matcher.threshold = threshold
    
    def stats(self) -> dict:
        return {
            "videos_blocked": self._videos_blocked,
            "hashes_added": self._hashes_added,
            "matches_found": self._matches_found,
            "hamming_threshold": self.registry.matcher.threshold,
            "registry": self.registry.stats(),
            "queue": self.queue.stats(),
        }
