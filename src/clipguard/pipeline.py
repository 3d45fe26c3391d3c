"""
Fingerprint Pipeline
====================

Single-attempt fingerprinting: sample -> hash -> quality gate.

This is the unit of work submitted to the ConcurrencyQueue. It never
retries; retry policy belongs to the caller (see VideoBlocker).
"""

import logging
from typing import Optional

from clipguard.hashing.phash import PerceptualHasher
from clipguard.hashing.quality import HashQualityGate
from clipguard.models.fingerprint import Fingerprint
from clipguard.models.outcome import FingerprintOutcome, FingerprintResult
from clipguard.sampling.sampler import FrameSampler
from clipguard.sampling.source import FrameSource


logger = logging.getLogger(__name__)


NO_FRAMES = "no frames captured"
TRIVIAL = "trivial fingerprint"


class FingerprintPipeline:
    """
    Composes sampler, hasher, and quality gate.
    
    Example:
        pipeline = FingerprintPipeline(FrameSampler(), PerceptualHasher(), HashQualityGate())
        result = await pipeline.attempt(source, frame_count=3, frame_delay=0.12)
    """
    
    def __init__(
        self,
        sampler: FrameSampler,
        hasher: PerceptualHasher,
        gate: HashQualityGate,
    ) -> None:
        if sampler.sample_size != hasher.sample_size:
            raise ValueError(
                f"Sampler size {sampler.sample_size} does not match "
                f"hasher size {hasher.sample_size}"
            )
        self.sampler = sampler
        self.hasher = hasher
        self.gate = gate
    
    async def attempt(
        self,
        source: FrameSource,
        frame_count: int,
        frame_delay: float,
    ) -> FingerprintResult:
        """
        Run one fingerprinting attempt.
        
        Returns:
            SUCCESS with a fingerprint, or NO_SIGNAL with the reason in
            detail. Errors from the sampler or hasher propagate.
        """
        matrix = await self.sampler.sample(source, frame_count=frame_count, frame_delay=frame_delay)
        if matrix is None:
            return FingerprintResult(outcome=FingerprintOutcome.NO_SIGNAL, detail=NO_FRAMES)
        
        fingerprint = self.hasher.hash(matrix)
        if self.gate.is_trivial(fingerprint):
            return FingerprintResult(outcome=FingerprintOutcome.NO_SIGNAL, detail=TRIVIAL)
        
        logger.info(f"Fingerprint computed: {fingerprint.preview} (frames={frame_count})")
        return FingerprintResult(outcome=FingerprintOutcome.SUCCESS, fingerprint=fingerprint)
    
    async def fingerprint(
        self,
        source: FrameSource,
        frame_count: int = 3,
        frame_delay: float = 0.12,
    ) -> Optional[Fingerprint]:
        """Convenience wrapper: the fingerprint, or None for no signal."""
        result = await self.attempt(source, frame_count, frame_delay)
        return result.fingerprint
