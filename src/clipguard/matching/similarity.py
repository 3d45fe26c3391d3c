"""
Similarity Matcher
==================

Hamming-distance comparison of fingerprints.

Distance:
    count of differing bits over the common prefix
    + absolute difference in lengths

The length penalty keeps fingerprints from different schemes from being
silently truncated into a match.

Properties:
    - distance(a, b) == distance(b, a)
    - distance(a, a) == 0
    - is_match(a, b, t) implies is_match(a, b, t') for all t' >= t
"""

import logging
from typing import Iterable, Optional, Union

from clipguard.models.fingerprint import Fingerprint
from clipguard.models.outcome import MatchResult


logger = logging.getLogger(__name__)


FingerprintLike = Union[Fingerprint, str]


def hamming_distance(a: FingerprintLike, b: FingerprintLike) -> int:
    """
    Hamming distance with a length-mismatch penalty.
    
    Raises:
        InvalidFingerprintError: If either input is not a binary string
    """
    bits_a = Fingerprint.parse(a).bits
    bits_b = Fingerprint.parse(b).bits
    
    differing = sum(1 for x, y in zip(bits_a, bits_b) if x != y)
    return differing + abs(len(bits_a) - len(bits_b))


def similarity_percent(a: FingerprintLike, b: FingerprintLike, distance: Optional[int] = None) -> float:
    """Share of agreeing bits over the common length, as a percentage."""
    common = min(len(Fingerprint.parse(a)), len(Fingerprint.parse(b)))
    if distance is None:
        distance = hamming_distance(a, b)
    return (common - distance) / common * 100


class SimilarityMatcher:
    """
    Threshold-based fingerprint matcher.
    
    The threshold is a runtime setting (user-facing "sensitivity"),
    not a constant.
    
    Attributes:
        threshold: Maximum distance (inclusive) counted as a match
        
    Example:
        matcher = SimilarityMatcher(threshold=12)
        if matcher.is_match(candidate, blocked):
            ...
    """
    
    def __init__(self, threshold: int = 12) -> None:
        if threshold < 0:
            raise ValueError("threshold must be >= 0")
        self._threshold = threshold
    
    @property
    def threshold(self) -> int:
        return self._threshold
    
    @threshold.setter
    def threshold(self, value: int) -> None:
        if value < 0:
            raise ValueError("threshold must be >= 0")
        logger.info(f"Hamming threshold updated: {self._threshold} -> {value}")
        self._threshold = value
    
    def distance(self, a: FingerprintLike, b: FingerprintLike) -> int:
        return hamming_distance(a, b)
    
    def is_match(
        self,
        a: FingerprintLike,
        b: FingerprintLike,
        threshold: Optional[int] = None,
    ) -> bool:
        """
        True iff distance(a, b) <= threshold.
        
        Args:
            a, b: Fingerprints to compare
            threshold: Override for this call; defaults to self.threshold
        """
        limit = self._threshold if threshold is None else threshold
        return hamming_distance(a, b) <= limit
    
    def best_match(
        self,
        target: FingerprintLike,
        candidates: Iterable[FingerprintLike],
    ) -> Optional[MatchResult]:
        """
        Linear scan for the minimum-distance candidate.
        
        Ties resolve to the first candidate encountered. An empty
        candidate set returns None.
        """
        target_fp = Fingerprint.parse(target)
        best: Optional[MatchResult] = None
        
        for candidate in candidates:
            candidate_fp = Fingerprint.parse(candidate)
            distance = hamming_distance(target_fp, candidate_fp)
            if best is None or distance < best.distance:
                best = MatchResult(
                    candidate=candidate_fp,
                    distance=distance,
                    similarity=similarity_percent(target_fp, candidate_fp, distance),
                )
                if distance == 0:
                    break
        
        if best is not None:
            logger.debug(
                f"Best match for {target_fp.preview}: {best.candidate.preview} "
                f"(distance={best.distance}, similarity={best.similarity:.1f}%)"
            )
        return best
    
    def find_match(
        self,
        target: FingerprintLike,
        candidates: Iterable[FingerprintLike],
        threshold: Optional[int] = None,
    ) -> Optional[MatchResult]:
        """Best candidate if it is within threshold, else None."""
        best = self.best_match(target, candidates)
        limit = self._threshold if threshold is None else threshold
        if best is None or best.distance > limit:
            return None
        return best
