"""
Matching Module
===============

Fingerprint comparison against the blocklist.

Components:
    - SimilarityMatcher: Hamming distance, threshold match, best match
    - BlockRegistry: In-memory blocklist view synchronized with a store
"""

from clipguard.matching.similarity import (
    SimilarityMatcher,
    hamming_distance,
    similarity_percent,
)
from clipguard.matching.registry import BlockRegistry

__all__ = [
    "SimilarityMatcher",
    "hamming_distance",
    "similarity_percent",
    "BlockRegistry",
]
