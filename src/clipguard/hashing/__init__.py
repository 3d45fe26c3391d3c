"""
Hashing Module
==============

Perceptual hash computation and fingerprint quality checks.

Components:
    - dct2d / dct2d_direct: Orthonormal 2D DCT-II
    - PerceptualHasher: Matrix -> Fingerprint
    - HashQualityGate: Rejects trivial fingerprints
"""

from clipguard.hashing.dct import dct2d, dct2d_direct, dct_basis
from clipguard.hashing.phash import PerceptualHasher
from clipguard.hashing.quality import HashQualityGate, HashValidation, shannon_entropy

__all__ = [
    "dct2d",
    "dct2d_direct",
    "dct_basis",
    "PerceptualHasher",
    "HashQualityGate",
    "HashValidation",
    "shannon_entropy",
]
