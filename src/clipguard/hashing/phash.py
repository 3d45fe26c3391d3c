"""
Perceptual Hasher
=================

DCT-based perceptual hash over an averaged grayscale matrix.

Algorithm:
    1. 2D DCT-II of the S×S matrix (orthonormal scaling)
    2. Take the top-left K×K block of coefficients (lowest frequencies)
    3. Drop the (0, 0) DC term (average brightness)
    4. median = sorted(block)[len(block) // 2]
    5. bit = 1 if coefficient > median else 0, row-major scan

Properties:
    - Pure and deterministic for identical input
    - Output length is always K² − 1 (63 for K = 8)
    - Robust to monotonic brightness/contrast shifts (to first order)
"""

import logging

import numpy as np

from clipguard.errors import InvalidMatrixError
from clipguard.hashing.dct import dct2d
from clipguard.models.fingerprint import Fingerprint


logger = logging.getLogger(__name__)


# Coefficients below this magnitude are floating point residue of a flat
# region and are treated as exact zeros.
ZERO_TOLERANCE = 1e-6


class PerceptualHasher:
    """
    Computes fingerprints from S×S intensity matrices.
    
    Attributes:
        sample_size: Expected matrix edge S
        block_size: Low-frequency block edge K
        bit_length: Fingerprint length K² − 1
        
    Example:
        hasher = PerceptualHasher()
        fp = hasher.hash(matrix)  # 63-bit Fingerprint
    """
    
    def __init__(self, sample_size: int = 32, block_size: int = 8) -> None:
        """
        Initialize hasher.
        
        Args:
            sample_size: Matrix edge S
            block_size: DCT block edge K, must satisfy 2 <= K <= S
        """
        if block_size < 2 or block_size > sample_size:
            raise ValueError(
                f"block_size must be in [2, sample_size], got {block_size}"
            )
        
        self.sample_size = sample_size
        self.block_size = block_size
    
    @property
    def bit_length(self) -> int:
        """Length of every fingerprint produced by this hasher."""
        return self.block_size * self.block_size - 1
    
    def low_frequency_coefficients(self, matrix: np.ndarray) -> np.ndarray:
        """
        Extract the K² − 1 low-frequency coefficients in scan order.
        
        Args:
            matrix: S×S intensity matrix
            
        Returns:
            1D float64 array of length K² − 1
            
        Raises:
            InvalidMatrixError: If the matrix has the wrong shape or
                contains non-finite values
        """
        m = self._validate(matrix)
        coeffs = dct2d(m)
        
        k = self.block_size
        block = coeffs[:k, :k].flatten()[1:]
        block[np.abs(block) < ZERO_TOLERANCE] = 0.0
        return block
    
    def hash(self, matrix: np.ndarray) -> Fingerprint:
        """
        Compute the fingerprint of an S×S matrix.
        
        Args:
            matrix: Averaged grayscale matrix
            
        Returns:
            Fingerprint of length K² − 1
            
        Raises:
            InvalidMatrixError: On malformed input
        """
        block = self.low_frequency_coefficients(matrix)
        median = np.sort(block)[len(block) // 2]
        
        fingerprint = Fingerprint.from_bools(block > median)
        
        logger.debug(
            f"Hash computed: len={len(fingerprint)}, median={median:.4f}, "
            f"ones={fingerprint.ones}, zeros={fingerprint.zeros}"
        )
        return fingerprint
    
    def _validate(self, matrix: np.ndarray) -> np.ndarray:
        try:
            m = np.asarray(matrix, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidMatrixError(f"Matrix is not numeric: {e}") from e
        
        expected = (self.sample_size, self.sample_size)
        if m.shape != expected:
            raise InvalidMatrixError(
                f"Invalid matrix size: expected {expected}, got {m.shape}"
            )
        if not np.all(np.isfinite(m)):
            raise InvalidMatrixError("Matrix contains non-finite values")
        return m
