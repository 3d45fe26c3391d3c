"""
Grayscale Reduction
===================

RGB -> luminance conversion and frame averaging.

Luminance uses ITU-R BT.601 weights:
    Y = 0.299 R + 0.587 G + 0.114 B

Rounding is half-up (0.5 -> 1), applied per pixel after conversion and
again after averaging, so matrices always hold integer intensities.
"""

import logging
from typing import Sequence

import numpy as np

from clipguard.errors import InvalidMatrixError


logger = logging.getLogger(__name__)


LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def round_half_up(values: np.ndarray) -> np.ndarray:
    """Round to nearest integer, ties away from zero for non-negatives."""
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)


def rgb_to_gray_matrix(rgb: np.ndarray, size: int) -> np.ndarray:
    """
    Convert an RGB(A) buffer to an integer grayscale matrix.
    
    Args:
        rgb: (size, size, 3) or (size, size, 4) array, channels in RGB order
        size: Expected edge length
        
    Returns:
        (size, size) int32 matrix with values in [0, 255]
        
    Raises:
        InvalidMatrixError: If the buffer has the wrong shape
    """
    arr = np.asarray(rgb)
    if arr.ndim != 3 or arr.shape[:2] != (size, size) or arr.shape[2] not in (3, 4):
        raise InvalidMatrixError(
            f"Expected RGB buffer of shape ({size}, {size}, 3|4), got {arr.shape}"
        )
    
    gray = arr[..., :3].astype(np.float64) @ LUMA_WEIGHTS
    return np.clip(round_half_up(gray), 0, 255).astype(np.int32)


def average_matrices(matrices: Sequence[np.ndarray]) -> np.ndarray:
    """
    Element-wise mean of one or more same-shaped matrices.
    
    Args:
        matrices: At least one matrix
        
    Returns:
        int32 matrix, rounded half-up
        
    Raises:
        ValueError: If no matrices are given
        InvalidMatrixError: If shapes differ
    """
    if len(matrices) == 0:
        raise ValueError("Cannot average zero matrices")
    
    shape = np.shape(matrices[0])
    for m in matrices[1:]:
        if np.shape(m) != shape:
            raise InvalidMatrixError(
                f"Matrix shapes differ: {shape} vs {np.shape(m)}"
            )
    
    stacked = np.stack([np.asarray(m, dtype=np.float64) for m in matrices])
    averaged = round_half_up(stacked.mean(axis=0)).astype(np.int32)
    
    logger.debug(f"Matrices averaged: count={len(matrices)}, size={shape}")
    return averaged
