"""
Discrete Cosine Transform
=========================

Orthonormal 2D DCT-II for square intensity matrices.

Formula (N = matrix edge, α(0) = 1/√2, α(k) = 1 otherwise):

    F[u][v] = (2/N) α(u) α(v) Σ_y Σ_x f[y][x]
              · cos((2x+1)uπ / 2N) · cos((2y+1)vπ / 2N)

Index convention:
    The FIRST index u is the horizontal frequency (pairs with column x),
    the SECOND index v is the vertical frequency (pairs with row y).
    Fingerprint bit order depends on this convention, so it must not
    change between implementations.

Two implementations are provided:
    - dct2d: separable matrix form, O(N³)
    - dct2d_direct: the formula above evaluated per coefficient, O(N⁴)
Both produce the same coefficients up to floating point rounding.
"""

import math
from functools import lru_cache

import numpy as np


@lru_cache(maxsize=8)
def dct_basis(n: int) -> np.ndarray:
    """
    Orthonormal DCT-II basis matrix.
    
    Row k holds α(k) · √(2/N) · cos((2x+1)kπ / 2N) for x in [0, N).
    
    Args:
        n: Transform size
        
    Returns:
        (n, n) float64 array, read-only
    """
    if n < 1:
        raise ValueError("n must be >= 1")
    
    k = np.arange(n).reshape(-1, 1)
    x = np.arange(n).reshape(1, -1)
    basis = np.cos((2 * x + 1) * k * math.pi / (2 * n)) * math.sqrt(2.0 / n)
    basis[0, :] *= 1.0 / math.sqrt(2.0)
    basis.setflags(write=False)
    return basis


def dct2d(matrix: np.ndarray) -> np.ndarray:
    """
    Separable 2D DCT-II.
    
    Args:
        matrix: Square (N, N) array
        
    Returns:
        (N, N) float64 coefficients indexed [u][v] (see module docstring)
    """
    m = np.asarray(matrix, dtype=np.float64)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ValueError(f"dct2d expects a square 2D matrix, got shape {m.shape}")
    
    c = dct_basis(m.shape[0])
    # C · Mᵀ · Cᵀ puts the column (x) frequency on the first axis
    return c @ m.T @ c.T


def dct2d_direct(matrix: np.ndarray) -> np.ndarray:
    """
    Direct per-coefficient evaluation of the 2D DCT-II formula.
    
    Reference implementation for dct2d; ~N⁴ multiply-adds.
    """
    m = np.asarray(matrix, dtype=np.float64)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ValueError(f"dct2d_direct expects a square 2D matrix, got shape {m.shape}")
    
    n = m.shape[0]
    idx = np.arange(n)
    result = np.zeros((n, n), dtype=np.float64)
    
    for u in range(n):
        cos_x = np.cos((2 * idx + 1) * u * math.pi / (2 * n))
        alpha_u = 1.0 / math.sqrt(2.0) if u == 0 else 1.0
        for v in range(n):
            cos_y = np.cos((2 * idx + 1) * v * math.pi / (2 * n))
            alpha_v = 1.0 / math.sqrt(2.0) if v == 0 else 1.0
            total = float(np.sum(m * cos_y[:, None] * cos_x[None, :]))
            result[u, v] = (2.0 / n) * alpha_u * alpha_v * total
    
    return result
