"""
Hash Quality Gate
=================

Rejects fingerprints whose bit distribution is too skewed to discriminate.

Near-constant images (black frames, blank loading screens, solid-color
posters) put almost every coefficient on one side of the median. Such
fingerprints would match each other and must not be stored or matched.

The gate is advisory: a trivial fingerprint means "no usable signal",
never an exception.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from clipguard.models.fingerprint import Fingerprint


logger = logging.getLogger(__name__)


def shannon_entropy(fingerprint: Union[Fingerprint, str]) -> float:
    """
    Shannon entropy (bits per symbol) of a binary string, in [0, 1].
    
    Returns 0.0 when all bits are equal.
    """
    fp = Fingerprint.parse(fingerprint)
    ones, zeros, total = fp.ones, fp.zeros, len(fp)
    if ones == 0 or zeros == 0:
        return 0.0
    
    p1 = ones / total
    p0 = zeros / total
    return -(p1 * math.log2(p1) + p0 * math.log2(p0))


@dataclass(frozen=True, slots=True)
class HashValidation:
    """
    Result of a fingerprint quality/format check.
    
    Attributes:
        valid: True when no issues were found
        issues: Human-readable problems
        metrics: length, ones, zeros, ones_percent, zeros_percent, entropy
    """
    
    valid: bool
    issues: List[str] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)


class HashQualityGate:
    """
    Bit-balance check for fingerprints.
    
    A fingerprint is trivial when ones <= min_ones_zeros OR
    zeros <= min_ones_zeros (the boundary is inclusive).
    
    Attributes:
        min_ones_zeros: Minimum count for each bit value (tunable)
        expected_length: Length reported as valid by validate()
    """
    
    def __init__(self, min_ones_zeros: int = 4, expected_length: int = 63) -> None:
        if min_ones_zeros < 0:
            raise ValueError("min_ones_zeros must be >= 0")
        self._min_ones_zeros = min_ones_zeros
        self.expected_length = expected_length
    
    @property
    def min_ones_zeros(self) -> int:
        return self._min_ones_zeros
    
    @min_ones_zeros.setter
    def min_ones_zeros(self, value: int) -> None:
        if value < 0:
            raise ValueError("min_ones_zeros must be >= 0")
        logger.info(f"Quality gate minimum updated: {self._min_ones_zeros} -> {value}")
        self._min_ones_zeros = value
    
    def is_trivial(self, fingerprint: Optional[Union[Fingerprint, str]]) -> bool:
        """
        Check whether a fingerprint carries too little signal.
        
        Args:
            fingerprint: Fingerprint or bit string; None counts as trivial
            
        Returns:
            True if the fingerprint must not be trusted
            
        Raises:
            InvalidFingerprintError: If a string is not a binary string
        """
        if fingerprint is None:
            return True
        
        fp = Fingerprint.parse(fingerprint)
        ones, zeros = fp.ones, fp.zeros
        trivial = ones <= self._min_ones_zeros or zeros <= self._min_ones_zeros
        
        if trivial:
            logger.warning(
                f"Trivial hash detected: len={len(fp)}, ones={ones}, zeros={zeros}"
            )
        return trivial
    
    def validate(self, fingerprint: Union[Fingerprint, str]) -> HashValidation:
        """
        Full format and quality report for a fingerprint.
        
        Unlike is_trivial(), malformed strings are reported as an issue
        rather than raised.
        """
        try:
            fp = Fingerprint.parse(fingerprint)
        except ValueError as e:
            return HashValidation(valid=False, issues=[str(e)])
        
        length = len(fp)
        metrics = {
            "length": length,
            "ones": fp.ones,
            "zeros": fp.zeros,
            "ones_percent": fp.ones / length * 100,
            "zeros_percent": fp.zeros / length * 100,
            "entropy": shannon_entropy(fp),
        }
        
        issues = []
        if self.is_trivial(fp):
            issues.append("Hash appears to be trivial (low entropy)")
        if length != self.expected_length:
            issues.append(
                f"Unexpected hash length: {length}, expected: {self.expected_length}"
            )
        
        return HashValidation(valid=not issues, issues=issues, metrics=metrics)
