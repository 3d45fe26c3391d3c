"""
Fingerprint Model
=================

Fixed-length binary signature derived from a clip's low-frequency content.

A fingerprint is stored and exchanged as a string of '0'/'1' characters,
which is also the key format used by fingerprint stores.

Design Rules:
    - Immutable (frozen) value object, hashable, usable as a set/dict key
    - Only '0' and '1' are accepted; anything else fails fast
    - Length is NOT enforced here (mismatched schemes are compared with a
      length penalty); the quality gate reports unexpected lengths
"""

from dataclasses import dataclass
from typing import Iterable, Union

from clipguard.errors import InvalidFingerprintError


_BINARY_CHARS = frozenset("01")


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """
    Binary perceptual fingerprint.
    
    Attributes:
        bits: Bit string, most significant (first scanned) coefficient first
        
    Example:
        fp = Fingerprint.parse("0110...")
        assert len(fp) == 63
    """
    
    bits: str
    
    def __post_init__(self) -> None:
        if not isinstance(self.bits, str):
            raise InvalidFingerprintError(
                f"Fingerprint must be a string, got {type(self.bits).__name__}"
            )
        if not self.bits:
            raise InvalidFingerprintError("Fingerprint must not be empty")
        if not _BINARY_CHARS.issuperset(self.bits):
            raise InvalidFingerprintError(
                f"Fingerprint contains non-binary characters: {self.preview!r}"
            )
    
    @classmethod
    def parse(cls, value: Union[str, "Fingerprint"]) -> "Fingerprint":
        """Coerce a bit string (or an existing Fingerprint) to a Fingerprint."""
        if isinstance(value, Fingerprint):
            return value
        return cls(value)
    
    @classmethod
    def from_bools(cls, values: Iterable[bool]) -> "Fingerprint":
        """Build a fingerprint from an iterable of truth values."""
        return cls("".join("1" if v else "0" for v in values))
    
    @property
    def ones(self) -> int:
        """Number of set bits."""
        return self.bits.count("1")
    
    @property
    def zeros(self) -> int:
        """Number of clear bits."""
        return len(self.bits) - self.ones
    
    @property
    def preview(self) -> str:
        """Short prefix for log messages."""
        if len(self.bits) <= 16:
            return self.bits
        return self.bits[:16] + "..."
    
    def __len__(self) -> int:
        return len(self.bits)
    
    def __str__(self) -> str:
        return self.bits
    
    def __repr__(self) -> str:
        return f"Fingerprint({self.preview}, len={len(self.bits)})"
