"""
Outcome Models
==============

Structured results returned to callers of the fingerprinting pipeline.

The core never shows anything to a user. It returns enough information
(success / no-signal / timeout / error) for a caller to decide what to do.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from clipguard.models.fingerprint import Fingerprint


class FingerprintOutcome(str, Enum):
    """
    Result category of a fingerprinting attempt.
    
    Attributes:
        SUCCESS: A non-trivial fingerprint was produced
        NO_SIGNAL: No frames captured, or the fingerprint was trivial
        TIMEOUT: The job exceeded its timeout
        CANCELLED: The job was rejected by a queue clear before starting
        ERROR: The computation raised
    """
    
    SUCCESS = "SUCCESS"
    NO_SIGNAL = "NO_SIGNAL"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class FingerprintResult:
    """
    Outcome of a (possibly retried) fingerprint computation.
    
    Attributes:
        outcome: Result category
        fingerprint: Fingerprint when outcome is SUCCESS, else None
        attempts: Number of attempts made
        detail: Human-readable detail for logs
    """
    
    outcome: FingerprintOutcome
    fingerprint: Optional[Fingerprint] = None
    attempts: int = 1
    detail: str = ""
    
    @property
    def ok(self) -> bool:
        return self.outcome is FingerprintOutcome.SUCCESS
    
    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "outcome": self.outcome.value,
            "fingerprint": self.fingerprint.bits if self.fingerprint else None,
            "attempts": self.attempts,
            "detail": self.detail,
        }


@dataclass(frozen=True, slots=True)
class MatchResult:
    """
    Best candidate found by a linear scan.
    
    Attributes:
        candidate: The closest stored fingerprint
        distance: Hamming distance (with length penalty)
        similarity: Percentage of agreeing bits over the common length
    """
    
    candidate: Fingerprint
    distance: int
    similarity: float
    
    def __repr__(self) -> str:
        return (
            f"MatchResult(candidate={self.candidate.preview}, "
            f"distance={self.distance}, similarity={self.similarity:.1f}%)"
        )


class BlockStatus(str, Enum):
    """
    Result of a block or check operation.
    
    Attributes:
        BLOCKED: Fingerprint was added to the blocklist
        ALREADY_BLOCKED: Fingerprint was already in the blocklist
        MATCHED: Checked clip matches a blocked fingerprint
        NOT_MATCHED: Checked clip matches nothing
        NO_FINGERPRINT: No usable fingerprint (see fingerprint_result)
        SKIPPED: Source was already checked
    """
    
    BLOCKED = "BLOCKED"
    ALREADY_BLOCKED = "ALREADY_BLOCKED"
    MATCHED = "MATCHED"
    NOT_MATCHED = "NOT_MATCHED"
    NO_FINGERPRINT = "NO_FINGERPRINT"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True, slots=True)
class BlockDecision:
    """
    Outcome of VideoBlocker.block / VideoBlocker.check.
    
    Attributes:
        status: What happened
        fingerprint_result: Underlying fingerprint attempt, if one ran
        match: Closest blocked fingerprint for MATCHED
    """
    
    status: BlockStatus
    fingerprint_result: Optional[FingerprintResult] = None
    match: Optional[MatchResult] = None
    
    @property
    def blocked(self) -> bool:
        """True when the caller should hide the clip."""
        return self.status in (
            BlockStatus.BLOCKED,
            BlockStatus.ALREADY_BLOCKED,
            BlockStatus.MATCHED,
        )
    
    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "status": self.status.value,
            "blocked": self.blocked,
            "fingerprint": (
                self.fingerprint_result.to_dict() if self.fingerprint_result else None
            ),
            "match": (
                {
                    "candidate": self.match.candidate.bits,
                    "distance": self.match.distance,
                    "similarity": round(self.match.similarity, 1),
                }
                if self.match
                else None
            ),
        }
