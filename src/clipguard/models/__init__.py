"""
Data Models
===========

Value objects and records shared across ClipGuard.

Models:
    - Fingerprint: Binary perceptual signature
    - BlockRecord, BlockOrigin: Blocklist entries
    - FingerprintOutcome, FingerprintResult, MatchResult: Caller-facing results
    - BlockStatus, BlockDecision: Block/check results
    - Job, JobState: Scheduler internals
"""

from clipguard.models.fingerprint import Fingerprint
from clipguard.models.record import BlockOrigin, BlockRecord
from clipguard.models.outcome import (
    BlockDecision,
    BlockStatus,
    FingerprintOutcome,
    FingerprintResult,
    MatchResult,
)
from clipguard.models.job import Job, JobState

__all__ = [
    "Fingerprint",
    "BlockOrigin",
    "BlockRecord",
    "BlockDecision",
    "BlockStatus",
    "FingerprintOutcome",
    "FingerprintResult",
    "MatchResult",
    "Job",
    "JobState",
]
