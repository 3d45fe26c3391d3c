"""
Error Types
===========

Exception hierarchy for ClipGuard.

Design Rules:
    - Invalid input (bad fingerprint strings, wrong matrix shapes) fails fast
    - Per-frame capture failures are raised by sources and recovered locally
    - Queue outcomes (timeout, clear) are distinguishable from task errors
    - "No usable signal" is NOT an error; it is represented as None
"""

from typing import Optional


class ClipGuardError(Exception):
    """Base class for all ClipGuard errors."""
    pass


class InvalidFingerprintError(ClipGuardError, ValueError):
    """Raised when a fingerprint string is empty or not a binary string."""
    pass


class InvalidMatrixError(ClipGuardError, ValueError):
    """Raised when a matrix has the wrong shape or cannot be interpreted."""
    pass


class FrameCaptureError(ClipGuardError):
    """Raised by a frame source when a single frame cannot be drawn."""
    pass


class JobError(ClipGuardError):
    """Base class for scheduler-level job failures."""
    
    def __init__(self, message: str, job_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.job_id = job_id


class JobTimeoutError(JobError):
    """
    Raised when a job does not settle within its timeout.
    
    The underlying task is abandoned, not cancelled; it may still be
    running when this error is delivered.
    """
    
    def __init__(self, job_id: str, timeout_s: float) -> None:
        super().__init__(
            f"Job timeout: {job_id} exceeded {timeout_s * 1000:.0f}ms",
            job_id=job_id,
        )
        self.timeout_s = timeout_s


class QueueClearedError(JobError):
    """Raised for pending jobs rejected by a queue clear."""
    
    def __init__(self, reason: str, job_id: Optional[str] = None) -> None:
        super().__init__(f"Queue cleared: {reason}", job_id=job_id)
        self.reason = reason


class SeekError(ClipGuardError):
    """Raised by a frame source when a seek request cannot be issued."""
    pass
