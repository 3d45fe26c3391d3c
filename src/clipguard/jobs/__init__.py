"""
Jobs Module
===========

Bounded-concurrency scheduling of fingerprinting work.

Components:
    - ConcurrencyQueue: Priority queue with concurrency cap and timeout
"""

from clipguard.jobs.queue import ConcurrencyQueue, MAX_CONCURRENT, MIN_CONCURRENT

__all__ = [
    "ConcurrencyQueue",
    "MAX_CONCURRENT",
    "MIN_CONCURRENT",
]
