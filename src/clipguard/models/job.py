"""
Job Model
=========

Internal job representation for the concurrency queue.

Lifecycle:
    QUEUED -> RUNNING -> {COMPLETED | FAILED | TIMED_OUT}
    QUEUED -> CANCELLED (queue clear, never started)
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional


class JobState(str, Enum):
    """Job lifecycle states."""
    
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"
    CANCELLED = "CANCELLED"


@dataclass(eq=False, slots=True)
class Job:
    """
    A unit of work owned by ConcurrencyQueue.
    
    Attributes:
        id: Caller-supplied or generated identifier
        priority: Higher runs first
        task: Zero-argument coroutine factory
        created_at: Monotonic creation time (seconds)
        future: Resolution handle awaited by the enqueuer
        state: Current lifecycle state
        started_at: Monotonic start time, once admitted
    """
    
    id: str
    priority: int
    task: Callable[[], Awaitable[Any]]
    created_at: float
    future: "asyncio.Future[Any]"
    state: JobState = JobState.QUEUED
    started_at: Optional[float] = field(default=None)
    
    def __repr__(self) -> str:
        return f"Job(id={self.id}, priority={self.priority}, state={self.state.value})"
