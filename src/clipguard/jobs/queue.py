"""
Concurrency Queue
=================

Bounded-parallelism scheduler for fingerprinting jobs.

All jobs run on one event loop; "concurrent" means in flight at the same
time from the scheduler's point of view, bounded by max_concurrent.

Design Rules:
    - Pending jobs are ordered by descending priority, FIFO within a priority
    - A job is admitted only while len(active) < max_concurrent
    - Every admitted job races its task against a per-job timeout
    - Settlement (success, failure, timeout) is the only re-entry point
      that admits more pending jobs
    - Only pending jobs can be cancelled (clear_queue); active jobs run
      to completion or time out

Timeout semantics:
    A timed-out task is ABANDONED, not cancelled. Its result is discarded
    and the job settles with JobTimeoutError, but the coroutine keeps
    running until it finishes on its own. Tasks must therefore be
    side-effect-light. Tasks that need real cancellation should check a
    flag at each of their suspension points.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, List, Optional, Set

from clipguard.errors import JobError, JobTimeoutError, QueueClearedError
from clipguard.models.job import Job, JobState


logger = logging.getLogger(__name__)


MIN_CONCURRENT = 1
MAX_CONCURRENT = 10


TaskFactory = Callable[[], Awaitable[Any]]


class ConcurrencyQueue:
    """
    Priority job queue with a concurrency cap and per-job timeout.
    
    Attributes:
        max_concurrent: Active job cap, in [1, 10]
        job_timeout: Per-job timeout in seconds
        poll_interval: Poll period for wait_for_completion, in seconds
        
    Example:
        queue = ConcurrencyQueue(max_concurrent=3, job_timeout=5.0)
        
        # Await the result directly
        fp = await queue.enqueue(lambda: pipeline.run(source), priority=1)
        
        # Or submit and await later
        future = queue.submit(task, job_id="check-42")
        result = await future
    """
    
    def __init__(
        self,
        max_concurrent: int = 3,
        job_timeout: float = 5.0,
        poll_interval: float = 0.1,
    ) -> None:
        """
        Initialize queue.
        
        Args:
            max_concurrent: Maximum simultaneously active jobs, in [1, 10]
            job_timeout: Seconds before an active job settles as timed out
            poll_interval: Seconds between quiescence checks
        """
        if not MIN_CONCURRENT <= max_concurrent <= MAX_CONCURRENT:
            raise ValueError(
                f"max_concurrent must be in [{MIN_CONCURRENT}, {MAX_CONCURRENT}]"
            )
        if job_timeout <= 0:
            raise ValueError("job_timeout must be positive")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        
        self._max_concurrent = max_concurrent
        self.job_timeout = job_timeout
        self.poll_interval = poll_interval
        
        self._active: Set[Job] = set()
        self._pending: List[Job] = []
        # Strong references: executors of admitted jobs, and abandoned
        # (timed-out) tasks until they finish
        self._executors: Set[asyncio.Future] = set()
        self._abandoned: Set[asyncio.Future] = set()
        
        self._total_jobs: int = 0
        self._completed_jobs: int = 0
        self._failed_jobs: int = 0
        self._timed_out_jobs: int = 0
        self._cancelled_jobs: int = 0
    
    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------
    
    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent
    
    @property
    def active_count(self) -> int:
        """Number of running jobs."""
        return len(self._active)
    
    @property
    def queue_size(self) -> int:
        """Number of jobs waiting for admission."""
        return len(self._pending)
    
    @property
    def abandoned_count(self) -> int:
        """Timed-out tasks that are still running."""
        return len(self._abandoned)
    
    def has_capacity(self) -> bool:
        return len(self._active) < self._max_concurrent
    
    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------
    
    def submit(
        self,
        task: TaskFactory,
        job_id: Optional[str] = None,
        priority: int = 0,
    ) -> "asyncio.Future[Any]":
        """
        Add a job and return a future for its result.
        
        Must be called from within a running event loop.
        
        Args:
            task: Zero-argument callable returning an awaitable
            job_id: Identifier; generated when omitted
            priority: Higher priority jobs are admitted first
            
        Returns:
            Future resolved with the task's result, or failed with the
            task's exception, JobTimeoutError, or QueueClearedError
        """
        loop = asyncio.get_running_loop()
        job = Job(
            id=job_id or self._generate_job_id(),
            priority=priority,
            task=task,
            created_at=time.monotonic(),
            future=loop.create_future(),
        )
        self._total_jobs += 1
        
        # First job with strictly lower priority; equal priorities keep FIFO
        insert_at = next(
            (i for i, pending in enumerate(self._pending) if pending.priority < priority),
            len(self._pending),
        )
        self._pending.insert(insert_at, job)
        
        logger.debug(
            f"Job enqueued: {job.id} (priority={priority}, "
            f"pending={len(self._pending)}, active={len(self._active)})"
        )
        
        self._process_queue()
        return job.future
    
    async def enqueue(
        self,
        task: TaskFactory,
        job_id: Optional[str] = None,
        priority: int = 0,
    ) -> Any:
        """Submit a job and wait for its settlement."""
        return await self.submit(task, job_id=job_id, priority=priority)
    
    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------
    
    def clear_queue(self, reason: str = "Manual clear") -> int:
        """
        Reject every pending job with QueueClearedError.
        
        Active jobs are unaffected.
        
        Returns:
            Number of jobs rejected
        """
        cleared, self._pending = self._pending, []
        
        for job in cleared:
            job.state = JobState.CANCELLED
            if not job.future.done():
                job.future.set_exception(QueueClearedError(reason, job_id=job.id))
        
        self._cancelled_jobs += len(cleared)
        logger.info(
            f"Queue cleared: {len(cleared)} jobs rejected "
            f"(reason={reason!r}, active={len(self._active)})"
        )
        return len(cleared)
    
    def set_max_concurrent(self, value: int) -> bool:
        """
        Update the concurrency cap.
        
        Values outside [1, 10] are logged and ignored.
        
        Returns:
            True if the cap was updated
        """
        if not MIN_CONCURRENT <= value <= MAX_CONCURRENT:
            logger.warning(f"Invalid max concurrent value ignored: {value}")
            return False
        
        self._max_concurrent = value
        logger.info(f"Max concurrent jobs updated: {value}")
        self._process_queue()
        return True
    
    async def wait_for_completion(self) -> None:
        """
        Wait until there are no active and no pending jobs.
        
        Polls every poll_interval; jobs added between polls simply
        extend the wait.
        """
        if not self._active and not self._pending:
            return
        
        logger.debug(
            f"Waiting for queue completion "
            f"(active={len(self._active)}, pending={len(self._pending)})"
        )
        while self._active or self._pending:
            await asyncio.sleep(self.poll_interval)
    
    def cleanup(self) -> None:
        """Reject pending jobs; used on shutdown."""
        self.clear_queue("Cleanup")
        logger.info("Queue cleanup completed")
    
    def stats(self) -> dict:
        """
        Queue statistics for observability.
        
        Returns:
            Dict with total/completed/failed/timed_out/cancelled counters
            and current active/pending sizes
        """
        return {
            "total_jobs": self._total_jobs,
            "completed_jobs": self._completed_jobs,
            "failed_jobs": self._failed_jobs,
            "timed_out_jobs": self._timed_out_jobs,
            "cancelled_jobs": self._cancelled_jobs,
            "active_jobs": len(self._active),
            "pending_jobs": len(self._pending),
            "abandoned_jobs": len(self._abandoned),
            "total_in_progress": len(self._active) + len(self._pending),
            "max_concurrent": self._max_concurrent,
        }
    
    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    
    def _process_queue(self) -> None:
        """Admit pending jobs while capacity remains."""
        while self.has_capacity() and self._pending:
            job = self._pending.pop(0)
            if job.future.done():
                # Caller cancelled the future before admission
                continue
            
            job.state = JobState.RUNNING
            job.started_at = time.monotonic()
            self._active.add(job)
            executor = asyncio.ensure_future(self._execute(job))
            self._executors.add(executor)
            executor.add_done_callback(self._executors.discard)
    
    async def _execute(self, job: Job) -> None:
        logger.debug(
            f"Job started: {job.id} "
            f"(wait={(job.started_at - job.created_at) * 1000:.0f}ms, "
            f"active={len(self._active)})"
        )
        
        try:
            try:
                runner = asyncio.ensure_future(job.task())
            except Exception as e:
                self._settle_failure(job, e)
                return
            
            try:
                done, _ = await asyncio.wait({runner}, timeout=self.job_timeout)
            except asyncio.CancelledError:
                # Executor torn down mid-wait; the caller must still see a settlement
                self._abandon(runner)
                self._settle_failure(job, JobError(f"Job cancelled: {job.id}", job_id=job.id))
                raise
            
            if runner not in done:
                self._abandon(runner)
                self._settle_timeout(job)
            elif runner.cancelled():
                self._settle_failure(job, JobError(f"Job task cancelled: {job.id}", job_id=job.id))
            elif runner.exception() is not None:
                self._settle_failure(job, runner.exception())
            else:
                self._settle_success(job, runner.result())
        finally:
            self._active.discard(job)
            self._process_queue()
    
    def _elapsed_ms(self, job: Job) -> float:
        return (time.monotonic() - (job.started_at or job.created_at)) * 1000
    
    def _settle_success(self, job: Job, result: Any) -> None:
        job.state = JobState.COMPLETED
        self._completed_jobs += 1
        logger.info(
            f"Job completed: {job.id} ({self._elapsed_ms(job):.0f}ms, "
            f"active={len(self._active) - 1})"
        )
        if not job.future.done():
            job.future.set_result(result)
    
    def _settle_failure(self, job: Job, error: BaseException) -> None:
        job.state = JobState.FAILED
        self._failed_jobs += 1
        logger.error(f"Job failed: {job.id} ({self._elapsed_ms(job):.0f}ms): {error!r}")
        if not job.future.done():
            job.future.set_exception(error)
    
    def _settle_timeout(self, job: Job) -> None:
        job.state = JobState.TIMED_OUT
        self._timed_out_jobs += 1
        logger.error(
            f"Job timed out: {job.id} after {self.job_timeout * 1000:.0f}ms "
            f"(task abandoned)"
        )
        if not job.future.done():
            job.future.set_exception(JobTimeoutError(job.id, self.job_timeout))
    
    def _abandon(self, runner: asyncio.Future) -> None:
        self._abandoned.add(runner)
        runner.add_done_callback(self._reap_abandoned)
    
    def _reap_abandoned(self, runner: asyncio.Future) -> None:
        self._abandoned.discard(runner)
        if not runner.cancelled() and runner.exception() is not None:
            logger.debug(f"Abandoned task finished with error: {runner.exception()!r}")
    
    @staticmethod
    def _generate_job_id() -> str:
        return f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
