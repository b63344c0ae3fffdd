"""Job queue: accepts extraction jobs and runs them one at a time, FIFO.

A single worker task drains the pending deque; it is woken through an
``asyncio.Event`` when :meth:`JobQueue.enqueue` adds work, so there is never
more than one extraction in flight.  A second task periodically sweeps old
jobs out of the store.

Failures inside one job (navigation, capture, or anything unexpected) are
recorded on that job only and the worker moves on to the next one; a pipeline
that raises ``CancelledError`` while the queue is not stopping counts as an
unexpected failure.  If the worker task itself dies, the process exits and
relies on its supervisor to restart it.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Deque, List, Optional

from rebuilder.config import settings
from rebuilder.errors import ExtractionError, InternalError, NavigationError, ValidationError
from rebuilder.extractor.models import ExtractionSummary
from rebuilder.extractor.pipeline import run_extraction
from rebuilder.jobs.models import Job
from rebuilder.jobs.store import JobStore
from rebuilder.urls import is_allowed_url

logger = logging.getLogger(__name__)

Pipeline = Callable[[str], Awaitable[ExtractionSummary]]

_EXPECTED_FAILURES = (ValidationError, NavigationError, ExtractionError)


class JobQueue:
    """Owns the job lifecycle: accept, queue, execute, complete/fail, expire."""

    def __init__(
        self,
        pipeline: Optional[Pipeline] = None,
        store: Optional[JobStore] = None,
    ) -> None:
        self.pipeline: Pipeline = pipeline or run_extraction
        self.store = store or JobStore()
        self._pending: Deque[str] = deque()
        self._pending_lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._worker_task: Optional["asyncio.Task[None]"] = None
        self._sweeper_task: Optional["asyncio.Task[None]"] = None
        self._stopping = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, *, sweep: bool = True) -> None:
        """Start the worker (and, unless disabled, the sweeper) on this loop."""
        if self._worker_task is not None:
            return
        self._stopping = False
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        if self.pending_count:
            self._wakeup.set()

        self._worker_task = asyncio.create_task(self._worker(), name="rebuilder-worker")
        self._worker_task.add_done_callback(self._on_worker_exit)
        if sweep:
            self._sweeper_task = asyncio.create_task(self._sweeper(), name="rebuilder-sweeper")

    async def stop(self) -> None:
        self._stopping = True
        for task in (self._worker_task, self._sweeper_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._worker_task = None
        self._sweeper_task = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(self, url: str, secret: Optional[str] = None) -> str:
        """Store a new ``queued`` job for *url* and wake the worker.

        Never blocks; returns the new job id immediately.
        """
        job = Job(url=url, secret=secret)
        self.store.add(job)
        with self._pending_lock:
            self._pending.append(job.id)
        self._notify()
        logger.info("Queued %s for %s", job.id, url)
        return job.id

    def get_result(self, job_id: str) -> Optional[Job]:
        """Return a snapshot of the job, or ``None`` if unknown or expired."""
        return self.store.get(job_id)

    def queue_position(self, job_id: str) -> int:
        """1-based position among pending jobs; ``0`` when not pending."""
        with self._pending_lock:
            try:
                return self._pending.index(job_id) + 1
            except ValueError:
                return 0

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Remove jobs older than the retention window; return their ids."""
        expired = self.store.sweep(
            timedelta(seconds=settings.job_retention_seconds),
            now=now,
            include_active=settings.sweep_active_jobs,
        )
        if expired:
            gone = set(expired)
            with self._pending_lock:
                self._pending = deque(j for j in self._pending if j not in gone)
            logger.info("Swept %d expired job(s)", len(expired))
        return expired

    async def run_job(self, job_id: str) -> None:
        """Run the pipeline for one job and record the outcome on it."""
        job = self.store.update(job_id, Job.mark_processing)
        if job is None:
            logger.info("%s expired before it started", job_id)
            return
        logger.info("Processing %s (%s)", job_id, job.url)

        try:
            summary = await self._execute(job.url)
        except InternalError as exc:
            message = str(exc)
            logger.error("%s crashed", job_id, exc_info=exc)
            self._finish(job_id, lambda j: j.mark_failed(message))
            return
        except _EXPECTED_FAILURES as exc:
            message = str(exc)
            logger.warning("%s failed: %s", job_id, message)
            self._finish(job_id, lambda j: j.mark_failed(message))
            return

        self._finish(job_id, lambda j: j.mark_done(summary))
        logger.info("%s done: %d component(s)", job_id, summary.component_count)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _execute(self, url: str) -> ExtractionSummary:
        if not url or not is_allowed_url(url):
            raise ValidationError("URL not allowed")
        try:
            return await self.pipeline(url)
        except _EXPECTED_FAILURES:
            raise
        except asyncio.CancelledError as exc:
            if self._stopping:
                raise
            raise InternalError("Internal error: extraction was cancelled") from exc
        except Exception as exc:  # noqa: BLE001
            raise InternalError(f"Internal error: {exc}") from exc

    def _notify(self) -> None:
        if self._loop is None or self._wakeup is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._wakeup.set()
        else:
            self._loop.call_soon_threadsafe(self._wakeup.set)

    def _pop(self) -> Optional[str]:
        with self._pending_lock:
            return self._pending.popleft() if self._pending else None

    def _finish(self, job_id: str, mutate: Callable[[Job], None]) -> None:
        if self.store.update(job_id, mutate) is None:
            logger.warning("%s was swept while processing; outcome dropped", job_id)

    async def _worker(self) -> None:
        if self._wakeup is None:
            raise RuntimeError("JobQueue.start() must run before the worker")
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            job_id = self._pop()
            while job_id is not None:
                await self.run_job(job_id)
                job_id = self._pop()

    def _on_worker_exit(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            if self._stopping:
                return
            logger.critical("Job worker was cancelled outside stop(); no further jobs will run")
            return
        exc = task.exception()
        if exc is None:
            return
        logger.critical("Job worker died outside any job; exiting", exc_info=exc)
        os._exit(1)

    async def _sweeper(self) -> None:
        while True:
            await asyncio.sleep(settings.sweep_interval_seconds)
            self.sweep()
