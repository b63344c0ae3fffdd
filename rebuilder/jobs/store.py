"""In-memory job table shared by the HTTP layer, the worker and the sweeper."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from rebuilder.jobs.models import Job


class JobStore:
    """Thread-safe ``job_id -> Job`` table.

    Readers always get a copy, so a snapshot handed to a request handler
    never changes underneath it.  Mutations go through :meth:`update`, which
    applies a ``Job.mark_*`` call while holding the lock.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs

    def add(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.id] = job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job is not None else None

    def update(self, job_id: str, mutate: Callable[[Job], None]) -> Optional[Job]:
        """Apply *mutate* to the stored job; return a copy, or ``None`` if gone."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            mutate(job)
            return replace(job)

    def sweep(
        self,
        max_age: timedelta,
        *,
        now: Optional[datetime] = None,
        include_active: bool = False,
    ) -> List[str]:
        """Delete jobs created more than *max_age* ago and return their ids.

        Queued and processing jobs are kept unless *include_active* is set.
        """
        cutoff = (now or datetime.now(timezone.utc)) - max_age
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if job.created_at < cutoff and (include_active or job.status.terminal)
            ]
            for job_id in expired:
                del self._jobs[job_id]
        return expired
