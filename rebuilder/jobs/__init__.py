"""Jobs package: job model, in-memory store and the FIFO worker queue."""

from rebuilder.jobs.models import InvalidTransition, Job, JobStatus
from rebuilder.jobs.queue import JobQueue
from rebuilder.jobs.store import JobStore

__all__ = ["Job", "JobStatus", "InvalidTransition", "JobStore", "JobQueue"]
