"""Job model and its state machine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from rebuilder.extractor.models import ExtractionSummary


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.FAILED)


class InvalidTransition(ValueError):
    """Raised when a job is moved along an edge the state machine forbids."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return f"job-{uuid.uuid4().hex}"


@dataclass
class Job:
    """One queued request to extract components from a URL.

    Only ``queued -> processing -> done|failed`` is allowed; the ``mark_*``
    methods enforce it.
    """

    url: str
    secret: Optional[str] = None
    id: str = field(default_factory=new_job_id)
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    result: Optional[ExtractionSummary] = None
    error: Optional[str] = None

    def _require(self, expected: JobStatus, target: JobStatus) -> None:
        if self.status is not expected:
            raise InvalidTransition(
                f"job {self.id}: cannot move {self.status.value} -> {target.value}"
            )

    def mark_processing(self) -> None:
        self._require(JobStatus.QUEUED, JobStatus.PROCESSING)
        self.status = JobStatus.PROCESSING
        self.started_at = _utcnow()

    def mark_done(self, result: ExtractionSummary) -> None:
        self._require(JobStatus.PROCESSING, JobStatus.DONE)
        self.status = JobStatus.DONE
        self.result = result
        self.finished_at = _utcnow()

    def mark_failed(self, error: str) -> None:
        self._require(JobStatus.PROCESSING, JobStatus.FAILED)
        self.status = JobStatus.FAILED
        self.error = error
        self.finished_at = _utcnow()
