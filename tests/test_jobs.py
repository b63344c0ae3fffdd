"""Tests for the job model, the job store and the FIFO job queue.

The queue runs on a private event loop per test (``asyncio.run``) with a
fake pipeline coroutine, so no browser is involved.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from rebuilder.config import settings
from rebuilder.errors import ExtractionError, InternalError, NavigationError
from rebuilder.extractor.models import ExtractionSummary
from rebuilder.jobs.models import InvalidTransition, Job, JobStatus
from rebuilder.jobs.queue import JobQueue
from rebuilder.jobs.store import JobStore


@pytest.fixture(autouse=True)
def _job_settings(monkeypatch):
    monkeypatch.setattr(settings, "enforce_allowlist", False)
    monkeypatch.setattr(settings, "job_retention_seconds", 3600.0)
    monkeypatch.setattr(settings, "sweep_active_jobs", False)


def _later(seconds: float = 3601) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


async def _wait_terminal(queue: JobQueue, job_ids: List[str], timeout: float = 5.0) -> List[Job]:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        jobs = [queue.get_result(j) for j in job_ids]
        if all(j is not None and j.status.terminal for j in jobs):
            return jobs  # type: ignore[return-value]
        if loop.time() > deadline:
            raise AssertionError(f"jobs did not finish: {jobs}")
        await asyncio.sleep(0.01)


# ---------------------------------------------------------------------------
# Job state machine
# ---------------------------------------------------------------------------

class TestJobTransitions:
    def test_happy_path(self) -> None:
        job = Job(url="https://example.com")
        assert job.status is JobStatus.QUEUED
        job.mark_processing()
        assert job.started_at is not None
        job.mark_done(ExtractionSummary(url=job.url))
        assert job.status is JobStatus.DONE
        assert job.result is not None and job.error is None
        assert job.finished_at >= job.started_at

    def test_failure_path(self) -> None:
        job = Job(url="https://example.com")
        job.mark_processing()
        job.mark_failed("nope")
        assert job.status is JobStatus.FAILED
        assert job.error == "nope" and job.result is None

    def test_cannot_skip_processing(self) -> None:
        job = Job(url="https://example.com")
        with pytest.raises(InvalidTransition):
            job.mark_done(ExtractionSummary(url=job.url))

    def test_terminal_is_final(self) -> None:
        job = Job(url="https://example.com")
        job.mark_processing()
        job.mark_failed("first")
        with pytest.raises(InvalidTransition):
            job.mark_done(ExtractionSummary(url=job.url))
        with pytest.raises(InvalidTransition):
            job.mark_processing()
        assert job.error == "first"

    def test_ids_are_unique(self) -> None:
        assert len({Job(url="x").id for _ in range(50)}) == 50


# ---------------------------------------------------------------------------
# JobStore
# ---------------------------------------------------------------------------

class TestJobStore:
    def test_get_returns_copy(self) -> None:
        store = JobStore()
        job = Job(url="https://example.com")
        store.add(job)
        snapshot = store.get(job.id)
        snapshot.status = JobStatus.FAILED  # type: ignore[union-attr]
        assert store.get(job.id).status is JobStatus.QUEUED  # type: ignore[union-attr]

    def test_unknown_id(self) -> None:
        store = JobStore()
        assert store.get("job-missing") is None
        assert store.update("job-missing", Job.mark_processing) is None

    def test_sweep_keeps_active_jobs_by_default(self) -> None:
        store = JobStore()
        queued, done = Job(url="a"), Job(url="b")
        done.mark_processing()
        done.mark_done(ExtractionSummary(url="b"))
        store.add(queued)
        store.add(done)

        removed = store.sweep(timedelta(hours=1), now=_later())
        assert removed == [done.id]
        assert queued.id in store and done.id not in store

    def test_sweep_can_include_active_jobs(self) -> None:
        store = JobStore()
        store.add(Job(url="a"))
        assert len(store.sweep(timedelta(hours=1), now=_later(), include_active=True)) == 1
        assert len(store) == 0

    def test_sweep_ignores_young_jobs(self) -> None:
        store = JobStore()
        store.add(Job(url="a"))
        assert store.sweep(timedelta(hours=1), include_active=True) == []


# ---------------------------------------------------------------------------
# JobQueue
# ---------------------------------------------------------------------------

class TestJobQueue:
    def test_jobs_run_in_submission_order(self) -> None:
        order: List[str] = []

        async def pipeline(url: str) -> ExtractionSummary:
            order.append(url)
            await asyncio.sleep(0.01)
            return ExtractionSummary(url=url)

        async def scenario() -> List[Job]:
            queue = JobQueue(pipeline)
            await queue.start(sweep=False)
            ids = [queue.enqueue(f"https://example.com/{n}") for n in range(3)]
            jobs = await _wait_terminal(queue, ids)
            await queue.stop()
            return jobs

        jobs = asyncio.run(scenario())
        assert order == [f"https://example.com/{n}" for n in range(3)]
        finished = [j.finished_at for j in jobs]
        assert finished == sorted(finished)
        assert len(set(finished)) == 3
        assert all(j.status is JobStatus.DONE for j in jobs)

    def test_single_job_processing_at_a_time(self) -> None:
        observed: List[List[JobStatus]] = []
        ids: List[str] = []

        async def scenario() -> None:
            queue = JobQueue()

            async def pipeline(url: str) -> ExtractionSummary:
                observed.append([queue.get_result(j).status for j in ids])  # type: ignore[union-attr]
                await asyncio.sleep(0.01)
                return ExtractionSummary(url=url)

            queue.pipeline = pipeline
            ids.extend(queue.enqueue(f"https://example.com/{n}") for n in range(3))
            await queue.start(sweep=False)
            await _wait_terminal(queue, ids)
            await queue.stop()

        asyncio.run(scenario())
        assert observed == [
            [JobStatus.PROCESSING, JobStatus.QUEUED, JobStatus.QUEUED],
            [JobStatus.DONE, JobStatus.PROCESSING, JobStatus.QUEUED],
            [JobStatus.DONE, JobStatus.DONE, JobStatus.PROCESSING],
        ]

    def test_failure_is_isolated_to_its_job(self) -> None:
        async def pipeline(url: str) -> ExtractionSummary:
            if url.endswith("/nav"):
                raise NavigationError("Failed to load page: net::ERR_NAME_NOT_RESOLVED")
            if url.endswith("/capture"):
                raise ExtractionError("In-page capture failed: boom")
            if url.endswith("/crash"):
                raise RuntimeError("unexpected")
            return ExtractionSummary(url=url)

        async def scenario() -> List[Job]:
            queue = JobQueue(pipeline)
            await queue.start(sweep=False)
            ids = [queue.enqueue(f"https://example.com/{p}") for p in ("nav", "capture", "crash", "ok")]
            jobs = await _wait_terminal(queue, ids)
            await queue.stop()
            return jobs

        nav, cap, crash, ok = asyncio.run(scenario())
        assert nav.status is JobStatus.FAILED and nav.error.startswith("Failed to load page")
        assert cap.status is JobStatus.FAILED and "capture failed" in cap.error
        assert crash.status is JobStatus.FAILED and crash.error == "Internal error: unexpected"
        assert ok.status is JobStatus.DONE and ok.result.url == "https://example.com/ok"

    def test_unexpected_error_keeps_its_cause(self, caplog) -> None:
        async def pipeline(url: str) -> ExtractionSummary:
            raise KeyError("styles")

        async def scenario() -> Job:
            queue = JobQueue(pipeline)
            await queue.start(sweep=False)
            job_id = queue.enqueue("https://example.com")
            (job,) = await _wait_terminal(queue, [job_id])
            await queue.stop()
            return job

        with caplog.at_level(logging.ERROR, logger="rebuilder.jobs.queue"):
            job = asyncio.run(scenario())
        assert job.error == "Internal error: 'styles'"
        (record,) = [r for r in caplog.records if "crashed" in r.getMessage()]
        assert isinstance(record.exc_info[1], InternalError)
        assert isinstance(record.exc_info[1].__cause__, KeyError)

    def test_cancelled_pipeline_fails_job_and_worker_continues(self) -> None:
        async def pipeline(url: str) -> ExtractionSummary:
            if url.endswith("/cancel"):
                raise asyncio.CancelledError()
            return ExtractionSummary(url=url)

        async def scenario() -> List[Job]:
            queue = JobQueue(pipeline)
            await queue.start(sweep=False)
            ids = [queue.enqueue(f"https://example.com/{p}") for p in ("cancel", "ok")]
            jobs = await _wait_terminal(queue, ids)
            assert not queue._worker_task.done()  # type: ignore[union-attr]
            await queue.stop()
            return jobs

        cancelled, ok = asyncio.run(scenario())
        assert cancelled.status is JobStatus.FAILED
        assert cancelled.error == "Internal error: extraction was cancelled"
        assert ok.status is JobStatus.DONE

    def test_stop_cancels_running_job(self) -> None:
        async def scenario() -> Job:
            running = asyncio.Event()

            async def pipeline(url: str) -> ExtractionSummary:
                running.set()
                await asyncio.sleep(60)
                return ExtractionSummary(url=url)

            queue = JobQueue(pipeline)
            await queue.start(sweep=False)
            job_id = queue.enqueue("https://example.com")
            await asyncio.wait_for(running.wait(), timeout=5)
            await queue.stop()
            return queue.get_result(job_id)  # type: ignore[return-value]

        job = asyncio.run(scenario())
        assert job.status is JobStatus.PROCESSING

    def test_worker_requires_start(self) -> None:
        with pytest.raises(RuntimeError):
            asyncio.run(JobQueue()._worker())

    def test_worker_rechecks_allowlist(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "enforce_allowlist", True)
        monkeypatch.setattr(settings, "allowed_domains", ["example.com"])
        called: List[str] = []

        async def pipeline(url: str) -> ExtractionSummary:
            called.append(url)
            return ExtractionSummary(url=url)

        async def scenario() -> Job:
            queue = JobQueue(pipeline)
            await queue.start(sweep=False)
            job_id = queue.enqueue("https://evil.test/")
            (job,) = await _wait_terminal(queue, [job_id])
            await queue.stop()
            return job

        job = asyncio.run(scenario())
        assert job.status is JobStatus.FAILED
        assert job.error == "URL not allowed"
        assert called == []

    def test_queue_position(self) -> None:
        queue = JobQueue()
        first = queue.enqueue("https://example.com/1")
        second = queue.enqueue("https://example.com/2")
        assert queue.queue_position(first) == 1
        assert queue.queue_position(second) == 2
        assert queue.queue_position("job-unknown") == 0
        assert queue.pending_count == 2

    def test_enqueue_returns_before_pipeline_runs(self) -> None:
        started: List[str] = []

        async def pipeline(url: str) -> ExtractionSummary:
            started.append(url)
            return ExtractionSummary(url=url)

        async def scenario() -> None:
            queue = JobQueue(pipeline)
            await queue.start(sweep=False)
            job_id = queue.enqueue("https://example.com")
            assert started == []
            assert queue.get_result(job_id).status is JobStatus.QUEUED  # type: ignore[union-attr]
            await _wait_terminal(queue, [job_id])
            await queue.stop()

        asyncio.run(scenario())
        assert started == ["https://example.com"]

    def test_sweep_removes_finished_jobs(self) -> None:
        async def scenario() -> None:
            queue = JobQueue(lambda url: _summary(url))
            await queue.start(sweep=False)
            job_id = queue.enqueue("https://example.com")
            await _wait_terminal(queue, [job_id])
            await queue.stop()

            assert queue.sweep() == []
            assert queue.sweep(now=_later()) == [job_id]
            assert queue.get_result(job_id) is None

        asyncio.run(scenario())

    def test_sweep_exempts_pending_jobs_by_default(self) -> None:
        queue = JobQueue()
        job_id = queue.enqueue("https://example.com")
        assert queue.sweep(now=_later()) == []
        assert queue.queue_position(job_id) == 1

    def test_sweep_active_jobs_when_configured(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "sweep_active_jobs", True)
        queue = JobQueue()
        job_id = queue.enqueue("https://example.com")
        assert queue.sweep(now=_later()) == [job_id]
        assert queue.queue_position(job_id) == 0
        assert queue.pending_count == 0

    def test_periodic_sweeper_runs(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "sweep_interval_seconds", 0.01)
        monkeypatch.setattr(settings, "job_retention_seconds", 0.0)

        async def scenario() -> JobQueue:
            queue = JobQueue(lambda url: _summary(url))
            await queue.start()
            job_id = queue.enqueue("https://example.com")
            # The job is exempt while active and swept shortly after it finishes.
            for _ in range(500):
                if queue.get_result(job_id) is None:
                    break
                await asyncio.sleep(0.01)
            await queue.stop()
            return queue

        queue = asyncio.run(scenario())
        assert len(queue.store) == 0


async def _summary(url: str) -> ExtractionSummary:
    return ExtractionSummary(url=url)
