"""Job polling endpoint.

Routes
------
GET /result/{job_id}

A caller presenting the same signature that queued the job is let through
even if the global secret has since changed; anyone else goes through the
normal signature check.
"""

from __future__ import annotations

import hmac
from typing import Any, Union

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from rebuilder.api.deps import read_body, require_signature, signature_of
from rebuilder.jobs.models import Job, JobStatus

router = APIRouter()


def _pinned(signature: str | None, job: Job | None) -> bool:
    if not (signature and job and job.secret):
        return False
    return hmac.compare_digest(signature.encode("utf-8"), job.secret.encode("utf-8"))


@router.get("/result/{job_id}", response_model=None)
async def get_result(job_id: str, request: Request) -> Union[dict[str, Any], JSONResponse]:
    """Report the job's status, its summary once done, or its error once failed."""
    jobs = request.app.state.jobs
    job = jobs.get_result(job_id)

    signature = signature_of(request)
    if not _pinned(signature, job):
        require_signature(request, await read_body(request))

    if job is None:
        raise HTTPException(
            status_code=404,
            detail="Job not found. Job IDs are kept for a limited time.",
        )

    if job.status in (JobStatus.QUEUED, JobStatus.PROCESSING):
        return {
            "ok": True,
            "jobId": job_id,
            "status": job.status.value,
            "queuePosition": jobs.queue_position(job_id),
            "message": f"Your job is {job.status.value}. Check back soon.",
        }

    if job.status is JobStatus.FAILED:
        return JSONResponse(
            status_code=400,
            content={"ok": False, "jobId": job_id, "status": "failed", "error": job.error},
        )

    return {
        "ok": True,
        "jobId": job_id,
        "status": "done",
        "summary": job.result.to_dict() if job.result else None,
    }
