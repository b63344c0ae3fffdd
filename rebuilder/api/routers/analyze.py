"""Job submission endpoint.

Routes
------
POST /analyze    Body: {"url": "https://..."} (JSON, urlencoded or multipart)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from rebuilder.api.deps import parse_payload, read_body, require_signature, signature_of
from rebuilder.errors import ValidationError
from rebuilder.urls import is_allowed_url, normalize_url

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class AnalyzeResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool = True
    status: str = "queued"
    job_id: str
    poll_url: str
    message: str = "Job queued for processing. Check the poll URL for status."


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(request: Request) -> AnalyzeResponse:
    """Validate and queue an extraction job; returns immediately.

    Order of checks: body parse (400), signature (401), URL present (400),
    allowlist (403).  A job is only created once all of them pass.
    """
    raw = await read_body(request)
    try:
        fields, signed = await parse_payload(request, raw)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    require_signature(request, signed, parsed=fields)

    try:
        url = normalize_url(fields.get("url"))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not is_allowed_url(url):
        raise HTTPException(status_code=403, detail="URL not allowed.")

    try:
        job_id = request.app.state.jobs.enqueue(url, signature_of(request))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Enqueue failed for %s", url)
        raise HTTPException(status_code=500, detail=f"Queue error: {exc}") from exc

    return AnalyzeResponse(job_id=job_id, poll_url=f"/result/{job_id}")
