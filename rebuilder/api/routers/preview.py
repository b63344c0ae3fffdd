"""Synchronous preview endpoint.

Routes
------
GET /preview?url=...    → text/html

Runs the whole extraction pipeline inline, bypassing the job queue, and
returns one self-contained document rendering every component with its CSS.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from rebuilder.api.deps import read_body, require_signature
from rebuilder.errors import ValidationError
from rebuilder.extractor.preview import render_preview
from rebuilder.urls import is_allowed_url, normalize_url

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/preview", response_class=HTMLResponse)
async def preview(request: Request, url: Optional[str] = None) -> Response:
    require_signature(request, await read_body(request))

    try:
        final_url = normalize_url(url)
    except ValidationError:
        return PlainTextResponse("Missing url query parameter.", status_code=400)
    if not is_allowed_url(final_url):
        return PlainTextResponse("URL not allowed.", status_code=403)

    try:
        summary = await request.app.state.jobs.pipeline(final_url)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Preview failed for %s", final_url)
        return PlainTextResponse(f"Preview failed: {exc}", status_code=500)

    return HTMLResponse(render_preview(summary))
