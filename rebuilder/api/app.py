"""FastAPI application factory.

Lifespan
--------
The app owns a single :class:`~rebuilder.jobs.queue.JobQueue`
(``app.state.jobs``).  On startup logging is configured and the queue's
worker and retention sweeper are started on the server's event loop; on
shutdown both tasks are cancelled.  Jobs live only in process memory.

Routers
-------
    POST /analyze           queue an extraction job
    GET  /result/{job_id}   poll a job
    GET  /preview?url=      run the pipeline inline, return HTML
    GET  /health            liveness probe
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rebuilder.config import settings
from rebuilder.jobs.queue import JobQueue, Pipeline
from rebuilder.log import configure_logging

from rebuilder.api.middleware import SecurityHeadersMiddleware
from rebuilder.api.routers import analyze as analyze_router
from rebuilder.api.routers import health as health_router
from rebuilder.api.routers import preview as preview_router
from rebuilder.api.routers import results as results_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the job worker on startup and stop it on shutdown."""
    configure_logging(settings.log_level)
    jobs: JobQueue = app.state.jobs
    await jobs.start()
    try:
        yield
    finally:
        await jobs.stop()


def create_app(pipeline: Optional[Pipeline] = None) -> FastAPI:
    """Return a fully-configured FastAPI application instance.

    Args:
        pipeline: Coroutine function ``url -> ExtractionSummary`` used by
            both the job worker and ``/preview``.  Defaults to the real
            browser-backed pipeline.
    """
    app = FastAPI(
        title="UI Component Rebuilder",
        description=(
            "Turns a live page's interactive elements into reusable "
            "components: scoped CSS, cleaned HTML and React scaffolds. "
            "Extraction runs through a single-worker FIFO job queue."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.jobs = JobQueue(pipeline)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(analyze_router.router, tags=["jobs"])
    app.include_router(results_router.router, tags=["jobs"])
    app.include_router(preview_router.router, tags=["preview"])
    app.include_router(health_router.router, tags=["health"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn rebuilder.api.app:app
app = create_app()
