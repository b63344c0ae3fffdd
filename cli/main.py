"""UI Component Rebuilder CLI.

Usage:
    python cli/main.py --help

Commands:
    serve     → run the HTTP API (uvicorn)
    analyze   → queue a URL on a running server, poll, write artifacts
    sign      → print the request signature for a body
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from rebuilder.xxx import
# ...` works when the CLI is invoked as `python cli/main.py` from anywhere.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import json
import time
from typing import Any, Dict, Optional

import httpx
import typer

from rebuilder.auth import SIGNATURE_HEADER, sign
from rebuilder.config import settings

app = typer.Typer(
    name="rebuilder",
    help="UI Component Rebuilder CLI.",
    no_args_is_help=True,
)


class JobFailed(Exception):
    pass


def poll_result(
    client: httpx.Client,
    job_id: str,
    signature: str,
    *,
    max_polls: int = 30,
    delay: float = 1.0,
    max_delay: float = 10.0,
) -> Dict[str, Any]:
    """Poll ``/result/<job_id>`` with backoff until the job is terminal.

    Returns the ``summary`` of a done job.

    Raises:
        JobFailed: The job failed, expired, or never finished within
            *max_polls* attempts.
    """
    for _ in range(max_polls):
        time.sleep(delay)
        resp = client.get(f"/result/{job_id}", headers={SIGNATURE_HEADER: signature})
        if resp.status_code == 404:
            raise JobFailed(f"Job {job_id} not found (expired?).")
        if resp.status_code == 401:
            raise JobFailed("Server rejected the signature.")
        data = resp.json()
        status = data.get("status")
        if status == "done":
            return data["summary"]
        if status == "failed":
            raise JobFailed(data.get("error") or "extraction failed")
        typer.echo(f"[analyze] {status} (queue position {data.get('queuePosition', 0)}) …")
        delay = min(delay * 1.5, max_delay)
    raise JobFailed(f"Job {job_id} did not finish after {max_polls} polls.")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default: $HOST)."),
    port: Optional[int] = typer.Option(None, help="Port (default: $PORT)."),
    reload: bool = typer.Option(False, help="Auto-reload on code changes."),
) -> None:
    """Run the HTTP API."""
    import uvicorn  # noqa: PLC0415

    uvicorn.run(
        "rebuilder.api.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("analyze")
def analyze(
    url: str = typer.Argument(..., help="Page to extract components from."),
    server: str = typer.Option(
        "http://localhost:3000", envvar="CLIQ_SERVER", help="Base URL of a running server."
    ),
    secret: Optional[str] = typer.Option(None, help="Shared secret (default: $CLIQ_SECRET)."),
    out: Path = typer.Option(Path("extracted-ui"), help="Output directory."),
    timeout: float = typer.Option(120.0, help="HTTP timeout in seconds."),
    max_polls: int = typer.Option(30, help="Give up after this many polls."),
) -> None:
    """Queue *url* on the server, wait for the job, and write its artifacts."""
    from cli.output import write_artifacts

    body = json.dumps({"url": url}).encode("utf-8")
    signature = sign(body, secret if secret is not None else settings.cliq_secret)

    typer.echo(f"[analyze] Requesting analysis for {url!r} …")
    with httpx.Client(base_url=server, timeout=timeout) as client:
        resp = client.post(
            "/analyze",
            content=body,
            headers={"Content-Type": "application/json", SIGNATURE_HEADER: signature},
        )
        if resp.status_code != 200:
            typer.echo(f"[analyze] Server responded {resp.status_code}: {resp.text}")
            raise typer.Exit(2)

        job_id = resp.json()["jobId"]
        typer.echo(f"[analyze] Job queued: {job_id}")
        try:
            summary = poll_result(client, job_id, signature, max_polls=max_polls)
        except JobFailed as exc:
            typer.echo(f"[analyze] Job failed: {exc}")
            raise typer.Exit(3) from exc

    for path in write_artifacts(summary, out):
        typer.echo(f"[analyze] Wrote {path}")
    typer.echo(f"[analyze] {summary.get('componentCount', 0)} component(s) extracted.")


@app.command("sign")
def sign_cmd(
    body: str = typer.Argument(..., help="Exact request body to sign."),
    secret: Optional[str] = typer.Option(None, help="Shared secret (default: $CLIQ_SECRET)."),
) -> None:
    """Print the x-cliq-signature value for *body*."""
    typer.echo(sign(body.encode("utf-8"), secret if secret is not None else settings.cliq_secret))


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
