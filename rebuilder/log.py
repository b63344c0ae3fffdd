"""Logging setup for the API process and the CLI."""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the ``rebuilder`` logger.

    Safe to call more than once (uvicorn reloads, repeated test app
    startups); the handler is only attached the first time.
    """
    logger = logging.getLogger("rebuilder")
    logger.setLevel(level)
    if not any(getattr(h, "_rebuilder", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._rebuilder = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
