"""Centralised settings for the UI Component Rebuilder.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

AUTH_MODES = ("permissive", "strict")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _default_auth_mode() -> str:
    mode = os.environ.get("AUTH_MODE", "").strip().lower()
    if mode in AUTH_MODES:
        return mode
    # STRICT_HMAC is the older spelling of AUTH_MODE=strict
    return "strict" if _env_bool("STRICT_HMAC") else "permissive"


def _split_domains(raw: str) -> List[str]:
    return [d.strip() for d in raw.split(",") if d.strip()]


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # HTTP server
    # ------------------------------------------------------------------
    host: str = field(default_factory=lambda: os.environ.get("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.environ.get("PORT", "3000")))
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO").upper()
    )
    body_limit_bytes: int = field(
        default_factory=lambda: int(os.environ.get("BODY_LIMIT_BYTES", str(300 * 1024)))
    )

    # ------------------------------------------------------------------
    # Request signing / access policy
    # ------------------------------------------------------------------
    cliq_secret: str = field(
        default_factory=lambda: os.environ.get("CLIQ_SECRET", "testsecret")
    )
    auth_mode: str = field(default_factory=_default_auth_mode)
    enforce_allowlist: bool = field(
        default_factory=lambda: _env_bool("ENFORCE_ALLOWLIST")
    )
    allowed_domains: List[str] = field(
        default_factory=lambda: _split_domains(
            os.environ.get("ALLOWED_DOMAINS", "example.com")
        )
    )

    # ------------------------------------------------------------------
    # Job retention
    # ------------------------------------------------------------------
    job_retention_seconds: float = field(
        default_factory=lambda: float(os.environ.get("JOB_RETENTION_SECONDS", "3600"))
    )
    sweep_interval_seconds: float = field(
        default_factory=lambda: float(os.environ.get("SWEEP_INTERVAL_SECONDS", "300"))
    )
    sweep_active_jobs: bool = field(
        default_factory=lambda: _env_bool("SWEEP_ACTIVE_JOBS")
    )

    # ------------------------------------------------------------------
    # Browser / extraction
    # ------------------------------------------------------------------
    headless: bool = field(default_factory=lambda: _env_bool("HEADLESS", "true"))
    stealth: bool = field(default_factory=lambda: _env_bool("BROWSER_STEALTH", "true"))
    nav_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("NAV_TIMEOUT_MS", "60000"))
    )
    scroll_step_px: int = field(
        default_factory=lambda: int(os.environ.get("SCROLL_STEP_PX", "400"))
    )
    scroll_interval_ms: int = field(
        default_factory=lambda: int(os.environ.get("SCROLL_INTERVAL_MS", "100"))
    )
    scroll_max_steps: int = field(
        default_factory=lambda: int(os.environ.get("SCROLL_MAX_STEPS", "50"))
    )
    settle_ms: int = field(
        default_factory=lambda: int(os.environ.get("SETTLE_MS", "1000"))
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "BROWSER_USER_AGENT",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        )
    )
    viewport_width: int = field(
        default_factory=lambda: int(os.environ.get("VIEWPORT_WIDTH", "1280"))
    )
    viewport_height: int = field(
        default_factory=lambda: int(os.environ.get("VIEWPORT_HEIGHT", "800"))
    )

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------
    max_components: int = field(
        default_factory=lambda: int(os.environ.get("MAX_COMPONENTS", "60"))
    )
    dedup_prefix_length: int = field(
        default_factory=lambda: int(os.environ.get("DEDUP_PREFIX_LENGTH", "200"))
    )


# Module-level singleton, import this everywhere:
#   from rebuilder.config import settings
settings = Settings()
