"""URL normalisation and the optional domain allowlist."""

from __future__ import annotations

from typing import Any, Iterable, Optional
from urllib.parse import urlparse

from rebuilder.config import settings
from rebuilder.errors import ValidationError


def normalize_url(raw: Any) -> str:
    """Trim *raw* and prefix ``https://`` when it carries no http(s) scheme.

    Raises:
        ValidationError: If *raw* is not a string or is empty after trimming.
    """
    if not isinstance(raw, str):
        raise ValidationError("Missing URL.")
    url = raw.strip()
    if not url:
        raise ValidationError("Missing URL.")
    if not url.startswith("http"):
        url = f"https://{url}"
    return url


def is_allowed_url(
    url: str,
    *,
    enforce: Optional[bool] = None,
    domains: Optional[Iterable[str]] = None,
) -> bool:
    """Return ``True`` if *url* parses and passes the allowlist.

    When enforcement is off every parseable URL with a hostname is allowed.
    Otherwise the hostname must end with one of the configured domains.
    """
    enforce = settings.enforce_allowlist if enforce is None else enforce
    domains = settings.allowed_domains if domains is None else domains
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return False
    if not hostname:
        return False
    if not enforce:
        return True
    return any(hostname.endswith(d) for d in domains)
