"""Request signature verification.

Callers sign the exact bytes of the request body with HMAC-SHA256 using the
shared secret and send the hex digest in the ``x-cliq-signature`` header.

Two policies are supported (``settings.auth_mode``):

``permissive``
    A request without a signature header is accepted.  When the exact body
    bytes are unavailable the digest is computed over a compact JSON
    re-serialisation of the parsed payload.

``strict``
    A signature is mandatory and must cover the transmitted bytes; a request
    whose raw body cannot be recovered is rejected.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any, Mapping, Optional

from rebuilder.config import settings
from rebuilder.errors import AuthError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-cliq-signature"


def sign(body: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA256 of *body* keyed with *secret*."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def _reserialize(parsed: Optional[Mapping[str, Any]]) -> bytes:
    if parsed is None:
        return b""
    return json.dumps(dict(parsed), separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def verify_signature(
    signature: Optional[str],
    raw_body: Optional[bytes],
    *,
    secret: Optional[str] = None,
    mode: Optional[str] = None,
    parsed: Optional[Mapping[str, Any]] = None,
) -> None:
    """Raise :class:`AuthError` unless *signature* authenticates the body.

    Args:
        signature: Value of the signature header (``None`` or blank when the
            client did not send one).
        raw_body: The exact request bytes, or ``None`` when they were not
            preserved (e.g. multipart payloads re-parsed into fields).
        secret: Shared secret; defaults to ``settings.cliq_secret``.
        mode: ``"permissive"`` or ``"strict"``; defaults to
            ``settings.auth_mode``.
        parsed: Parsed payload, only used to rebuild the body in permissive
            mode when *raw_body* is ``None``.
    """
    mode = mode or settings.auth_mode
    secret = settings.cliq_secret if secret is None else secret
    signature = (signature or "").strip()

    if not signature:
        if mode == "strict":
            raise AuthError("Missing signature header.")
        logger.warning("No %s header provided; accepting (permissive mode)", SIGNATURE_HEADER)
        return

    if raw_body is None:
        if mode == "strict":
            raise AuthError("Raw request body unavailable for signature check.")
        raw_body = _reserialize(parsed)

    expected = sign(raw_body, secret)
    if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
        raise AuthError("Invalid signature.")
