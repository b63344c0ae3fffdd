"""Request helpers shared by the routers: body limits, payload parsing, auth."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qsl

from fastapi import HTTPException, Request
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from rebuilder.auth import SIGNATURE_HEADER, verify_signature
from rebuilder.config import settings
from rebuilder.errors import AuthError, ValidationError

_BOUNDARY = re.compile(rb"^--([A-Za-z0-9'()+_,\-./:=?]+)\r\n")


async def read_body(request: Request) -> bytes:
    """Return the raw request body, enforcing ``settings.body_limit_bytes``."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > settings.body_limit_bytes:
        raise HTTPException(status_code=413, detail="Request body too large.")
    raw = await request.body()
    if len(raw) > settings.body_limit_bytes:
        raise HTTPException(status_code=413, detail="Request body too large.")
    return raw


def signature_of(request: Request) -> Optional[str]:
    value = (request.headers.get(SIGNATURE_HEADER) or "").strip()
    return value or None


def recover_multipart_fields(raw: bytes) -> Dict[str, str]:
    """Pull simple form fields out of a multipart body sent with the wrong type.

    Some clients post ``multipart/form-data`` while labelling it JSON.  The
    boundary is taken from the first line and the body is handed to
    ``python_multipart``; file parts are skipped, as for a real form upload.
    """
    body = raw.lstrip()
    match = _BOUNDARY.match(body)
    if not match:
        return {}

    fields: Dict[str, str] = {}
    part: Dict[str, Any] = {}

    def on_part_begin() -> None:
        part.update(headers={}, field=b"", value=b"", data=bytearray())

    def on_header_field(data: bytes, start: int, end: int) -> None:
        part["field"] += data[start:end]

    def on_header_value(data: bytes, start: int, end: int) -> None:
        part["value"] += data[start:end]

    def on_header_end() -> None:
        part["headers"][part["field"].lower()] = part["value"]
        part["field"], part["value"] = b"", b""

    def on_part_data(data: bytes, start: int, end: int) -> None:
        part["data"] += data[start:end]

    def on_part_end() -> None:
        disposition = part["headers"].get(b"content-disposition", b"")
        _, options = parse_options_header(disposition)
        name = options.get(b"name")
        if name and b"filename" not in options:
            fields[name.decode("utf-8", errors="replace")] = (
                bytes(part["data"]).decode("utf-8", errors="replace").strip()
            )

    parser = MultipartParser(
        match.group(1),
        callbacks={
            "on_part_begin": on_part_begin,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
            "on_header_end": on_header_end,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
        },
    )
    try:
        parser.write(body)
        parser.finalize()
    except MultipartParseError:
        return {}
    return fields


async def parse_payload(request: Request, raw: bytes) -> Tuple[Dict[str, Any], Optional[bytes]]:
    """Parse the body into form fields.

    Returns ``(fields, signed_bytes)`` where *signed_bytes* is the exact body
    the signature must cover, or ``None`` when the payload was a true
    multipart upload whose fields were re-parsed.

    Raises:
        ValidationError: The body is neither JSON, a form, nor a recoverable
            multipart payload.
    """
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}, None

    if content_type.startswith("application/x-www-form-urlencoded"):
        text = raw.decode("utf-8", errors="replace")
        return dict(parse_qsl(text, keep_blank_values=True)), raw

    if not raw.strip():
        return {}, raw
    try:
        data = json.loads(raw)
    except ValueError:
        fields = recover_multipart_fields(raw)
        if fields:
            return fields, raw
        raise ValidationError("Invalid request body")
    return (data if isinstance(data, dict) else {}), raw


def require_signature(
    request: Request,
    raw: Optional[bytes],
    parsed: Optional[Dict[str, Any]] = None,
) -> None:
    """Raise HTTP 401 unless the request authenticates under the global secret."""
    try:
        verify_signature(signature_of(request), raw, parsed=parsed)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail="Invalid x-cliq-signature.") from exc
