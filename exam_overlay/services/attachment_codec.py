"""
services/attachment_codec.py

Captured image (data URL) ↔ transport-ready (mime, base64 payload).
decode() never raises: the mime type is advisory to the transport layer,
so malformed input falls back to DEFAULT_MIME.
"""

import base64
import re
from typing import NamedTuple

DEFAULT_MIME = "image/jpeg"

_MIME_RE = re.compile(r"data:([^;]+);base64")


class DecodedAttachment(NamedTuple):
    mime: str
    payload: str


def decode(raw) -> DecodedAttachment:
    """
    Split a data URL at its first comma and read the mime descriptor.

    "data:image/png;base64,AAAA" → ("image/png", "AAAA")
    "AAAA"                       → ("image/jpeg", "AAAA")
    """
    if not isinstance(raw, str):
        return DecodedAttachment(DEFAULT_MIME, "")

    head, sep, tail = raw.partition(",")
    payload = tail if sep else raw

    match = _MIME_RE.match(head.strip())
    mime = match.group(1) if match else DEFAULT_MIME
    return DecodedAttachment(mime, payload)


def encode(mime: str, data: bytes) -> str:
    """Raw image bytes → data URL (what a browser's readAsDataURL produces)."""
    b64 = base64.b64encode(data).decode("ascii")
    return f"data:{mime or DEFAULT_MIME};base64,{b64}"


def to_data_url(decoded: DecodedAttachment) -> str:
    return f"data:{decoded.mime};base64,{decoded.payload}"


def payload_size(payload: str) -> int:
    """Approximate decoded byte length of a base64 payload."""
    if not payload:
        return 0
    stripped = payload.strip()
    padding = len(stripped) - len(stripped.rstrip("="))
    return max(0, len(stripped) * 3 // 4 - padding)
