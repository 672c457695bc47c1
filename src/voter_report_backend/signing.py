"""HMAC-SHA256 signatures for webhook payloads."""

from __future__ import annotations

import hashlib
import hmac
import re
from typing import Union

SIGNATURE_PREFIX = "sha256="
SIGNATURE_HEADER = "x-webhook-signature"

_HEX_DIGEST = re.compile(r"^[0-9a-fA-F]{64}$")

Payload = Union[str, bytes, bytearray, memoryview]


def _payload_bytes(payload: Payload) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


def sign(payload: Payload, secret: str) -> str:
    """
    Sign a payload with HMAC-SHA256.

    Text is encoded as UTF-8 before hashing, so signing a string and signing
    its UTF-8 bytes give the same result.

    Returns:
        ``"sha256=<64 lowercase hex characters>"``
    """
    digest = hmac.new(secret.encode("utf-8"), _payload_bytes(payload), hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify(payload: Payload, signature: str, secret: str) -> bool:
    """
    Check a ``sha256=<hex>`` signature against a payload.

    Malformed headers are rejected before any hashing; the digest comparison
    is constant time.
    """
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False

    provided = signature[len(SIGNATURE_PREFIX):]
    if not _HEX_DIGEST.match(provided):
        return False

    expected = sign(payload, secret)[len(SIGNATURE_PREFIX):]
    return hmac.compare_digest(expected, provided.lower())
