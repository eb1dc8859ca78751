"""HMAC-SHA256 signing for webhook payloads.

The same primitives sign outbound deliveries and verify callbacks that
third parties send to us (see :mod:`webhook_service.middleware.signature`).
"""
from __future__ import annotations

import hmac
import secrets
from hashlib import sha256

SIGNATURE_PREFIX = "sha256="


def _as_bytes(payload: bytes | str) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else payload


def sign(payload: bytes | str, secret: str) -> str:
    """Hex HMAC-SHA256 of the exact payload bytes."""
    return hmac.new(secret.encode("utf-8"), _as_bytes(payload), sha256).hexdigest()


def format_signature_header(payload: bytes | str, secret: str) -> str:
    return f"{SIGNATURE_PREFIX}{sign(payload, secret)}"


def verify(payload: bytes | str, signature_header: str, secret: str) -> bool:
    """Check a signature header against the payload in constant time.

    Accepts the digest with or without the ``sha256=`` prefix. Malformed
    input yields ``False`` rather than an exception.
    """
    if not isinstance(signature_header, str) or not isinstance(secret, str):
        return False
    if not isinstance(payload, (bytes, bytearray, str)):
        return False
    digest = signature_header
    if digest.startswith(SIGNATURE_PREFIX):
        digest = digest[len(SIGNATURE_PREFIX):]
    try:
        received = digest.encode("ascii")
    except UnicodeEncodeError:
        return False
    if not received:
        return False
    expected = sign(bytes(_as_bytes(payload)), secret).encode("ascii")
    return hmac.compare_digest(received, expected)


def generate_secret(num_bytes: int = 32) -> str:
    """Random hex secret for a new subscription."""
    return secrets.token_hex(num_bytes)
