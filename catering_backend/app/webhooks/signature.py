"""HMAC signatures for gateway webhook deliveries."""
from __future__ import annotations

import base64
import hashlib
import hmac


def compute_signature(signature_key: str, raw_body: bytes) -> str:
    """Return base64(HMAC-SHA256(signature_key, raw_body))."""

    digest = hmac.new(signature_key.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(signature_key: str, raw_body: bytes, signature: str) -> bool:
    expected = compute_signature(signature_key, raw_body)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("ascii", "ignore"))


__all__ = ["compute_signature", "verify_signature"]
