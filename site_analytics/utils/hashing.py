from __future__ import annotations

import hashlib

FINGERPRINT_LENGTH = 16


def hash_value(value: str, salt: str) -> str:
    """Salted SHA-256 fingerprint, truncated to 16 hex chars.

    Used for session ids and user agents so rows stay joinable per session
    without storing the raw value.
    """
    blob = value + salt
    return hashlib.sha256(blob.encode("utf-8", errors="replace")).hexdigest()[:FINGERPRINT_LENGTH]
