"""Token derivation for attendee check-in codes."""

from __future__ import annotations

import hashlib


def derive_token(identifier: str, salt: str = "", length: int | None = None) -> str:
    """Derive the deterministic check-in token via sha256(identifier + salt).

    The full token is the 64 character hex digest. With ``length`` set the
    token is the uppercased hex prefix of that size, short enough to type by
    hand when a scanner is not available.
    """
    payload = f"{identifier}{salt}".encode("utf-8")
    digest = hashlib.sha256(payload).hexdigest()
    if length:
        return digest[:length].upper()
    return digest
