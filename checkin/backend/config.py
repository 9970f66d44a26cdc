"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class RegistrySettings:
    token_salt: str
    token_length: int | None
    state_path: str | None
    database_url: str | None
    roster_prefix: str
    roster_size: int
    load_timeout_s: float
    host: str
    port: int


def load_settings() -> RegistrySettings:
    token_length = int(os.getenv("CHECKIN_TOKEN_LENGTH", "0"))
    if not 0 <= token_length <= 64:
        raise ValueError(f"CHECKIN_TOKEN_LENGTH must be between 0 and 64, got {token_length}")
    return RegistrySettings(
        token_salt=os.getenv("CHECKIN_TOKEN_SALT", ""),
        token_length=token_length or None,
        state_path=os.getenv("CHECKIN_STATE_PATH", "checkin_state.json") or None,
        database_url=os.getenv("CHECKIN_DATABASE_URL") or None,
        roster_prefix=os.getenv("CHECKIN_ROSTER_PREFIX", "member-"),
        roster_size=int(os.getenv("CHECKIN_ROSTER_SIZE", "5000")),
        load_timeout_s=float(os.getenv("CHECKIN_LOAD_TIMEOUT", "5.0")),
        host=os.getenv("CHECKIN_HOST", "127.0.0.1"),
        port=int(os.getenv("CHECKIN_PORT", "8000")),
    )
