"""Membership set and its persisted document form."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Iterator

STATE_FORMAT_VERSION = 1


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MembershipSet:
    """Identifiers of admitted members.

    Not synchronized; the owning registry serializes access.
    """

    def __init__(self, members: Iterable[str] = ()) -> None:
        self._members: set[str] = set(members)

    def contains(self, identifier: str) -> bool:
        return identifier in self._members

    def add(self, identifier: str) -> bool:
        """Insert ``identifier`` and report whether it was new."""
        if identifier in self._members:
            return False
        self._members.add(identifier)
        return True

    def clear(self) -> None:
        self._members.clear()

    def list(self) -> list[str]:
        return sorted(self._members)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._members

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[str]:
        return iter(self.list())


def build_state_document(members: MembershipSet) -> dict[str, Any]:
    """Return the persisted document; identifiers are sorted for stable diffs."""
    return {
        "version": STATE_FORMAT_VERSION,
        "admitted": members.list(),
        "updatedAt": _utc_now_iso(),
    }


def parse_state_document(payload: Any) -> MembershipSet:
    if not isinstance(payload, dict):
        raise TypeError(f"state document must be an object, got {type(payload).__name__}")
    version = payload.get("version", STATE_FORMAT_VERSION)
    if version != STATE_FORMAT_VERSION:
        raise ValueError(f"unsupported state format version: {version!r}")
    admitted = payload.get("admitted", [])
    if not isinstance(admitted, list) or not all(isinstance(item, str) and item for item in admitted):
        raise ValueError("state document field 'admitted' must be a list of non-empty strings")
    return MembershipSet(admitted)
