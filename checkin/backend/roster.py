"""Candidate identifiers used to resolve scanned tokens back to members."""

from __future__ import annotations

import threading
from typing import Callable, Iterable

TokenDeriver = Callable[[str], str]


class Roster:
    """A fixed set of pre-registered member identifiers.

    Token indexes are built on first lookup and kept per deriver, so one
    roster can serve registries with different salts.
    """

    def __init__(self, identifiers: Iterable[str]) -> None:
        self._identifiers: tuple[str, ...] = tuple(dict.fromkeys(item for item in identifiers if item))
        self._members = frozenset(self._identifiers)
        self._indexes: dict[TokenDeriver, dict[str, str]] = {}
        self._index_lock = threading.Lock()

    @classmethod
    def sequential(cls, prefix: str, size: int) -> "Roster":
        return cls(f"{prefix}{number}" for number in range(1, size + 1))

    @property
    def identifiers(self) -> tuple[str, ...]:
        return self._identifiers

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._members

    def __len__(self) -> int:
        return len(self._identifiers)

    def token_index(self, derive: TokenDeriver) -> dict[str, str]:
        with self._index_lock:
            index = self._indexes.get(derive)
            if index is None:
                index = {derive(identifier): identifier for identifier in self._identifiers}
                self._indexes[derive] = index
            return index

    def resolve(self, token: str, derive: TokenDeriver) -> str | None:
        return self.token_index(derive).get(token)
