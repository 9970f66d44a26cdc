"""Error taxonomy for the check-in registry."""

from __future__ import annotations


class RegistryError(Exception):
    """Base class for registry failures."""


class InvalidIdentifier(RegistryError, ValueError):
    """Raised for empty or malformed member identifiers before state is touched."""

    def __init__(self, reason: str = "Member ID cannot be empty.") -> None:
        super().__init__(reason)
        self.reason = reason


class PersistenceError(RegistryError):
    """Durable store could not be read or written."""


class PersistenceLoadFailure(PersistenceError):
    """Raised when stored check-in state cannot be read or parsed."""


class PersistenceWriteFailure(PersistenceError):
    """Raised when check-in state could not be written."""
