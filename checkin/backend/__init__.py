"""Backend package for the check-in registry."""

from .config import RegistrySettings, load_settings
from .errors import InvalidIdentifier, PersistenceLoadFailure, PersistenceWriteFailure, RegistryError
from .models import AdmissionOutcome, AdmissionResult, IssuedToken, ResetResult
from .registry import CheckInRegistry, open_registry
from .roster import Roster
from .security import derive_token
from .state import MembershipSet
from .store import (
    InMemoryMembershipStore,
    JsonFileMembershipStore,
    MembershipStore,
    PostgresMembershipStore,
    create_store,
    load_with_timeout,
)

__all__ = [
    "AdmissionOutcome",
    "AdmissionResult",
    "CheckInRegistry",
    "create_store",
    "derive_token",
    "InMemoryMembershipStore",
    "InvalidIdentifier",
    "IssuedToken",
    "JsonFileMembershipStore",
    "load_settings",
    "load_with_timeout",
    "MembershipSet",
    "MembershipStore",
    "open_registry",
    "PersistenceLoadFailure",
    "PersistenceWriteFailure",
    "PostgresMembershipStore",
    "RegistryError",
    "RegistrySettings",
    "ResetResult",
    "Roster",
]
