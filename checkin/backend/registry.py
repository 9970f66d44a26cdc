"""Check-in registry: token issuance, verification and at-most-once admission."""

from __future__ import annotations

from functools import partial
import logging
import threading
from typing import Iterable

from checkin.backend.config import RegistrySettings
from checkin.backend.errors import InvalidIdentifier, PersistenceWriteFailure
from checkin.backend.models import AdmissionOutcome, AdmissionResult, IssuedToken, ResetResult
from checkin.backend.roster import Roster
from checkin.backend.security import derive_token
from checkin.backend.state import MembershipSet
from checkin.backend.store import MembershipStore, create_store, load_with_timeout

logger = logging.getLogger(__name__)

INVALID_CODE_FORMAT_MESSAGE = "Invalid QR code format."
INVALID_CODE_MESSAGE = "Invalid QR code. Please try another."
RESET_MESSAGE = "All check-in data have been reset."


def _require_identifier(identifier: str | None) -> str:
    if identifier is None or not identifier.strip():
        raise InvalidIdentifier()
    return identifier


class CheckInRegistry:
    """Owns the admitted-member set and every mutation of it.

    A single lock covers the check-then-insert of an admission together with
    the synchronous save that follows, so concurrent scans of one member
    admit them exactly once. Token derivation and roster lookups happen
    outside the lock.
    """

    def __init__(
        self,
        store: MembershipStore,
        roster: Roster | None = None,
        token_salt: str = "",
        token_length: int | None = None,
        members: MembershipSet | None = None,
    ) -> None:
        self._store = store
        self._roster = roster
        self._token_length = token_length or None
        self._derive = partial(derive_token, salt=token_salt, length=self._token_length)
        self._members = members if members is not None else MembershipSet()
        self._lock = threading.Lock()

    @property
    def roster(self) -> Roster | None:
        return self._roster

    def issue_token(self, identifier: str) -> IssuedToken:
        identifier = _require_identifier(identifier)
        return IssuedToken(identifier=identifier, token=self._derive(identifier))

    def pre_generated_codes(self, identifiers: Iterable[str]) -> list[IssuedToken]:
        checked = [_require_identifier(identifier) for identifier in identifiers]
        return [IssuedToken(identifier=identifier, token=self._derive(identifier)) for identifier in checked]

    def verify_and_admit(self, presented: str) -> AdmissionResult:
        if not presented or not presented.strip():
            return AdmissionResult(outcome=AdmissionOutcome.NOT_FOUND, message=INVALID_CODE_FORMAT_MESSAGE)

        code = presented.strip()
        identifier = self._resolve_token(code)
        with self._lock:
            if identifier is None and self._is_known_identifier(code):
                identifier = code
            if identifier is None:
                logger.info("Rejected unknown check-in code")
                return AdmissionResult(outcome=AdmissionOutcome.NOT_FOUND, message=INVALID_CODE_MESSAGE)
            return self._admit_locked(identifier, welcome=f"Check-in for {identifier} successful. Welcome!")

    def admit_by_id(self, identifier: str) -> AdmissionResult:
        identifier = _require_identifier(identifier)
        with self._lock:
            return self._admit_locked(identifier, welcome=f"Successfully checked in {identifier}.")

    def list_admitted(self) -> list[str]:
        with self._lock:
            return self._members.list()

    def admitted_count(self) -> int:
        with self._lock:
            return len(self._members)

    def reset(self) -> ResetResult:
        with self._lock:
            cleared = len(self._members)
            self._members.clear()
            self._checkpoint()
        logger.info("Reset check-in registry, cleared %d admissions", cleared)
        return ResetResult(success=True, message=RESET_MESSAGE)

    def _resolve_token(self, token: str) -> str | None:
        if self._roster is None:
            return None
        if self._token_length:
            token = token.upper()
        return self._roster.resolve(token, self._derive)

    def _is_known_identifier(self, identifier: str) -> bool:
        if self._members.contains(identifier):
            return True
        return self._roster is not None and identifier in self._roster

    def _admit_locked(self, identifier: str, welcome: str) -> AdmissionResult:
        if not self._members.add(identifier):
            return AdmissionResult(
                outcome=AdmissionOutcome.ALREADY_ADMITTED,
                message=f"Member {identifier} has already been checked in.",
                identifier=identifier,
            )
        self._checkpoint()
        logger.info("Checked in %s", identifier)
        return AdmissionResult(outcome=AdmissionOutcome.ADMITTED, message=welcome, identifier=identifier)

    def _checkpoint(self) -> None:
        try:
            self._store.save(self._members)
        except PersistenceWriteFailure:
            logger.exception("Check-in state was updated in memory but could not be persisted")


def open_registry(settings: RegistrySettings, store: MembershipStore | None = None) -> CheckInRegistry:
    """Build a registry from settings and load its persisted admissions."""
    if store is None:
        store = create_store(database_url=settings.database_url, state_path=settings.state_path)
    roster = Roster.sequential(settings.roster_prefix, settings.roster_size) if settings.roster_size > 0 else None
    members = load_with_timeout(store, timeout_s=settings.load_timeout_s)
    logger.info("Loaded %d admitted members from %s", len(members), type(store).__name__)
    return CheckInRegistry(
        store=store,
        roster=roster,
        token_salt=settings.token_salt,
        token_length=settings.token_length,
        members=members,
    )
