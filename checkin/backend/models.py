"""Domain models for registry results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AdmissionOutcome(str, Enum):
    ADMITTED = "admitted"
    ALREADY_ADMITTED = "already_admitted"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class AdmissionResult:
    outcome: AdmissionOutcome
    message: str
    identifier: str | None = None

    @property
    def admitted(self) -> bool:
        return self.outcome is AdmissionOutcome.ADMITTED


@dataclass(frozen=True)
class IssuedToken:
    identifier: str
    token: str


@dataclass(frozen=True)
class ResetResult:
    success: bool
    message: str
