"""Persistence interfaces and implementations for check-in state."""

from __future__ import annotations

from concurrent import futures
from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any, Protocol

from checkin.backend.errors import PersistenceLoadFailure, PersistenceWriteFailure
from checkin.backend.state import MembershipSet, build_state_document, parse_state_document

logger = logging.getLogger(__name__)

STATE_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS checkin_state (
    id SMALLINT PRIMARY KEY,
    state_json JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
)
"""


class MembershipStore(Protocol):
    def load(self) -> MembershipSet:
        """Return the persisted membership set, empty when nothing was saved yet.

        Raises PersistenceLoadFailure when the stored state is unreadable.
        """

    def save(self, members: MembershipSet) -> None:
        """Persist the full membership set, replacing the previous record.

        Raises PersistenceWriteFailure when the write did not happen.
        """


@dataclass
class InMemoryMembershipStore:
    def __post_init__(self) -> None:
        self.document: dict[str, Any] | None = None

    def load(self) -> MembershipSet:
        if self.document is None:
            return MembershipSet()
        try:
            return parse_state_document(self.document)
        except (ValueError, TypeError) as exc:
            raise PersistenceLoadFailure(f"Stored check-in state is malformed: {exc}") from exc

    def save(self, members: MembershipSet) -> None:
        self.document = build_state_document(members)


@dataclass
class JsonFileMembershipStore:
    path: Path

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def load(self) -> MembershipSet:
        if not self.path.exists():
            logger.info("No check-in state at %s, starting empty", self.path)
            return MembershipSet()
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            return parse_state_document(payload)
        except (OSError, ValueError, TypeError) as exc:
            raise PersistenceLoadFailure(f"Could not read check-in state from {self.path}: {exc}") from exc

    def save(self, members: MembershipSet) -> None:
        document = build_state_document(members)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                json.dump(document, handle, indent=2)
                handle.write("\n")
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceWriteFailure(f"Could not write check-in state to {self.path}: {exc}") from exc


@dataclass
class PostgresMembershipStore:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def ensure_schema(self) -> None:
        """Create the single-row state table when it does not exist yet."""
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(STATE_TABLE_DDL)
                conn.commit()
        except Exception as exc:
            raise PersistenceWriteFailure(f"Could not create check-in state table: {exc}") from exc

    def load(self) -> MembershipSet:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT state_json FROM checkin_state WHERE id = %s", (1,))
                    row = cur.fetchone()
        except Exception as exc:
            raise PersistenceLoadFailure(f"Could not read check-in state from database: {exc}") from exc

        if row is None:
            return MembershipSet()

        (state_json,) = row
        try:
            payload = state_json if isinstance(state_json, dict) else json.loads(state_json)
            return parse_state_document(payload)
        except (ValueError, TypeError) as exc:
            raise PersistenceLoadFailure(f"Stored check-in state is malformed: {exc}") from exc

    def save(self, members: MembershipSet) -> None:
        document = build_state_document(members)
        now = datetime.now(timezone.utc)
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO checkin_state (id, state_json, updated_at)
                        VALUES (%s, %s::jsonb, %s)
                        ON CONFLICT (id) DO UPDATE
                        SET state_json = EXCLUDED.state_json, updated_at = EXCLUDED.updated_at
                        """,
                        (1, json.dumps(document), now),
                    )
                conn.commit()
        except Exception as exc:
            raise PersistenceWriteFailure(f"Could not write check-in state to database: {exc}") from exc


def create_store(database_url: str | None, state_path: str | None) -> MembershipStore:
    if database_url:
        return PostgresMembershipStore(database_url=database_url)
    if state_path:
        return JsonFileMembershipStore(path=Path(state_path))
    return InMemoryMembershipStore()


def load_with_timeout(store: MembershipStore, timeout_s: float) -> MembershipSet:
    """Load persisted state, falling back to an empty set on failure or timeout."""
    executor = futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="checkin-load")
    future = executor.submit(store.load)
    try:
        return future.result(timeout=timeout_s)
    except futures.TimeoutError:
        logger.warning("Loading check-in state timed out after %.1fs, starting empty", timeout_s)
        return MembershipSet()
    except PersistenceLoadFailure as exc:
        logger.warning("%s; starting empty", exc)
        return MembershipSet()
    finally:
        executor.shutdown(wait=False)
