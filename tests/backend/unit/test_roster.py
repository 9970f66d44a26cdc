from concurrent.futures import ThreadPoolExecutor
from functools import partial

from checkin.backend.roster import Roster
from checkin.backend.security import derive_token


def test_sequential_roster_enumerates_prefixed_identifiers() -> None:
    roster = Roster.sequential("member-", 3)

    assert roster.identifiers == ("member-1", "member-2", "member-3")
    assert "member-2" in roster
    assert "member-4" not in roster
    assert len(roster) == 3


def test_roster_drops_duplicates_and_empty_identifiers() -> None:
    roster = Roster(["a", "", "b", "a"])

    assert roster.identifiers == ("a", "b")


def test_resolve_finds_identifier_for_token() -> None:
    roster = Roster.sequential("member-", 100)

    assert roster.resolve(derive_token("member-42"), derive_token) == "member-42"
    assert roster.resolve("not-a-real-code", derive_token) is None


def test_resolve_builds_token_index_once_per_deriver() -> None:
    calls: list[str] = []

    def counting_derive(identifier: str) -> str:
        calls.append(identifier)
        return derive_token(identifier)

    roster = Roster(["x", "y"])
    roster.resolve(derive_token("x"), counting_derive)
    roster.resolve(derive_token("y"), counting_derive)

    assert calls == ["x", "y"]


def test_shared_roster_keeps_separate_index_per_salt() -> None:
    roster = Roster.sequential("member-", 50)
    derive_a = partial(derive_token, salt="hall-a")
    derive_b = partial(derive_token, salt="hall-b")

    def lookup(number: int) -> tuple[str | None, str | None]:
        identifier = f"member-{number}"
        return (
            roster.resolve(derive_a(identifier), derive_a),
            roster.resolve(derive_b(identifier), derive_b),
        )

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lookup, [n % 50 + 1 for n in range(200)]))

    assert all(found_a == found_b and found_a is not None for found_a, found_b in results)
    assert roster.resolve(derive_a("member-1"), derive_b) is None
