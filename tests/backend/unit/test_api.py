from concurrent.futures import ThreadPoolExecutor
import threading

import pytest

fastapi = pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from checkin.backend.api import create_app
from checkin.backend.registry import CheckInRegistry
from checkin.backend.roster import Roster
from checkin.backend.state import MembershipSet
from checkin.backend.store import InMemoryMembershipStore


def _client() -> TestClient:
    registry = CheckInRegistry(store=InMemoryMembershipStore(), roster=Roster.sequential("member-", 100))
    return TestClient(create_app(registry=registry))


def test_post_tokens_returns_deterministic_token() -> None:
    client = _client()

    first = client.post("/api/tokens", json={"identifier": "member-42"})
    second = client.post("/api/tokens", json={"identifier": "member-42"})

    assert first.status_code == 200
    assert first.json()["identifier"] == "member-42"
    assert first.json()["token"] == second.json()["token"]


def test_post_tokens_rejects_empty_identifier() -> None:
    response = _client().post("/api/tokens", json={"identifier": ""})

    assert response.status_code == 400
    assert response.json()["detail"] == "Member ID cannot be empty."


def test_batch_tokens_returns_code_per_identifier() -> None:
    response = _client().post("/api/tokens/batch", json={"identifiers": ["member-1", "member-2"]})

    assert response.status_code == 200
    codes = response.json()["codes"]
    assert [code["identifier"] for code in codes] == ["member-1", "member-2"]
    assert codes[0]["token"] != codes[1]["token"]


def test_verify_admits_once_and_lists_member() -> None:
    client = _client()
    token = client.post("/api/tokens", json={"identifier": "member-42"}).json()["token"]

    first = client.post("/api/checkins/verify", json={"code": token})
    second = client.post("/api/checkins/verify", json={"code": token})
    listing = client.get("/api/checkins")

    assert first.status_code == 200
    assert first.json()["admitted"] is True
    assert "member-42" in first.json()["message"]
    assert second.json()["admitted"] is False
    assert second.json()["outcome"] == "already_admitted"
    assert "already" in second.json()["message"]
    assert listing.json() == {"admitted": ["member-42"], "count": 1}


def test_verify_invalid_code_is_a_negative_outcome_not_an_error() -> None:
    response = _client().post("/api/checkins/verify", json={"code": "not-a-real-code"})

    assert response.status_code == 200
    assert response.json()["admitted"] is False
    assert response.json()["outcome"] == "not_found"
    assert "Invalid" in response.json()["message"]


def test_manual_check_in_accepts_any_identifier_and_rejects_empty() -> None:
    client = _client()

    admitted = client.post("/api/checkins/manual", json={"identifier": "walk-in"})
    rejected = client.post("/api/checkins/manual", json={"identifier": ""})

    assert admitted.json()["admitted"] is True
    assert admitted.json()["identifier"] == "walk-in"
    assert rejected.status_code == 400


def test_reset_clears_list() -> None:
    client = _client()
    client.post("/api/checkins/manual", json={"identifier": "member-1"})

    response = client.post("/api/reset")

    assert response.json()["success"] is True
    assert client.get("/api/checkins").json() == {"admitted": [], "count": 0}


def test_websocket_sends_admitted_list_after_connect() -> None:
    client = _client()
    client.post("/api/checkins/manual", json={"identifier": "member-3"})

    with client.websocket_connect("/ws/checkins") as websocket:
        message = websocket.receive_json()

    assert message == {"type": "checkins.full", "admitted": ["member-3"]}


def test_websocket_broadcasts_admissions_to_all_clients() -> None:
    registry = CheckInRegistry(store=InMemoryMembershipStore(), roster=Roster.sequential("member-", 10))
    app = create_app(registry=registry)

    with TestClient(app) as client:
        with client.websocket_connect("/ws/checkins") as ws_door:
            with client.websocket_connect("/ws/checkins") as ws_desk:
                ws_door.receive_json()
                ws_desk.receive_json()

                client.post("/api/checkins/verify", json={"code": "member-4"})

                door_message = ws_door.receive_json()
                desk_message = ws_desk.receive_json()

    assert door_message["admitted"] == ["member-4"]
    assert desk_message["admitted"] == ["member-4"]


class _BlockingStore(InMemoryMembershipStore):
    def __post_init__(self) -> None:
        super().__post_init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def save(self, members: MembershipSet) -> None:
        self.entered.set()
        self.release.wait(timeout=10)
        super().save(members)


def test_slow_save_does_not_block_other_requests() -> None:
    store = _BlockingStore()
    registry = CheckInRegistry(store=store, roster=Roster.sequential("member-", 10))

    with TestClient(create_app(registry=registry)) as client:
        with ThreadPoolExecutor(max_workers=2) as pool:
            try:
                check_in = pool.submit(client.post, "/api/checkins/manual", json={"identifier": "member-1"})
                assert store.entered.wait(timeout=5)

                issued = pool.submit(client.post, "/api/tokens", json={"identifier": "member-2"})
                token_response = issued.result(timeout=3)
            finally:
                store.release.set()
            check_in_response = check_in.result(timeout=5)

    assert token_response.status_code == 200
    assert check_in_response.json()["admitted"] is True
    assert store.document["admitted"] == ["member-1"]
