import pytest
from fastapi.testclient import TestClient

from main import app
from services.call_registry import CallRegistry

CALLER = "caller-1"
HOST = "host-1"


@pytest.fixture
def registry(manager_factory):
    return CallRegistry(manager_factory)


@pytest.fixture
def client(registry, call_records, transactions):
    app.state.call_registry = registry
    app.state.call_record_store = call_records
    app.state.transaction_log = transactions
    return TestClient(app)


def validate(client, is_video=False, caller_id=CALLER):
    return client.post("/user/call/validate", json={"caller_id": caller_id, "host_id": HOST, "is_video": is_video})


def start(client, is_video=False):
    return client.post(
        "/user/call/start",
        json={"caller_id": CALLER, "host_id": HOST, "call_id": "call-1", "is_video": is_video},
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_validate_call(client):
    response = validate(client)
    body = response.json()

    assert response.status_code == 200
    assert body["success"] is True
    assert body["data"]["valid"] is True
    assert body["data"]["max_duration"] == 1200
    assert body["data"]["pricing"]["video_cost_per_minute"] == 15


def test_validate_call_insufficient_balance(client, wallets, registry):
    wallets.balances[CALLER] = 5
    response = validate(client)
    body = response.json()

    assert response.status_code == 400
    assert body["success"] is False
    assert "10 coins" in body["message"]
    assert len(registry) == 0


def test_validate_rejected_while_call_in_progress(client):
    validate(client)
    start(client)
    response = validate(client, is_video=True)
    body = response.json()

    assert response.status_code == 409
    assert body == {
        "message": "A call is already in progress",
        "data": {"caller_id": CALLER},
        "success": False,
        "status_code": 409,
    }


def test_snapshot_before_start_is_rejected(client):
    validate(client)
    response = client.get("/user/call/snapshot", params={"caller_id": CALLER})

    assert response.status_code == 400
    assert response.json()["message"] == "Call has not started"
    assert response.json()["success"] is False


def test_start_with_other_type_than_validated(client):
    validate(client)
    response = start(client, is_video=True)

    assert response.status_code == 400
    assert response.json()["message"] == "Call type does not match the validated call"


def test_start_without_validation_is_not_found(client):
    response = start(client)
    assert response.status_code == 404
    assert response.json()["message"] == "No active call found"


def test_request_validation_error(client):
    response = client.post("/user/call/start", json={"caller_id": CALLER})
    body = response.json()
    assert response.status_code == 422
    assert "call_id" in body["data"]["errors"]


def test_full_call_flow(client, clock, wallets, transactions, registry):
    assert validate(client).status_code == 200
    started = start(client).json()
    assert started["data"]["call_type"] == "audio"
    assert started["data"]["coins_remaining"] == 200

    clock.advance(90)
    switched = client.post("/user/call/switch-type", json={"caller_id": CALLER, "is_video": True}).json()
    assert switched["data"]["call_type"] == "video"
    assert switched["data"]["coins_deducted"] == 20

    clock.advance(60)
    snapshot = client.get("/user/call/snapshot", params={"caller_id": CALLER}).json()
    assert snapshot["data"]["snapshot"]["audio_seconds"] == 90
    assert snapshot["data"]["snapshot"]["video_seconds"] == 60
    assert snapshot["data"]["coins_debited"] == 20

    clock.advance(60)
    ended = client.post("/user/call/end", json={"caller_id": CALLER})
    body = ended.json()

    assert ended.status_code == 200
    assert body["message"] == "Call ended. 45 coins spent."
    assert body["data"]["coins_spent"] == 45
    assert wallets.balances[CALLER] == 155
    assert len(transactions.transactions) == 1
    assert len(registry) == 0

    assert client.get("/user/call/snapshot", params={"caller_id": CALLER}).status_code == 404


def test_tick_ends_call_when_out_of_coins(client, clock, wallets):
    wallets.balances[CALLER] = 10
    validate(client)
    start(client)

    clock.advance(30)
    body = client.post("/user/call/tick", json={"caller_id": CALLER}).json()
    assert body["message"] == "Call can continue"
    assert body["data"]["continue_call"] is True
    assert body["data"]["tick"]["is_low_balance"] is True

    clock.advance(30)
    body = client.post("/user/call/tick", json={"caller_id": CALLER}).json()
    assert body["message"] == "Call ended: Out of coins"
    assert body["data"]["continue_call"] is False
    assert body["data"]["end"]["end_reason"] == "timeout"


def test_connectivity_report_while_connected(client):
    validate(client)
    start(client)
    response = client.post("/user/call/connectivity", json={"caller_id": CALLER, "is_connected": True})
    body = response.json()

    assert response.status_code == 200
    assert body["data"]["continue_call"] is True
    assert body["data"]["connection"] == {"is_connected": True, "reconnect_time_remaining": 0}


def test_end_with_wallet_failure_reports_error(client, clock, wallets):
    validate(client)
    start(client)
    clock.advance(30)
    wallets.fail_adjust = True

    response = client.post("/user/call/end", json={"caller_id": CALLER})
    assert response.status_code == 500
    assert response.json()["message"] == "Call ended, but billing confirmation failed."


def test_call_history(client, clock):
    validate(client)
    start(client)
    clock.advance(30)
    client.post("/user/call/end", json={"caller_id": CALLER})

    body = client.get("/user/call/history", params={"caller_id": CALLER, "page": 1}).json()
    calls = body["data"]["calls"]
    assert len(calls) == 1
    assert calls[0]["call_id"] == "call-1"
    assert calls[0]["coins_spent"] == 5
    assert body["data"]["page"] == 1


def test_history_page_size_is_bounded(client):
    response = client.get("/user/call/history", params={"caller_id": CALLER, "page_size": 500})
    assert response.status_code == 422


def test_transaction_history(client):
    body = client.get("/user/call/transactions", params={"caller_id": CALLER}).json()
    assert body["success"] is True
    assert body["data"]["history"] == []
