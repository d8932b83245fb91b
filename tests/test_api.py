import argparse

import pytest
from fastapi.testclient import TestClient

from stakemint.blockchain.cli.node_cli import cmd_init, build_engine
from stakemint.blockchain.rpc import api

from conftest import USDT, OWNER, USER1, USER2, CUSTODY, HOUR


@pytest.fixture
def client(engine):
    api.engine = engine
    yield TestClient(api.app)
    api.engine = None


def test_status(client):
    resp = client.get("/status")
    assert resp.status_code == 200
    data = resp.json()
    assert data["owner"] == OWNER
    assert data["history_length"] == 1
    assert data["stake_asset"] == "USDT"


def test_not_initialized():
    api.engine = None
    resp = TestClient(api.app).get("/status")
    assert resp.status_code == 503


def test_register_stake_and_query(client, usdt):
    assert client.post("/register", headers={"X-Caller": USER1}).status_code == 200

    usdt.approve(USER1, 1000 * USDT)
    resp = client.post("/stake", json={"amount": 1000 * USDT}, headers={"X-Caller": USER1})
    assert resp.status_code == 200
    assert resp.json()["staked_amount"] == str(1000 * USDT)

    participant = client.get(f"/participants/{USER1}").json()
    assert participant["registered"] is True
    assert participant["staked_amount"] == str(1000 * USDT)

    assert int(client.get(f"/power/{USER1}").json()["power"]) > 0
    assert int(client.get("/power/total").json()["total_power"]) > 0


def test_error_mapping(client, clock, usdt):
    client.post("/register", headers={"X-Caller": USER1})

    resp = client.post("/register", headers={"X-Caller": USER1})
    assert resp.status_code == 409
    assert resp.json()["error"] == "AlreadyRegistered"

    usdt.approve(USER1, 150 * USDT)
    resp = client.post("/stake", json={"amount": 150 * USDT}, headers={"X-Caller": USER1})
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidAmount"

    resp = client.post("/withdraw", headers={"X-Caller": USER1})
    assert resp.status_code == 425
    assert resp.json()["error"] == "TooSoon"

    clock.advance(1)
    resp = client.post("/admin/checkpoint", headers={"X-Caller": USER1})
    assert resp.status_code == 403

    assert client.get(f"/participants/{USER2}").status_code == 404
    assert client.get(f"/rewards/{USER2}").status_code == 404


def test_withdraw_rewards(client, clock, gbc):
    client.post("/register", headers={"X-Caller": USER1})
    clock.advance(25 * HOUR)

    pending = client.get(f"/rewards/{USER1}").json()
    resp = client.post("/withdraw", headers={"X-Caller": USER1})
    assert resp.status_code == 200
    assert resp.json()["reward"] == pending["reward"]
    assert gbc.balance_of(USER1) == int(pending["reward"])


def test_upkeep_and_snapshots(client, clock):
    assert client.get("/upkeep").json()["upkeep_needed"] is False
    assert client.post("/upkeep").status_code == 425

    clock.advance(HOUR)
    assert client.get("/upkeep").json()["upkeep_needed"] is True
    resp = client.post("/upkeep")
    assert resp.status_code == 200
    assert resp.json()["index"] == 1

    latest = client.get("/snapshots/latest").json()
    assert latest["index"] == 1
    recent = client.get("/snapshots/recent", params={"n": 5}).json()
    assert recent["history_length"] == 2
    assert [s["index"] for s in recent["snapshots"]] == [0, 1]


def test_admin_endpoints(client, clock, usdt):
    clock.advance(1)
    resp = client.post("/admin/checkpoint", headers={"X-Caller": OWNER})
    assert resp.status_code == 200

    usdt.mint(CUSTODY, 100 * USDT)
    resp = client.post("/admin/emergency-withdraw", json={"asset": "USDT", "amount": 100 * USDT},
                       headers={"X-Caller": OWNER})
    assert resp.status_code == 200
    assert usdt.balance_of(OWNER) == 100 * USDT

    resp = client.post("/admin/transfer-ownership", json={"new_owner": USER1},
                       headers={"X-Caller": OWNER})
    assert resp.json()["owner"] == USER1


def test_metrics(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "stakemint_snapshot_history_length" in resp.text


@pytest.fixture
def node_client(tmp_path):
    datadir = str(tmp_path / "node")
    cmd_init(argparse.Namespace(datadir=datadir, owner=OWNER, network="devnet",
                                alloc=[f"{USER1}=5000"]))
    node = build_engine(datadir)
    api.engine = node
    yield TestClient(api.app)
    api.engine = None
    node.close()


def test_approve_then_stake_over_http(node_client):
    headers = {"X-Caller": USER1}
    assert node_client.post("/register", headers=headers).status_code == 200

    resp = node_client.post("/stake", json={"amount": 1000 * USDT}, headers=headers)
    assert resp.status_code == 502
    assert resp.json()["error"] == "TransferFailed"

    resp = node_client.post("/approve", json={"amount": 1000 * USDT}, headers=headers)
    assert resp.status_code == 200
    balances = node_client.get(f"/balances/{USER1}").json()
    assert balances["stake_allowance"] == str(1000 * USDT)
    assert balances["stake_balance"] == str(5000 * USDT)

    resp = node_client.post("/stake", json={"amount": 1000 * USDT}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["staked_amount"] == str(1000 * USDT)

    balances = node_client.get(f"/balances/{USER1}").json()
    assert balances["stake_balance"] == str(4000 * USDT)
    assert balances["stake_allowance"] == "0"
    assert balances["reward_balance"] == "0"


def test_approve_rejects_negative(node_client):
    resp = node_client.post("/approve", json={"amount": -1}, headers={"X-Caller": USER1})
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidAmount"
