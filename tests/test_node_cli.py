import argparse
import json
import os
import sqlite3

import pytest

from stakemint.blockchain.cli.node_cli import cmd_init, build_engine

from conftest import USDT, OWNER, USER1


def test_init_and_build_engine(tmp_path):
    datadir = str(tmp_path / "node")
    cmd_init(argparse.Namespace(datadir=datadir, owner=OWNER, network="testnet",
                                alloc=[f"{USER1}=2500"]))

    with open(os.path.join(datadir, "genesis.json")) as f:
        genesis = json.load(f)
    assert genesis["owner"] == OWNER
    assert genesis["alloc"][USER1] == str(2500 * USDT)

    engine = build_engine(datadir)
    try:
        assert engine.owner == OWNER
        assert engine.config.network_id == "testnet"
        assert engine.stake_asset.balance_of(USER1) == 2500 * USDT
        assert engine.history_length() == 1
    finally:
        engine.close()

    # Allocation is applied once across restarts
    engine = build_engine(datadir)
    try:
        assert engine.stake_asset.balance_of(USER1) == 2500 * USDT
        assert engine.history_length() == 1
    finally:
        engine.close()


def test_token_balances_commit_with_engine_state(tmp_path, monkeypatch):
    datadir = str(tmp_path / "node")
    cmd_init(argparse.Namespace(datadir=datadir, owner=OWNER, network="devnet",
                                alloc=[f"{USER1}=5000"]))

    engine = build_engine(datadir)
    try:
        assert engine.stake_asset.db is engine.db
        engine.register(USER1)
        engine.approve(USER1, 2000 * USDT)

        def broken_batch(**kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        with monkeypatch.context() as m:
            m.setattr(engine.db, "write_batch", broken_batch)
            with pytest.raises(sqlite3.OperationalError):
                engine.stake(USER1, 1000 * USDT)

        # Pulled stake is returned along with the ledger rollback
        assert engine.stake_asset.balance_of(USER1) == 5000 * USDT
        engine.stake(USER1, 2000 * USDT)
    finally:
        engine.close()

    engine = build_engine(datadir)
    try:
        staked = engine.get_participant(USER1).staked_amount
        assert staked == 2000 * USDT
        assert engine.stake_asset.balance_of(USER1) + staked == 5000 * USDT
        assert engine.balances(USER1)["stake_allowance"] == 0
    finally:
        engine.close()
