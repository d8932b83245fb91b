import argparse
import os
import sys
import json
import logging
import asyncio
from uvicorn import Config, Server

from ...protocol.config.params import NETWORKS
from ...protocol.fixed_point import parse_units
from ...protocol.types.common import ProtocolError
from ..storage.db import StorageDB
from ..core.assets import TokenLedger
from ..core.engine import StakeMint
from ..automation.keeper import Keeper
from ..rpc import api # import module to set globals

logger = logging.getLogger(__name__)

DEFAULT_CUSTODIAN = "stakemint-custody"

def cmd_init(args):
    """Initialize node: data dir and genesis.json."""
    data_dir = args.datadir
    os.makedirs(data_dir, exist_ok=True)
    genesis_path = os.path.join(data_dir, "genesis.json")

    if os.path.exists(genesis_path):
        print(f"Genesis already exists at {genesis_path}")
        return

    config = NETWORKS[args.network]
    alloc = {}
    for entry in args.alloc or []:
        address, _, amount = entry.partition("=")
        if not address or not amount:
            print(f"Error: invalid --alloc entry {entry!r}, expected ADDRESS=AMOUNT")
            sys.exit(1)
        alloc[address] = str(parse_units(amount, config.stake_decimals))

    genesis_data = {
        "network": args.network,
        "owner": args.owner,
        "custodian": DEFAULT_CUSTODIAN,
        "alloc": alloc,
    }
    with open(genesis_path, "w") as f:
        f.write(json.dumps(genesis_data, indent=2))

    print(f"Node initialized in {data_dir}")
    print(f"Owner: {args.owner}")
    print(f"Allocated {config.stake_symbol} to {len(alloc)} accounts")

def build_engine(data_dir: str) -> StakeMint:
    genesis_path = os.path.join(data_dir, "genesis.json")
    if not os.path.exists(genesis_path):
        raise FileNotFoundError(f"No genesis.json in {data_dir}; run 'init' first")

    with open(genesis_path, "r") as f:
        genesis = json.load(f)

    config = NETWORKS[genesis.get("network", "devnet")]
    custodian = genesis.get("custodian", DEFAULT_CUSTODIAN)

    # Engine and token balances share one store so each operation commits in one batch
    db_path = os.path.join(data_dir, "stakemint.db")
    db = StorageDB(db_path)
    stake_asset = TokenLedger(config.stake_symbol, config.stake_decimals, custodian, db=db)
    reward_asset = TokenLedger(config.reward_symbol, config.reward_decimals, custodian, db=db)

    if not db.get_state("genesis_applied"):
        stake_asset.begin()
        for address, amount in genesis.get("alloc", {}).items():
            stake_asset.mint(address, int(amount))
        db.write_batch(state={**stake_asset.pending_state(), "genesis_applied": "1"})
        stake_asset.mark_persisted()
        stake_asset.release()
        logger.info(f"Applied genesis allocation to {len(genesis.get('alloc', {}))} accounts.")

    return StakeMint(
        db_path,
        stake_asset,
        reward_asset,
        owner=genesis["owner"],
        config=config,
        db=db,
    )

async def run_node_async(args):
    data_dir = args.datadir
    print(f"Starting StakeMint node...")
    print(f"Data dir: {data_dir}")
    print(f"RPC: {args.host}:{args.port}")

    engine = build_engine(data_dir)
    api.engine = engine

    keeper = None
    if not args.no_keeper:
        keeper = Keeper(engine, poll_interval=args.keeper_interval)
        keeper.start()

    config = Config(app=api.app, host=args.host, port=args.port, log_level="info")
    server = Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        pass
    finally:
        if keeper:
            keeper.stop()
        engine.close()

def cmd_run(args):
    try:
        asyncio.run(run_node_async(args))
    except KeyboardInterrupt:
        pass

def cmd_checkpoint(args):
    """Owner-only manual checkpoint against a stopped node's data dir."""
    engine = build_engine(args.datadir)
    try:
        snapshot = engine.manual_checkpoint(args.caller)
        print(f"Snapshot #{snapshot.index} at {snapshot.timestamp} (history {engine.history_length()})")
    except ProtocolError as e:
        print(f"Error: {type(e).__name__}: {e}")
        sys.exit(1)
    finally:
        engine.close()

def main():
    parser = argparse.ArgumentParser(description="StakeMint Node CLI")
    parser.add_argument("--datadir", default="./.stakemint", help="Data directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Init command
    init_parser = subparsers.add_parser("init", help="Initialize node configuration")
    init_parser.add_argument("--owner", required=True, help="Owner identity for admin operations")
    init_parser.add_argument("--network", default="devnet", choices=sorted(NETWORKS), help="Network parameters")
    init_parser.add_argument("--alloc", action="append", help="Initial stake-token balance, ADDRESS=AMOUNT (repeatable)")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run the node")
    run_parser.add_argument("--host", default="0.0.0.0", help="RPC Host")
    run_parser.add_argument("--port", type=int, default=8000, help="RPC Port")
    run_parser.add_argument("--keeper-interval", type=float, default=30.0, help="Keeper poll interval (seconds)")
    run_parser.add_argument("--no-keeper", action="store_true", help="Do not run the checkpoint keeper")

    # Checkpoint command
    cp_parser = subparsers.add_parser("checkpoint", help="Append a snapshot (owner only)")
    cp_parser.add_argument("--caller", required=True, help="Caller identity")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.command == "init":
        cmd_init(args)
    elif args.command == "run":
        cmd_run(args)
    elif args.command == "checkpoint":
        cmd_checkpoint(args)

if __name__ == "__main__":
    main()
