# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import sys
import json
import requests
import os
from ..protocol.config.params import CURRENT_NETWORK, REWARD_DECIMALS
from ..protocol.fixed_point import parse_units, format_units

DEFAULT_NODE = "http://localhost:8000"

def get_node_url(args):
    return args.node or os.environ.get("STAKEMINT_NODE", DEFAULT_NODE)

def get_caller(args):
    caller = args.caller or os.environ.get("STAKEMINT_CALLER")
    if not caller:
        print("Error: --from or STAKEMINT_CALLER required")
        sys.exit(1)
    return caller

def request(method, args, path, body=None, caller=None):
    url = f"{get_node_url(args)}{path}"
    headers = {"X-Caller": caller} if caller else {}
    try:
        resp = requests.request(method, url, json=body, headers=headers, timeout=10)
    except requests.RequestException as e:
        print(f"Error: node unreachable at {url}: {e}")
        sys.exit(1)
    if resp.status_code != 200:
        try:
            data = resp.json()
            print(f"Error: {data.get('error', resp.status_code)}: {data.get('detail')}")
        except ValueError:
            print(f"Error: {resp.text}")
        sys.exit(1)
    return resp.json()

def fmt_stake(amount):
    return f"{format_units(int(amount), CURRENT_NETWORK.stake_decimals)} {CURRENT_NETWORK.stake_symbol}"

def fmt_reward(amount):
    return f"{format_units(int(amount), REWARD_DECIMALS)} {CURRENT_NETWORK.reward_symbol}"

def fmt_power(power):
    return format_units(int(power), REWARD_DECIMALS)

def to_stake_units(amount):
    try:
        return parse_units(amount, CURRENT_NETWORK.stake_decimals)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

# --- Participant Commands ---
def cmd_register(args):
    data = request("POST", args, "/register", caller=get_caller(args))
    print(f"Registered {data['address']} at {data['registered_at']}")

def cmd_approve(args):
    data = request("POST", args, "/approve", {"amount": to_stake_units(args.amount)}, get_caller(args))
    print(f"Approved {fmt_stake(data['allowance'])} for staking")

def cmd_stake(args):
    data = request("POST", args, "/stake", {"amount": to_stake_units(args.amount)}, get_caller(args))
    print(f"Staked. Total: {fmt_stake(data['staked_amount'])}")

def cmd_unstake(args):
    data = request("POST", args, "/unstake", {"amount": to_stake_units(args.amount)}, get_caller(args))
    print(f"Unstaked. Remaining: {fmt_stake(data['staked_amount'])}")

def cmd_withdraw(args):
    data = request("POST", args, "/withdraw", caller=get_caller(args))
    print(f"Withdrew {fmt_reward(data['reward'])} (power {fmt_power(data['power'])})")

# --- Query Commands ---
def cmd_query_participant(args):
    data = request("GET", args, f"/participants/{args.address}")
    data["staked_amount"] = fmt_stake(data["staked_amount"])
    print(json.dumps(data, indent=2))

def cmd_query_balance(args):
    data = request("GET", args, f"/balances/{args.address}")
    print(f"{CURRENT_NETWORK.stake_symbol}: {fmt_stake(data['stake_balance'] or 0)}"
          f" (approved {fmt_stake(data['stake_allowance'] or 0)})")
    print(f"{CURRENT_NETWORK.reward_symbol}: {fmt_reward(data['reward_balance'] or 0)}")

def cmd_query_power(args):
    if args.address:
        data = request("GET", args, f"/power/{args.address}")
        print(f"Power: {fmt_power(data['power'])}")
    else:
        data = request("GET", args, "/power/total")
        print(f"Total power: {fmt_power(data['total_power'])}")

def cmd_query_rewards(args):
    data = request("GET", args, f"/rewards/{args.address}")
    print(f"Pending: {fmt_reward(data['reward'])}")
    print(f"Power:   {fmt_power(data['power'])}")

def cmd_query_snapshots(args):
    data = request("GET", args, f"/snapshots/recent?n={args.n}")
    print(f"History length: {data['history_length']}")
    print(f"{'#':<6} {'Timestamp':<12} {'Power':<14} {'Staked':<20} {'Count':<6}")
    print("-" * 62)
    for s in data["snapshots"]:
        print(f"{s['index']:<6} {s['timestamp']:<12} {fmt_power(s['total_power']):<14} "
              f"{fmt_stake(s['total_staked']):<20} {s['participant_count']:<6}")

# --- Automation / Admin Commands ---
def cmd_upkeep(args):
    if args.perform:
        data = request("POST", args, "/upkeep")
        print(f"Snapshot #{data['index']} at {data['timestamp']}")
    else:
        data = request("GET", args, "/upkeep")
        print(f"Upkeep needed: {data['upkeep_needed']}")

def cmd_admin_checkpoint(args):
    data = request("POST", args, "/admin/checkpoint", caller=get_caller(args))
    print(f"Snapshot #{data['index']} at {data['timestamp']}")

def cmd_admin_emergency_withdraw(args):
    body = {"asset": args.asset, "amount": int(args.amount)}
    data = request("POST", args, "/admin/emergency-withdraw", body, get_caller(args))
    print(f"Sent {data['amount']} {data['asset']} to {data['recipient']}")

def cmd_admin_transfer_ownership(args):
    data = request("POST", args, "/admin/transfer-ownership", {"new_owner": args.new_owner}, get_caller(args))
    print(f"Owner: {data['owner']}")

def main():
    parser = argparse.ArgumentParser(description="StakeMint CLI")
    parser.add_argument("--node", help="Node RPC URL")
    parser.add_argument("--from", dest="caller", help="Caller identity")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("register", help="Start mining").set_defaults(func=cmd_register)

    p = subparsers.add_parser("approve", help=f"Allow the node to pull {CURRENT_NETWORK.stake_symbol} for staking")
    p.add_argument("amount", help="Whole-token amount")
    p.set_defaults(func=cmd_approve)

    p = subparsers.add_parser("stake", help=f"Stake {CURRENT_NETWORK.stake_symbol}")
    p.add_argument("amount", help="Whole-token amount, multiple of the stake unit")
    p.set_defaults(func=cmd_stake)

    p = subparsers.add_parser("unstake", help=f"Withdraw staked {CURRENT_NETWORK.stake_symbol}")
    p.add_argument("amount")
    p.set_defaults(func=cmd_unstake)

    subparsers.add_parser("withdraw", help="Withdraw pending rewards").set_defaults(func=cmd_withdraw)

    # Query
    query = subparsers.add_parser("query", help="Read-only queries")
    query_sub = query.add_subparsers(dest="query_command", required=True)

    p = query_sub.add_parser("participant")
    p.add_argument("address")
    p.set_defaults(func=cmd_query_participant)

    p = query_sub.add_parser("balance", help="Token balances and staking allowance")
    p.add_argument("address")
    p.set_defaults(func=cmd_query_balance)

    p = query_sub.add_parser("power", help="Participant power, or network total if no address")
    p.add_argument("address", nargs="?")
    p.set_defaults(func=cmd_query_power)

    p = query_sub.add_parser("rewards")
    p.add_argument("address")
    p.set_defaults(func=cmd_query_rewards)

    p = query_sub.add_parser("snapshots")
    p.add_argument("-n", type=int, default=10)
    p.set_defaults(func=cmd_query_snapshots)

    p = subparsers.add_parser("upkeep", help="Check (or perform) a scheduled checkpoint")
    p.add_argument("--perform", action="store_true")
    p.set_defaults(func=cmd_upkeep)

    # Admin
    admin = subparsers.add_parser("admin", help="Owner-only commands")
    admin_sub = admin.add_subparsers(dest="admin_command", required=True)

    admin_sub.add_parser("checkpoint").set_defaults(func=cmd_admin_checkpoint)

    p = admin_sub.add_parser("emergency-withdraw")
    p.add_argument("asset")
    p.add_argument("amount", help="Smallest units")
    p.set_defaults(func=cmd_admin_emergency_withdraw)

    p = admin_sub.add_parser("transfer-ownership")
    p.add_argument("new_owner")
    p.set_defaults(func=cmd_admin_transfer_ownership)

    args = parser.parse_args()
    args.func(args)

if __name__ == "__main__":
    main()
