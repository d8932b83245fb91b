# MIT License
# Copyright (c) 2025 Hashborn

import os
from typing import Dict

# Global Constants
STAKE_DECIMALS = 6
REWARD_DECIMALS = 18
ZERO_ADDRESS = "0x" + "0" * 40

HOUR = 3600
DAY = 24 * HOUR


class NetworkConfig:
    def __init__(self,
                 network_id: str,
                 stake_symbol: str = "USDT",
                 stake_decimals: int = STAKE_DECIMALS,
                 reward_symbol: str = "GBC",
                 reward_decimals: int = REWARD_DECIMALS,
                 # Every stake must be an exact multiple of this many smallest units
                 stake_unit: int = 100 * 10**STAKE_DECIMALS,
                 # Snapshot ledger gate
                 min_checkpoint_interval: int = HOUR,
                 # Reward claim cooldown
                 min_claim_interval: int = DAY,
                 null_identity: str = ZERO_ADDRESS):
        self.network_id = network_id
        self.stake_symbol = stake_symbol
        self.stake_decimals = stake_decimals
        self.reward_symbol = reward_symbol
        self.reward_decimals = reward_decimals
        self.stake_unit = stake_unit
        self.min_checkpoint_interval = min_checkpoint_interval
        self.min_claim_interval = min_claim_interval
        self.null_identity = null_identity

NETWORKS: Dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        network_id="devnet",
    ),
    "testnet": NetworkConfig(
        network_id="testnet",
        min_checkpoint_interval=10 * 60,
        min_claim_interval=HOUR,
    ),
    "mainnet": NetworkConfig(
        network_id="mainnet",
    ),
}

CURRENT_NETWORK = NETWORKS[os.environ.get("STAKEMINT_NETWORK", "devnet")]
