# MIT License
# Copyright (c) 2025 Hashborn

"""
StakeMint Economic Model
Single source of truth for power and emission parameters.

Power:    base_power + (staked // stake_unit) * stake_unit_power
Emission: emission_rate_per_second reward units per second, shared
          pro-rata by power across the whole network.
"""

from dataclasses import dataclass

from .params import REWARD_DECIMALS

DECIMALS = 10**REWARD_DECIMALS


@dataclass
class EconomicConfig:
    """Economic parameters for a network. All values in 18-decimal fixed point."""

    # ═══════════════════════════════════════════════════════
    # POWER MODEL
    # ═══════════════════════════════════════════════════════
    base_power: int                 # Power of a registered participant with no stake
    stake_unit_power: int           # Extra power per full stake unit

    # ═══════════════════════════════════════════════════════
    # EMISSION
    # ═══════════════════════════════════════════════════════
    emission_rate_per_second: int   # Reward units emitted per second network-wide

    def __post_init__(self):
        if self.base_power < 0 or self.stake_unit_power < 0:
            raise ValueError("Power constants must be non-negative")
        if self.emission_rate_per_second < 0:
            raise ValueError("Emission rate must be non-negative")

    def calculate_power(self, staked_amount: int, stake_unit: int) -> int:
        """Power of a registered participant holding `staked_amount`."""
        return self.base_power + (staked_amount // stake_unit) * self.stake_unit_power


ECONOMIC_CONFIG = EconomicConfig(
    base_power=3 * DECIMALS // 100,              # 0.03
    stake_unit_power=DECIMALS // 100,            # 0.01 per stake unit
    emission_rate_per_second=DECIMALS // 100,    # 0.01 reward token / second
)
