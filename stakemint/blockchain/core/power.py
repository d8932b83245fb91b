# MIT License
# Copyright (c) 2025 Hashborn

"""
Power Model

power = base_power + (staked_amount // stake_unit) * stake_unit_power

A participant that never registered has power 0; a registered participant
with nothing staked still has base_power.
"""

from typing import Optional

from ...protocol.types.participant import Participant
from ...protocol.config.params import CURRENT_NETWORK, NetworkConfig
from ...protocol.config.economic_model import ECONOMIC_CONFIG, EconomicConfig


class PowerModel:
    def __init__(self, config: NetworkConfig = None, economic_config: EconomicConfig = None):
        self.config = config or CURRENT_NETWORK
        self.economic = economic_config or ECONOMIC_CONFIG

    @property
    def base_power(self) -> int:
        return self.economic.base_power

    def power_of(self, staked_amount: int) -> int:
        return self.economic.calculate_power(staked_amount, self.config.stake_unit)

    def power(self, participant: Optional[Participant]) -> int:
        if participant is None or not participant.registered:
            return 0
        return self.power_of(participant.staked_amount)
