# MIT License
# Copyright (c) 2025 Hashborn

"""
Reward Accrual

Rewards are a Riemann sum over checkpoint intervals:

    reward = sum(power / total_power_i * emission_rate * d_i)

- d_i is the overlap of interval i with the claim window [last_claim_at, now)
- total_power_i is the total recorded by the snapshot opening interval i;
  the window's left edge, if it predates all history, uses the genesis value
- the still-open interval after the latest snapshot uses the live total
  power, since no checkpoint has recorded it yet
- power is the participant's current power for the whole window
- an interval whose total power is 0 contributes nothing
"""

import logging
from typing import NamedTuple

from ...protocol.types.common import NotRegistered, TooSoon
from ...protocol.config.params import NetworkConfig
from ...protocol.config.economic_model import EconomicConfig
from ...protocol.fixed_point import mul_div, saturating_sub
from ..snapshot.ledger import SnapshotLedger
from .assets import AssetTransfer
from .stake_ledger import StakeLedger

logger = logging.getLogger(__name__)


class PendingReward(NamedTuple):
    reward: int
    power: int


class RewardEngine:
    """
    Computes pending rewards and settles withdrawals.

    Reads both ledgers and never appends to the snapshot history.
    """

    def __init__(self,
                 stake_ledger: StakeLedger,
                 snapshot_ledger: SnapshotLedger,
                 reward_asset: AssetTransfer,
                 config: NetworkConfig,
                 economic_config: EconomicConfig):
        self.stake_ledger = stake_ledger
        self.snapshots = snapshot_ledger
        self.reward_asset = reward_asset
        self.config = config
        self.economic = economic_config

    def accrue(self, power: int, start: int, end: int) -> int:
        """Reward for holding `power` over [start, end)."""
        if end <= start or power == 0:
            return 0

        rate = self.economic.emission_rate_per_second
        covering = self.snapshots.covering(start, end)
        latest_index = self.snapshots.latest().index
        live_total = None
        reward = 0

        for i, snap in enumerate(covering):
            seg_start = start if i == 0 else snap.timestamp
            if i + 1 < len(covering):
                seg_end = covering[i + 1].timestamp
                total_power = snap.total_power
            else:
                seg_end = end
                if snap.index == latest_index:
                    if live_total is None:
                        live_total = self.snapshots.current_total_power()
                    total_power = live_total
                else:
                    total_power = snap.total_power

            overlap = saturating_sub(min(end, seg_end), max(start, seg_start))
            if overlap == 0 or total_power == 0:
                continue

            share = mul_div(power * rate, overlap, total_power)
            logger.debug(
                f"Interval from snapshot #{snap.index}: {overlap}s, "
                f"total_power={total_power}, reward={share}"
            )
            reward += share

        return reward

    def pending_reward(self, address: str, now: int) -> PendingReward:
        participant = self.stake_ledger.get(address)
        if participant is None or not participant.registered:
            raise NotRegistered(f"Participant {address} is not registered")

        elapsed = now - participant.last_claim_at
        if elapsed < self.config.min_claim_interval:
            raise TooSoon(
                f"Not time yet: {elapsed}s since last claim, "
                f"need {self.config.min_claim_interval}s"
            )

        power = self.stake_ledger.power(address)
        return PendingReward(self.accrue(power, participant.last_claim_at, now), power)

    def withdraw(self, address: str, now: int) -> PendingReward:
        """
        Settle pending rewards for `address`.

        The claim timestamp moves before the reward asset is called, so a
        re-entrant claim from inside the payout sees the cooldown already reset.
        """
        quote = self.pending_reward(address, now)

        self.stake_ledger.begin()
        try:
            self.stake_ledger.mark_claimed(address, now)
            if quote.reward > 0:
                self.reward_asset.mint_to(address, quote.reward)
        except Exception:
            self.stake_ledger.rollback()
            logger.warning(f"Reward withdrawal for {address} rolled back")
            raise
        self.stake_ledger.release()

        logger.info(f"Paid {quote.reward} reward to {address} (power {quote.power})")
        return quote
