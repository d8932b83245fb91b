# MIT License
# Copyright (c) 2025 Hashborn

"""
Stake Ledger

Per-participant staked balances and registration state, plus the running
aggregates `total_staked` and `total_registered`.

Mutations are journaled in savepoints so a failed operation can be undone
exactly. Inbound stake is pulled from the asset before anything is
credited; outbound stake is debited before the asset is asked to send it.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from ...protocol.types.common import AlreadyRegistered, NotRegistered, InvalidAmount
from ...protocol.types.participant import Participant
from ...protocol.config.params import NetworkConfig
from ...protocol.fixed_point import checked_add, checked_sub
from .assets import AssetTransfer
from .power import PowerModel

logger = logging.getLogger(__name__)


class _Savepoint:
    __slots__ = ("originals", "total_staked", "total_registered")

    def __init__(self, total_staked: int, total_registered: int):
        # address -> copy before first touch (None = did not exist)
        self.originals: Dict[str, Optional[Participant]] = {}
        self.total_staked = total_staked
        self.total_registered = total_registered


class StakeLedger:
    def __init__(self,
                 stake_asset: AssetTransfer,
                 power_model: PowerModel,
                 config: NetworkConfig,
                 participants: List[Participant] = None,
                 total_staked: int = 0,
                 total_registered: int = 0):
        self.stake_asset = stake_asset
        self.power_model = power_model
        self.config = config
        # Insertion order is registration order (the active set)
        self._participants: Dict[str, Participant] = {p.address: p for p in (participants or [])}
        self.total_staked = total_staked
        self.total_registered = total_registered
        self._savepoints: List[_Savepoint] = []
        self._dirty: Set[str] = set()

    # --- Savepoints ---
    def begin(self):
        self._savepoints.append(_Savepoint(self.total_staked, self.total_registered))

    def rollback(self):
        sp = self._savepoints.pop()
        for address, original in sp.originals.items():
            if original is None:
                self._participants.pop(address, None)
            else:
                self._participants[address] = original
        self.total_staked = sp.total_staked
        self.total_registered = sp.total_registered
        if not self._savepoints:
            self._dirty.clear()

    def release(self):
        sp = self._savepoints.pop()
        if self._savepoints:
            parent = self._savepoints[-1].originals
            for address, original in sp.originals.items():
                parent.setdefault(address, original)

    def dirty(self) -> List[Participant]:
        """Participants changed since the last persisted commit."""
        return [self._participants[a] for a in self._dirty if a in self._participants]

    def mark_persisted(self):
        self._dirty.clear()

    def _touch(self, address: str):
        if self._savepoints:
            originals = self._savepoints[-1].originals
            if address not in originals:
                existing = self._participants.get(address)
                originals[address] = existing.model_copy() if existing else None
        self._dirty.add(address)

    # --- Views ---
    def get(self, address: str) -> Optional[Participant]:
        return self._participants.get(address)

    def is_registered(self, address: str) -> bool:
        p = self._participants.get(address)
        return p is not None and p.registered

    def registered(self) -> List[Participant]:
        return [p for p in self._participants.values() if p.registered]

    def power(self, address: str) -> int:
        return self.power_model.power(self._participants.get(address))

    def aggregate(self) -> Tuple[int, int, int]:
        """(total_power, total_staked, participant_count) summed over registered participants."""
        total_power = 0
        total_staked = 0
        count = 0
        for p in self.registered():
            total_power += self.power_model.power(p)
            total_staked += p.staked_amount
            count += 1
        return total_power, total_staked, count

    # --- Operations ---
    def register(self, address: str, now: int) -> Participant:
        if self.is_registered(address):
            raise AlreadyRegistered(f"Participant {address} is already registered")

        self._touch(address)
        participant = Participant(
            address=address,
            registered=True,
            registered_at=now,
            last_claim_at=now,
        )
        self._participants[address] = participant
        self.total_registered += 1
        logger.info(f"Registered participant {address} at {now}")
        return participant

    def _check_amount(self, amount: int):
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidAmount(f"Amount must be a positive integer, got {amount!r}")
        if amount % self.config.stake_unit != 0:
            raise InvalidAmount(
                f"Amount {amount} must be an integer multiple of {self.config.stake_unit}"
            )

    def stake(self, address: str, amount: int) -> int:
        """Pull `amount` of the stake asset and credit it. Returns the new staked total."""
        participant = self._participants.get(address)
        if participant is None or not participant.registered:
            raise NotRegistered(f"Participant {address} must register before staking")
        self._check_amount(amount)

        # Transfer first: nothing is credited unless the asset arrived
        self.stake_asset.transfer_in(address, amount)

        participant = self._participants[address]
        self._touch(address)
        participant.staked_amount = checked_add(participant.staked_amount, amount)
        self.total_staked = checked_add(self.total_staked, amount)
        logger.info(f"Staked {amount} for {address} (total {participant.staked_amount})")
        return participant.staked_amount

    def unstake(self, address: str, amount: int) -> int:
        """Debit `amount` then send it back. Returns the remaining staked total."""
        participant = self._participants.get(address)
        staked = participant.staked_amount if participant else 0
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0 or amount > staked:
            raise InvalidAmount(f"Invalid amount: {amount!r} (staked {staked})")
        self._check_amount(amount)

        self.begin()
        try:
            self._touch(address)
            participant.staked_amount = checked_sub(participant.staked_amount, amount)
            self.total_staked = checked_sub(self.total_staked, amount)
            self.stake_asset.transfer_out(address, amount)
        except Exception:
            self.rollback()
            logger.warning(f"Unstake of {amount} for {address} rolled back")
            raise
        self.release()

        participant = self._participants[address]
        logger.info(f"Unstaked {amount} for {address} (remaining {participant.staked_amount})")
        return participant.staked_amount

    def mark_claimed(self, address: str, now: int):
        participant = self._participants.get(address)
        if participant is None:
            raise NotRegistered(f"Participant {address} is not registered")
        self._touch(address)
        participant.last_claim_at = now
