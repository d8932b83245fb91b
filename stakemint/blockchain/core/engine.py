# MIT License
# Copyright (c) 2025 Hashborn

from typing import Optional, List, Tuple, Dict, Any
from contextlib import contextmanager
import logging
import threading

from ...protocol.types.common import (
    Operation, ProtocolError, InvalidOwner, TooSoon, InvalidAmount, TransferFailed,
)
from ...protocol.types.participant import Participant
from ...protocol.config.params import CURRENT_NETWORK, NetworkConfig
from ...protocol.config.economic_model import ECONOMIC_CONFIG, EconomicConfig
from ..storage.db import StorageDB
from ..snapshot.ledger import SnapshotLedger
from ..snapshot.types import Snapshot
from ..observability.metrics import record_operation, record_checkpoint, record_reward
from . import events
from .events import EventBus, event_bus
from .assets import AssetTransfer
from .authority import OwnerAuthority
from .admin import AdminControl
from .clock import Clock, SystemClock
from .power import PowerModel
from .rewards import RewardEngine, PendingReward
from .stake_ledger import StakeLedger

logger = logging.getLogger(__name__)


class StakeMint:
    """
    The whole engine state behind one lock.

    Every public operation runs to completion under `_lock` and either
    commits all of its effects (memory, sqlite, events) or none of them.
    Operations re-entered from an asset callback join the outer operation
    and are committed or undone with it.
    """

    def __init__(self,
                 db_path: str,
                 stake_asset: AssetTransfer,
                 reward_asset: AssetTransfer,
                 owner: Optional[str] = None,
                 clock: Optional[Clock] = None,
                 config: Optional[NetworkConfig] = None,
                 economic_config: Optional[EconomicConfig] = None,
                 bus: Optional[EventBus] = None,
                 db: Optional[StorageDB] = None):
        # A shared StorageDB lets token balances commit in the same batch
        self.db = db or StorageDB(db_path)
        self._lock = threading.RLock()
        self.config = config or CURRENT_NETWORK
        self.economic = economic_config or ECONOMIC_CONFIG
        self.clock = clock or SystemClock()
        self.bus = bus or event_bus

        self.stake_asset = stake_asset
        self.reward_asset = reward_asset
        self.assets: Dict[str, AssetTransfer] = {
            stake_asset.asset_id: stake_asset,
            reward_asset.asset_id: reward_asset,
        }

        self.power_model = PowerModel(self.config, self.economic)
        self._load_state(owner)

        self.rewards = RewardEngine(
            self.stake_ledger, self.snapshots, reward_asset, self.config, self.economic
        )
        self.admin = AdminControl(self.authority, self.snapshots, self.assets)

        self._pending_events: List[Tuple[str, Dict[str, Any]]] = []
        self._event_marks: List[int] = []

        if len(self.snapshots) == 0:
            with self._operation(None):
                self.snapshots.genesis(self.clock.now())
            record_checkpoint("genesis")
            logger.info("Engine initialized with genesis snapshot")
        else:
            logger.info(
                f"Engine loaded: {self.stake_ledger.total_registered} participants, "
                f"{len(self.snapshots)} snapshots"
            )

    def _load_state(self, owner: Optional[str]):
        participants = [Participant.model_validate_json(data) for _, data in self.db.load_participants()]
        snapshots = [Snapshot.model_validate_json(data) for data in self.db.load_snapshots()]
        total_staked = int(self.db.get_state("total_staked") or 0)
        total_registered = int(self.db.get_state("total_registered") or 0)

        self.stake_ledger = StakeLedger(
            self.stake_asset, self.power_model, self.config,
            participants=participants,
            total_staked=total_staked,
            total_registered=total_registered,
        )
        self.snapshots = SnapshotLedger(self.stake_ledger, self.config, history=snapshots)

        _, derived_staked, derived_count = self.stake_ledger.aggregate()
        if derived_staked != total_staked or derived_count != total_registered:
            logger.error(
                f"Stored aggregates disagree with participants: staked {total_staked} vs {derived_staked}, "
                f"registered {total_registered} vs {derived_count}"
            )

        stored_owner = self.db.get_state("owner")
        if stored_owner is None and owner is None:
            raise InvalidOwner("An owner is required to initialize a new engine")
        self.authority = OwnerAuthority(stored_owner or owner, self.config.null_identity)

    # --- Transactions ---
    def _savepoint_holders(self) -> list:
        return [self.stake_ledger, self.snapshots, *self.assets.values()]

    @contextmanager
    def _operation(self, op: Optional[Operation]):
        with self._lock:
            outermost = not self._event_marks
            owner_before = self.authority.owner
            for holder in self._savepoint_holders():
                holder.begin()
            self._event_marks.append(len(self._pending_events))
            try:
                yield
                if outermost:
                    self._commit()
            except BaseException as e:
                for holder in self._savepoint_holders():
                    holder.rollback()
                del self._pending_events[self._event_marks.pop():]
                self.authority.owner = owner_before
                if op is not None:
                    if isinstance(e, ProtocolError):
                        record_operation(op.value, "rejected")
                        logger.warning(f"{op.value} rejected: {type(e).__name__}: {e}")
                    else:
                        record_operation(op.value, "error")
                        logger.error(f"{op.value} failed and was rolled back: {e}")
                raise

            for holder in self._savepoint_holders():
                holder.release()
            self._event_marks.pop()
            if outermost:
                self._publish()
            if op is not None:
                record_operation(op.value, "ok")

    def _commit(self):
        """Write the outermost operation's changes; memory is only marked persisted on success."""
        state = {
            "total_staked": str(self.stake_ledger.total_staked),
            "total_registered": str(self.stake_ledger.total_registered),
            "owner": self.authority.owner,
        }
        shared = [a for a in self.assets.values() if a.db is self.db]
        for asset in shared:
            state.update(asset.pending_state())

        self.db.write_batch(
            participants=[(p.address, p.model_dump_json()) for p in self.stake_ledger.dirty()],
            snapshots=[(s.index, s.timestamp, s.model_dump_json()) for s in self.snapshots.unsaved()],
            state=state,
        )

        self.stake_ledger.mark_persisted()
        self.snapshots.mark_persisted()
        for asset in self.assets.values():
            if asset in shared:
                asset.mark_persisted()
            else:
                asset.flush()

    def _emit(self, event_type: str, **data: Any):
        self._pending_events.append((event_type, data))

    def _publish(self):
        pending, self._pending_events = self._pending_events, []
        for event_type, data in pending:
            self.bus.emit(event_type, **data)

    # --- Stake Asset ---
    def approve(self, caller: str, amount: int):
        """Allow the engine to pull up to `amount` of the stake asset from `caller`."""
        approve = getattr(self.stake_asset, "approve", None)
        if approve is None:
            raise TransferFailed(f"{self.stake_asset.asset_id} allowances are managed outside this node")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise InvalidAmount(f"Allowance must be a non-negative integer, got {amount!r}")
        with self._lock:
            approve(caller, amount)
        logger.info(f"{caller} approved {amount} {self.stake_asset.asset_id}")

    def balances(self, address: str) -> Dict[str, Optional[int]]:
        """Token-side view of `address`; None where an asset does not expose the figure."""
        with self._lock:
            def read(asset, method):
                fn = getattr(asset, method, None)
                return fn(address) if fn else None
            return {
                "stake_balance": read(self.stake_asset, "balance_of"),
                "stake_allowance": read(self.stake_asset, "allowance"),
                "reward_balance": read(self.reward_asset, "balance_of"),
            }

    # --- Participant Operations ---
    def register(self, caller: str) -> Participant:
        with self._operation(Operation.REGISTER):
            now = self.clock.now()
            participant = self.stake_ledger.register(caller, now)
            self._emit(events.REGISTERED, participant=caller, timestamp=now)
            result = participant.model_copy()
        return result

    def stake(self, caller: str, amount: int) -> int:
        with self._operation(Operation.STAKE):
            total = self.stake_ledger.stake(caller, amount)
            self._emit(events.STAKED, participant=caller, amount=amount, total=total)
        return total

    def unstake(self, caller: str, amount: int) -> int:
        with self._operation(Operation.UNSTAKE):
            total = self.stake_ledger.unstake(caller, amount)
            self._emit(events.UNSTAKED, participant=caller, amount=amount, total=total)
        return total

    def withdraw_rewards(self, caller: str) -> PendingReward:
        with self._operation(Operation.WITHDRAW_REWARDS):
            quote = self.rewards.withdraw(caller, self.clock.now())
            self._emit(events.REWARDS_WITHDRAWN, participant=caller,
                       reward=quote.reward, power=quote.power)
        record_reward(quote.reward)
        return quote

    # --- Snapshot Ledger ---
    def should_checkpoint(self, now: Optional[int] = None) -> bool:
        with self._lock:
            return self.snapshots.should_checkpoint(self.clock.now() if now is None else now)

    def checkpoint(self, now: Optional[int] = None) -> Snapshot:
        """Append a snapshot. Scheduled callers gate this with should_checkpoint."""
        with self._operation(Operation.CHECKPOINT):
            snapshot = self.snapshots.checkpoint(self.clock.now() if now is None else now)
            self._emit(events.CHECKPOINT, snapshot=snapshot)
        record_checkpoint("automation")
        return snapshot

    def check_upkeep(self, check_data: bytes = b"") -> Tuple[bool, bytes]:
        """Keeper-style probe: (upkeep_needed, perform_data)."""
        return self.should_checkpoint(), check_data

    def perform_upkeep(self, perform_data: bytes = b"") -> Snapshot:
        """Keeper-style trigger; re-checks the interval before appending."""
        with self._operation(Operation.CHECKPOINT):
            now = self.clock.now()
            if not self.snapshots.should_checkpoint(now):
                elapsed = now - self.snapshots.latest().timestamp
                raise TooSoon(
                    f"Checkpoint not due: {elapsed}s since last snapshot, "
                    f"need {self.config.min_checkpoint_interval}s"
                )
            snapshot = self.snapshots.checkpoint(now)
            self._emit(events.CHECKPOINT, snapshot=snapshot)
        record_checkpoint("automation")
        return snapshot

    # --- Administrative Control ---
    def manual_checkpoint(self, caller: str) -> Snapshot:
        with self._operation(Operation.MANUAL_CHECKPOINT):
            snapshot = self.admin.manual_checkpoint(caller, self.clock.now())
            self._emit(events.CHECKPOINT, snapshot=snapshot)
        record_checkpoint("manual")
        return snapshot

    def emergency_withdraw(self, caller: str, asset_id: str, amount: int):
        with self._operation(Operation.EMERGENCY_WITHDRAW):
            self.admin.emergency_withdraw(caller, asset_id, amount)
            self._emit(events.EMERGENCY_WITHDRAW, asset=asset_id, amount=amount,
                       recipient=self.authority.owner)

    def transfer_ownership(self, caller: str, new_owner: str):
        with self._operation(Operation.TRANSFER_OWNERSHIP):
            previous = self.admin.transfer_ownership(caller, new_owner)
            self._emit(events.OWNERSHIP_TRANSFERRED, previous_owner=previous, new_owner=new_owner)

    # --- Queries ---
    def pending_reward(self, address: str) -> PendingReward:
        with self._lock:
            return self.rewards.pending_reward(address, self.clock.now())

    def power(self, address: str) -> int:
        with self._lock:
            return self.stake_ledger.power(address)

    def current_total_power(self) -> int:
        with self._lock:
            return self.snapshots.current_total_power()

    def latest_snapshot(self) -> Snapshot:
        with self._lock:
            return self.snapshots.latest()

    def recent_snapshots(self, n: int) -> List[Snapshot]:
        with self._lock:
            return self.snapshots.recent(n)

    def history_length(self) -> int:
        with self._lock:
            return len(self.snapshots)

    def is_registered(self, address: str) -> bool:
        with self._lock:
            return self.stake_ledger.is_registered(address)

    def total_registered_count(self) -> int:
        with self._lock:
            return self.stake_ledger.total_registered

    def active_participants(self) -> int:
        """Registered participants, including those with nothing staked."""
        with self._lock:
            return len(self.stake_ledger.registered())

    def total_staked(self) -> int:
        with self._lock:
            return self.stake_ledger.total_staked

    def get_participant(self, address: str) -> Optional[Participant]:
        with self._lock:
            participant = self.stake_ledger.get(address)
            return participant.model_copy() if participant else None

    @property
    def owner(self) -> str:
        return self.authority.owner

    def close(self):
        self.db.close()
