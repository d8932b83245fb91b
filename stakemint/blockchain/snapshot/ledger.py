# MIT License
# Copyright (c) 2025 Hashborn

"""
Snapshot Ledger

Keeps the append-only sequence of checkpoints that reward accrual replays.
A genesis snapshot is written when the ledger is first created, so the
history is never empty.
"""

import bisect
import logging
from typing import List, Optional

from .types import Snapshot
from ..core.stake_ledger import StakeLedger
from ...protocol.types.common import NonMonotonicTime
from ...protocol.config.params import NetworkConfig

logger = logging.getLogger(__name__)


class SnapshotLedger:
    """
    Checkpoint history over a StakeLedger.

    Callers that run on a schedule gate `checkpoint` with `should_checkpoint`;
    administrative callers may checkpoint at any strictly later time.
    """

    def __init__(self, stake_ledger: StakeLedger, config: NetworkConfig,
                 history: Optional[List[Snapshot]] = None):
        self.stake_ledger = stake_ledger
        self.config = config
        self._history: List[Snapshot] = list(history or [])
        self._timestamps: List[int] = [s.timestamp for s in self._history]
        self._persisted = len(self._history)
        self._savepoints: List[int] = []

    # --- Savepoints ---
    def begin(self):
        self._savepoints.append(len(self._history))

    def rollback(self):
        length = self._savepoints.pop()
        del self._history[length:]
        del self._timestamps[length:]

    def release(self):
        self._savepoints.pop()

    def unsaved(self) -> List[Snapshot]:
        """Snapshots appended since the last persisted commit."""
        return self._history[self._persisted:]

    def mark_persisted(self):
        self._persisted = len(self._history)

    # --- Operations ---
    def genesis(self, now: int) -> Snapshot:
        if self._history:
            return self._history[0]
        return self._append(now)

    def should_checkpoint(self, now: int) -> bool:
        return now - self.latest().timestamp >= self.config.min_checkpoint_interval

    def checkpoint(self, now: int) -> Snapshot:
        last = self.latest()
        if now <= last.timestamp:
            raise NonMonotonicTime(
                f"Checkpoint time {now} is not after last snapshot at {last.timestamp}"
            )
        return self._append(now)

    def _append(self, now: int) -> Snapshot:
        total_power, total_staked, count = self.stake_ledger.aggregate()
        snapshot = Snapshot(
            index=len(self._history),
            timestamp=now,
            total_power=total_power,
            total_staked=total_staked,
            participant_count=count,
        )
        self._history.append(snapshot)
        self._timestamps.append(now)
        logger.info(
            f"Snapshot #{snapshot.index} at {now}: power={total_power}, "
            f"staked={total_staked}, participants={count}"
        )
        return snapshot

    # --- Queries ---
    def latest(self) -> Snapshot:
        return self._history[-1]

    def recent(self, n: int) -> List[Snapshot]:
        """Last min(n, length) snapshots, oldest first."""
        if n <= 0:
            return []
        return list(self._history[-n:])

    def __len__(self) -> int:
        return len(self._history)

    def current_total_power(self) -> int:
        """Live aggregate power, independent of the recorded history."""
        return self.stake_ledger.aggregate()[0]

    def covering(self, start: int, end: int) -> List[Snapshot]:
        """
        Snapshots that bound or fall inside [start, end), oldest first.

        The first entry is the last snapshot at or before `start` (the genesis
        snapshot if `start` predates all history).
        """
        first = max(bisect.bisect_right(self._timestamps, start) - 1, 0)
        last = bisect.bisect_left(self._timestamps, end)
        return self._history[first:max(last, first + 1)]
