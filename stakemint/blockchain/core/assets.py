# MIT License
# Copyright (c) 2025 Hashborn

"""
Asset transfer collaborators.

The engine never moves tokens itself; it asks an AssetTransfer to pull
stake in, send it back out, or mint rewards. TokenLedger is a bundled
ERC-20 style balance book used by local nodes and tests.
"""

import json
import logging
import threading
from typing import Dict, List, Optional, Tuple

from ...protocol.types.common import TransferFailed
from ..storage.db import StorageDB

logger = logging.getLogger(__name__)


class AssetTransfer:
    """
    Interface for one fungible asset held on behalf of the engine.

    The savepoint hooks let an asset join engine operations: the engine calls
    begin before an operation and rollback or release after it. Assets that
    share the engine's StorageDB (`db`) hand their changes to the engine's
    commit batch through pending_state; others persist themselves in flush.
    """

    asset_id: str
    decimals: int
    db: Optional[StorageDB] = None

    def begin(self):
        pass

    def rollback(self):
        pass

    def release(self):
        pass

    def pending_state(self) -> Dict[str, str]:
        """State-table rows changed since the last commit."""
        return {}

    def mark_persisted(self):
        pass

    def flush(self):
        pass

    def transfer_in(self, sender: str, amount: int) -> None:
        """Pull `amount` from `sender` into the engine's custody. Raises TransferFailed."""
        raise NotImplementedError

    def transfer_out(self, recipient: str, amount: int) -> None:
        """Send `amount` from the engine's custody. Raises TransferFailed."""
        raise NotImplementedError

    def mint_to(self, recipient: str, amount: int) -> None:
        """Create `amount` of new supply for `recipient`. Raises TransferFailed."""
        raise NotImplementedError


class TokenLedger(AssetTransfer):
    """
    Balance book for a single token.

    `custodian` is the account the engine holds funds under. Pulling funds
    into custody requires a prior `approve` by the sender, mirroring the
    approve-then-transfer flow of ERC-20 tokens.

    Balances persist under the `tok:<asset_id>` state key when a StorageDB is
    given, otherwise they live in memory only.
    """

    def __init__(self, asset_id: str, decimals: int, custodian: str,
                 db: Optional[StorageDB] = None, mintable: bool = True):
        self.asset_id = asset_id
        self.decimals = decimals
        self.custodian = custodian
        self.mintable = mintable
        self.db = db
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[str, int] = {}
        self.total_supply = 0
        self._lock = threading.RLock()
        self._savepoints: List[Tuple[Dict[str, int], Dict[str, int], int, bool]] = []
        self._dirty = False
        self._load()

    def _key(self) -> str:
        return f"tok:{self.asset_id}"

    def _load(self):
        if not self.db:
            return
        raw = self.db.get_state(self._key())
        if raw:
            data = json.loads(raw)
            self._balances = {k: int(v) for k, v in data.get("balances", {}).items()}
            self._allowances = {k: int(v) for k, v in data.get("allowances", {}).items()}
            self.total_supply = int(data.get("total_supply", 0))

    def _encode(self) -> str:
        return json.dumps({
            "balances": {k: str(v) for k, v in self._balances.items()},
            "allowances": {k: str(v) for k, v in self._allowances.items()},
            "total_supply": str(self.total_supply),
        })

    def _persist(self):
        if not self.db:
            return
        if self._savepoints:
            # Written with the enclosing engine commit
            self._dirty = True
            return
        self.db.set_state(self._key(), self._encode())

    # --- Savepoints ---
    def begin(self):
        with self._lock:
            self._savepoints.append(
                (dict(self._balances), dict(self._allowances), self.total_supply, self._dirty)
            )

    def rollback(self):
        with self._lock:
            self._balances, self._allowances, self.total_supply, self._dirty = self._savepoints.pop()

    def release(self):
        with self._lock:
            self._savepoints.pop()

    def pending_state(self) -> Dict[str, str]:
        with self._lock:
            if not self.db or not self._dirty:
                return {}
            return {self._key(): self._encode()}

    def mark_persisted(self):
        with self._lock:
            self._dirty = False

    def flush(self):
        with self._lock:
            if self.db and self._dirty:
                self.db.set_state(self._key(), self._encode())
                self._dirty = False

    # --- Views ---
    def balance_of(self, address: str) -> int:
        with self._lock:
            return self._balances.get(address, 0)

    def allowance(self, owner: str) -> int:
        """Amount `owner` has approved the custodian to pull."""
        with self._lock:
            return self._allowances.get(owner, 0)

    # --- Holder actions ---
    def mint(self, recipient: str, amount: int):
        """Faucet mint, independent of the engine."""
        with self._lock:
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            self.total_supply += amount
            self._persist()

    def approve(self, owner: str, amount: int):
        if amount < 0:
            raise ValueError("Allowance cannot be negative")
        with self._lock:
            self._allowances[owner] = amount
            self._persist()

    # --- AssetTransfer ---
    def transfer_in(self, sender: str, amount: int) -> None:
        with self._lock:
            allowed = self._allowances.get(sender, 0)
            if allowed < amount:
                raise TransferFailed(
                    f"{self.asset_id}: insufficient allowance for {sender}: have {allowed}, need {amount}"
                )
            balance = self._balances.get(sender, 0)
            if balance < amount:
                raise TransferFailed(
                    f"{self.asset_id}: insufficient balance for {sender}: have {balance}, need {amount}"
                )
            self._allowances[sender] = allowed - amount
            self._balances[sender] = balance - amount
            self._balances[self.custodian] = self._balances.get(self.custodian, 0) + amount
            self._persist()
        logger.debug(f"{self.asset_id}: {sender} -> custody {amount}")

    def transfer_out(self, recipient: str, amount: int) -> None:
        with self._lock:
            held = self._balances.get(self.custodian, 0)
            if held < amount:
                raise TransferFailed(
                    f"{self.asset_id}: custody holds {held}, cannot send {amount}"
                )
            self._balances[self.custodian] = held - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            self._persist()
        logger.debug(f"{self.asset_id}: custody -> {recipient} {amount}")

    def mint_to(self, recipient: str, amount: int) -> None:
        if not self.mintable:
            # Pre-funded reward pool: pay out of custody instead
            self.transfer_out(recipient, amount)
            return
        with self._lock:
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            self.total_supply += amount
            self._persist()
        logger.debug(f"{self.asset_id}: minted {amount} to {recipient}")
