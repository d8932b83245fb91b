"""
Administrative Control

Owner-gated actions that bypass the normal participant flow.
"""
import logging
from typing import Dict

from ...protocol.types.common import InvalidAmount, TransferFailed
from ..snapshot.ledger import SnapshotLedger
from ..snapshot.types import Snapshot
from .assets import AssetTransfer
from .authority import OwnerAuthority

logger = logging.getLogger(__name__)


class AdminControl:
    def __init__(self, authority: OwnerAuthority, snapshot_ledger: SnapshotLedger,
                 assets: Dict[str, AssetTransfer]):
        self.authority = authority
        self.snapshots = snapshot_ledger
        self.assets = assets

    def manual_checkpoint(self, caller: str, now: int) -> Snapshot:
        """Append a snapshot regardless of the checkpoint interval."""
        self.authority.require_owner(caller)
        snapshot = self.snapshots.checkpoint(now)
        logger.info(f"Manual checkpoint #{snapshot.index} by {caller}")
        return snapshot

    def emergency_withdraw(self, caller: str, asset_id: str, amount: int):
        """Send `amount` of any held asset to the owner, outside stake/reward accounting."""
        self.authority.require_owner(caller)
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidAmount(f"Amount must be a positive integer, got {amount!r}")
        asset = self.assets.get(asset_id)
        if asset is None:
            raise TransferFailed(f"Unknown asset: {asset_id}")

        asset.transfer_out(self.authority.owner, amount)
        logger.warning(f"Emergency withdrawal of {amount} {asset_id} to {self.authority.owner}")

    def transfer_ownership(self, caller: str, new_owner: str) -> str:
        return self.authority.transfer(caller, new_owner)
