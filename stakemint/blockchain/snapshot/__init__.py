# MIT License
# Copyright (c) 2025 Hashborn

"""
Snapshot Ledger

Append-only history of network-wide power checkpoints.
"""

from .ledger import SnapshotLedger
from .types import Snapshot

__all__ = ["SnapshotLedger", "Snapshot"]
