# MIT License
# Copyright (c) 2025 Hashborn

"""
Snapshot Data Structures
"""

from pydantic import BaseModel, ConfigDict, Field


class Snapshot(BaseModel):
    """
    Network-wide checkpoint. Immutable once appended.
    """
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., description="Position in the history (genesis = 0)")
    timestamp: int = Field(..., description="Unix seconds, strictly increasing")
    total_power: int = Field(..., description="Sum of registered participants' power")
    total_staked: int = Field(..., description="Sum of staked amounts")
    participant_count: int = Field(..., description="Registered participants")
